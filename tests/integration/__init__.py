"""
Integration tests for brokerlauncher.

These tests need a real ZooKeeper server, either via:
- testcontainers (automatic container provisioning)
- an existing ensemble named by BROKERLAUNCHER_ZK_HOSTS

Tests are skipped automatically if no ZooKeeper is available.
"""
