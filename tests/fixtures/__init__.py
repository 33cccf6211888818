"""
Shared test doubles for the brokerlauncher test suite.

Usage:
    from tests.fixtures import (
        FakeClock,
        FakeContender,
        FakeCoordinationClient,
        FakePopen,
        FakeProcess,
    )
"""

from tests.fixtures.coordination import FakeContender, FakeCoordinationClient
from tests.fixtures.process import FakeClock, FakePopen, FakeProcess

__all__ = [
    "FakeClock",
    "FakeContender",
    "FakeCoordinationClient",
    "FakePopen",
    "FakeProcess",
]
