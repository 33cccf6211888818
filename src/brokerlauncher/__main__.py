"""Allow ``python -m brokerlauncher``."""

import sys

from brokerlauncher.cli import main

sys.exit(main())
