#!/usr/bin/env python3
"""
Managed Upgrade Node Keeper

- Watch cordoned worker nodes during an upgrade and flag drains that overrun
  their time budget (default)
- Send an upgrade lifecycle notification once with `notify <state>`
- Check a Prometheus alert with `check-alert <name>`

This script supports running directly from a source checkout. It adds the
local `src/` directory to sys.path; for production use, prefer installing the
project and using the `node-keeper` console script.
"""

import os
import sys

# Add src/ to path to import modules directly
REPO_ROOT = os.path.dirname(os.path.abspath(__file__))
SRC_PATH = os.path.join(REPO_ROOT, "src")
if SRC_PATH not in sys.path:
    sys.path.insert(0, SRC_PATH)

from cli import run


if __name__ == "__main__":
    run()
