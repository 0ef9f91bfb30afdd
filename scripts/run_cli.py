#!/usr/bin/env python3
"""
ClinicFlow command line (sync holidays, day view, checks, exports)

Usage:
  python scripts/run_cli.py sync-holidays --year 2025 --yes
  python scripts/run_cli.py day --date 2025-05-08
  python scripts/run_cli.py export --output-dir outputs/

Reads and writes data/patients.json and data/holidays.json by default.
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from clinicflow.cli import main

if __name__ == "__main__":
    sys.exit(main())
