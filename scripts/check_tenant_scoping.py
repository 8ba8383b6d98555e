#!/usr/bin/env python3
"""
Multi-tenancy scoping lint check.

Runs guidebook.tenancy.audit against Backend/guidebook without requiring
the package to be installed.

USAGE:
    python scripts/check_tenant_scoping.py

    # Or with verbose output, failing on CRITICAL/HIGH findings (CI)
    python scripts/check_tenant_scoping.py -v --strict
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "Backend"))

from guidebook.tenancy.audit import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
