# tests/conftest.py
import sys
from datetime import datetime, timezone
from pathlib import Path

# ---------------------------------------------------------
# Ensure project root is on PYTHONPATH BEFORE app imports
# ---------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest


@pytest.fixture
def reference():
    """Saturday 2025-02-15, noon UTC."""
    return datetime(2025, 2, 15, 12, 0, tzinfo=timezone.utc)
