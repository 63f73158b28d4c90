"""Pytest configuration for the unclosure test suite."""

import sys
from pathlib import Path

# Add the repository root to path for package imports
sys.path.insert(0, str(Path(__file__).parent.parent))
