"""Shared pytest configuration for zapcore tests."""

from __future__ import annotations

import sys
from pathlib import Path

# Add the repo root to sys.path so tests can import zapcore without installing.
_REPO_ROOT = str(Path(__file__).resolve().parent.parent.parent)
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)
