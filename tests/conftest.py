"""Pytest configuration and shared fixtures for tile tests."""

import os
import sys
from pathlib import Path

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep developer TILES_* variables out of the tests."""
    for name in list(os.environ):
        if name.startswith('TILES_'):
            monkeypatch.delenv(name, raising=False)
