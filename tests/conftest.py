"""Pytest configuration and fixtures."""

import os
import pytest
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from ppcore.config import reset_settings  # noqa: E402
from ppcore.core.keys import MasterKeyPair  # noqa: E402
from ppcore.utils.hash import hash1  # noqa: E402

SCOPE = 0xF241D57C6DEBAE225C0F2E6EA1529373C9A9C9FB


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """Isolate tests from PPCORE_* variables and cached settings."""
    for name in list(os.environ):
        if name.startswith("PPCORE_"):
            monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(scope="session")
def master_keys():
    """Pinned master keys: Hash1(42), Hash1(43)."""
    return MasterKeyPair(master_nullifier=hash1(42), master_secret=hash1(43))


@pytest.fixture(scope="session")
def scope():
    """Pool scope used by the pinned vectors."""
    return SCOPE


@pytest.fixture
def temp_db(tmp_path):
    """Fixture providing a temporary database URL."""
    return f"sqlite:///{tmp_path / 'test.db'}"
