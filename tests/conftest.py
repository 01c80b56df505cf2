from __future__ import annotations

import os

import pytest

os.environ.setdefault("ENV", "test")

from btvault.logging_utils import setup_test_logging  # noqa: E402
from btvault.settings import reload_settings  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def configure_logging(tmp_path_factory):
    setup_test_logging(tmp_path_factory.mktemp("btvault-logs"), level="DEBUG")
    yield


@pytest.fixture
def anyio_backend():
    """Force anyio-powered async tests to run under asyncio backend only."""
    return "asyncio"


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the program-data root at a per-test directory."""
    monkeypatch.setenv("BTVAULT_DATA_DIR", str(tmp_path))
    reload_settings()
    return tmp_path
