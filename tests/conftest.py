# tests/conftest.py
"""Shared fixtures. Environment is pinned before any reride module reads settings."""

import sys
import os
import tempfile
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOCAL_STORE_URL", "sqlite://")
os.environ.setdefault("LOCAL_ONLY", "false")
os.environ.setdefault("LOG_FILE", "reride-test.log")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "reride-logs"))

import httpx
import pytest

from reride.services.data_service import DataService
from reride.services.local_store import LocalStore


def offline_handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("network unreachable", request=request)


@pytest.fixture
def store():
    return LocalStore(url="sqlite://")


@pytest.fixture
def local_service(store):
    """Local-only DataService over a fresh in-memory store."""
    return DataService(store=store, local_only=True)


@pytest.fixture
def offline_service(store):
    """Remote-preferred DataService whose network always fails."""
    return DataService(store=store, local_only=False, transport=httpx.MockTransport(offline_handler))
