"""Shared fixtures for Storage Gateway tests."""

from __future__ import annotations

import os

import pytest

from storage_gateway.config import reset_settings
from storage_gateway.kv.registry import reset_registry
from storage_gateway.sql.engine import reset_engine


@pytest.fixture(autouse=True)
def clean_state(monkeypatch: pytest.MonkeyPatch):
    """Reset global state and gateway env vars before and after each test."""
    for key in [key for key in os.environ if key.startswith("STORAGE_GATEWAY_")]:
        monkeypatch.delenv(key, raising=False)
    reset_settings()
    reset_engine()
    reset_registry()
    yield
    reset_settings()
    reset_engine()
    reset_registry()
