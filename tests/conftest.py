"""Pytest configuration and fixtures."""

from collections.abc import Iterator

import pytest

from solana_activity.config import clear_settings_cache


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep settings from leaking between tests or from the developer's shell."""
    for name in ("HELIUS_API_KEY", "HELIUS_API_URL", "HELIUS_RPC_URL", "REDIS_URL", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()
