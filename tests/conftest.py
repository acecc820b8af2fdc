"""Pytest configuration and fixtures.

Provides environment isolation, a scratch working directory, logging
configuration and shared sample values. Fixtures here are autouse unless
noted.
"""

from __future__ import annotations

import logging
import os

import pytest

VALID_KEY = "a" * 64

# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def isolate_gateway_env(request, monkeypatch):
    """Clear GW_* variables so the developer's shell cannot leak into tests.

    Opt-out: @pytest.mark.allow_env_pollution
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return
    for key in list(os.environ.keys()):
        if key.startswith("GW_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run every test in an empty working directory.

    The declarative file and ``.env`` are both looked up relative to the cwd.
    """
    monkeypatch.chdir(tmp_path)
    return tmp_path


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("asyncio").setLevel(logging.WARNING)


# =============================================================================
# Sample values
# =============================================================================


@pytest.fixture
def private_key() -> str:
    """A private key that satisfies the minimum length."""
    return VALID_KEY


@pytest.fixture
def minimal_partial(private_key: str) -> dict[str, object]:
    """The smallest candidate that validates."""
    return {
        "server": ["node", "server.js"],
        "privateKey": private_key,
        "relays": ["wss://relay.damus.io"],
    }


@pytest.fixture
def write_config(isolated_cwd):
    """Return a helper that writes raw text to the declarative file."""

    def _write(text: str):
        path = isolated_cwd / "contextgw.config.yml"
        path.write_text(text, encoding="utf-8")
        return path

    return _write
