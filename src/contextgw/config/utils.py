# src/contextgw/config/utils.py

"""Configuration utilities and shared functionality.

This module contains pure helpers that every other config module can import
without creating circular dependencies: naming conventions for environment
variables and flags, the declarative file location, and redaction rules.
"""

from __future__ import annotations

import os
from pathlib import Path
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

# --- Constants ---

ENV_PREFIX = "GW_"
CONFIG_FILENAME = "contextgw.config.yml"
DEBUG_CONFIG_VAR = "GW_DEBUG_CONFIG"
DOTENV_FILENAME = ".env"

_TRUTHY = {"1", "true", "yes", "on"}

# --- Naming conventions ---

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def split_camel(name: str) -> list[str]:
    """Split a camelCase key into lowercase words (``privateKey`` -> private, key)."""
    return [part.lower() for part in _CAMEL_BOUNDARY.split(name)]


def env_var_name(*path: str) -> str:
    """Return the environment variable for a field path.

    ``env_var_name("serverInfo", "name")`` -> ``GW_SERVER_INFO_NAME``.
    """
    words = [word for part in path for word in split_camel(part)]
    return ENV_PREFIX + "_".join(words).upper()


def flag_name(*path: str) -> str:
    """Return the long command-line flag for a field path.

    ``flag_name("serverInfo", "picture")`` -> ``--server-info-picture``.
    """
    words = [word for part in path for word in split_camel(part)]
    return "--" + "-".join(words)


# --- Paths ---


def get_config_path(cwd: Path | None = None) -> Path:
    """Return the declarative file path in the working directory."""
    return (cwd or Path.cwd()) / CONFIG_FILENAME


# --- Field Specification Helpers ---


def field_spec_hint(field: str) -> str:
    """Return a compact hint for setting a config field via env, file or flags."""
    path = field.split(".")
    return (
        f"Set {env_var_name(*path)}, pass {flag_name(*path)}, "
        f"or add '{field}' to {CONFIG_FILENAME} (run 'contextgw init')."
    )


def should_emit_debug(environ: Mapping[str, str] | None = None) -> bool:
    """Return True when debug audit is enabled via environment."""
    env = os.environ if environ is None else environ
    return env.get(DEBUG_CONFIG_VAR, "").strip().lower() in _TRUTHY


# --- Sensitive Key Utilities ---

# Field-level tokens used for redaction in audits and structured logs.
SENSITIVE_KEYS = {
    "private_key",
    "privatekey",
    "secret",
    "token",
    "password",
    "nsec",
}


def is_sensitive_field_key(name: str) -> bool:
    """Return True if a field name is considered sensitive for logging."""
    lower = name.lower()
    return any(token in lower for token in SENSITIVE_KEYS)


def redact(value: str | None) -> str | None:
    """Mask a secret, keeping only its length visible."""
    if not value:
        return value
    return f"***redacted*** ({len(value)} chars)"
