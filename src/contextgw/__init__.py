"""contextgw: layered configuration for a relay-backed MCP gateway.

Public API:
    - resolve_config(): Resolve env, file and command line into a FrozenConfig
    - FrozenConfig: Immutable, validated configuration
    - Wizard: Interactive builder for the declarative file
"""

from __future__ import annotations

import logging

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("contextgw")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("contextgw").addHandler(logging.NullHandler())

from contextgw.config import (  # noqa: E402
    EncryptionMode,
    FrozenConfig,
    Settings,
    resolve_config,
)
from contextgw.errors import (  # noqa: E402
    BootstrapError,
    CommandLineError,
    ConfigFileError,
    ConfigurationError,
    ConfigValidationError,
    ContextGWError,
    ValidationIssue,
)
from contextgw.wizard import Wizard  # noqa: E402

__all__ = [
    "BootstrapError",
    "CommandLineError",
    "ConfigFileError",
    "ConfigValidationError",
    "ConfigurationError",
    "ContextGWError",
    "EncryptionMode",
    "FrozenConfig",
    "Settings",
    "ValidationIssue",
    "Wizard",
    "__version__",
    "resolve_config",
]
