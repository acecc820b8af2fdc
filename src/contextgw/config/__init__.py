# src/contextgw/config/__init__.py

"""Configuration management for the contextgw gateway.

The core principle is resolve-once, freeze-then-flow: configuration is
resolved at the entry point from environment, declarative file and command
line into an immutable FrozenConfig that is handed to the bootstrap step.

Key exports:
- resolve_config: Main API for configuration resolution
- FrozenConfig: Immutable configuration payload
- Settings / FIELDS: Pydantic schema and the field descriptor table
- load_env / load_file / load_cli: Per-source partial extractors
- merge_layers: Pure precedence merge
"""

# ruff: noqa: I001

# --- Core Configuration API ---

from .core import (
    FieldOrigin,
    Origin,
    SourceMap,
    audit_layers_summary,
    audit_lines,
    audit_text,
    check_environment,
    merge_layers,
    resolve_config,
    summarize_origins,
    to_redacted_dict,
    was_field_overridden,
)
from .schema import (
    FIELDS,
    EncryptionMode,
    FieldKind,
    FieldSpec,
    FrozenConfig,
    ServerInfo,
    Settings,
    get_field,
    iter_leaf_fields,
    validate,
)

# Re-export loaders and utils for advanced usage
from .loaders import load_cli, load_env, load_file, snapshot_environment
from .utils import CONFIG_FILENAME, ENV_PREFIX, field_spec_hint, get_config_path

__all__ = [  # noqa: RUF022
    # Main public API
    "resolve_config",
    "FrozenConfig",
    "validate",
    "merge_layers",
    # Schema
    "Settings",
    "ServerInfo",
    "EncryptionMode",
    "FIELDS",
    "FieldKind",
    "FieldSpec",
    "get_field",
    "iter_leaf_fields",
    # Source extractors
    "snapshot_environment",
    "load_env",
    "load_file",
    "load_cli",
    # Provenance and audit helpers
    "Origin",
    "FieldOrigin",
    "SourceMap",
    "was_field_overridden",
    "audit_lines",
    "audit_text",
    "audit_layers_summary",
    "summarize_origins",
    "to_redacted_dict",
    "check_environment",
    # Constants and hints
    "CONFIG_FILENAME",
    "ENV_PREFIX",
    "field_spec_hint",
    "get_config_path",
]
