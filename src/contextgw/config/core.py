# src/contextgw/config/core.py

"""Configuration merge and resolution for the gateway.

The core principle is resolve-once, freeze-then-flow: the three partial
sources are read one after another, merged with last-wins precedence
(environment < file < command line), validated through the schema wall and
frozen into a ``FrozenConfig`` that the bootstrap step owns for the life of
the process.

Merge rules:
- A leaf present in a higher layer replaces the lower value.
- Sequences are replaced wholesale, never concatenated or unioned.
- ``serverInfo`` is merged sub-field by sub-field.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from enum import Enum
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, overload
import warnings

from .schema import FIELDS, FrozenConfig, validate
from .utils import (
    ENV_PREFIX,
    env_var_name,
    flag_name,
    get_config_path,
    is_sensitive_field_key,
    should_emit_debug,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    import os

log = logging.getLogger(__name__)

# --- Audit types ---


class Origin(str, Enum):
    """Source origin for configuration field values."""

    DEFAULT = "default"
    ENV = "env"
    FILE = "file"
    CLI = "cli"


@dataclass(frozen=True)
class FieldOrigin:
    """Tracks the origin and context of a configuration field value."""

    origin: Origin
    env_key: str | None = None  # e.g., "GW_RELAYS"
    file: str | None = None  # e.g., "/srv/contextgw.config.yml"
    flag: str | None = None  # e.g., "--relays"


SourceMap = dict[str, FieldOrigin]

_RECORD_KEYS = frozenset(spec.name for spec in FIELDS if spec.is_record)


# --- Merge engine (pure) ---


def merge_layers(
    env: Mapping[str, Any],
    file: Mapping[str, Any],
    cli: Mapping[str, Any],
    *,
    file_path: Path | None = None,
) -> tuple[dict[str, Any], SourceMap]:
    """Merge the three partial configurations into one candidate.

    This performs pure data merging with last-wins precedence while building
    an audit trail of where each field value originated. Inputs are never
    mutated.

    Args:
        env: Partial from environment variables (lowest precedence).
        file: Partial from the declarative file.
        cli: Partial from the command line (highest precedence).
        file_path: Used only to annotate FILE origins.

    Returns:
        Tuple of (merged_candidate, source_map). The source map keys nested
        record fields as ``serverInfo.name``.
    """
    layers = [
        (Origin.ENV, env),
        (Origin.FILE, file),
        (Origin.CLI, cli),
    ]

    out: dict[str, Any] = {}
    src: SourceMap = {}

    def record(path: tuple[str, ...], origin: Origin) -> None:
        """Record where a field value came from."""
        hints: dict[str, str] = {}
        if origin is Origin.ENV:
            hints["env_key"] = env_var_name(*path)
        elif origin is Origin.FILE:
            hints["file"] = str(file_path or get_config_path())
        elif origin is Origin.CLI:
            hints["flag"] = flag_name(*path)
        src[".".join(path)] = FieldOrigin(origin=origin, **hints)

    # Apply layers in precedence order
    for origin, payload in layers:
        for k, v in payload.items():
            if k in _RECORD_KEYS and isinstance(v, dict):
                base = out.get(k)
                nested = dict(base) if isinstance(base, dict) else {}
                for sub_k, sub_v in v.items():
                    nested[sub_k] = deepcopy(sub_v)
                    record((k, sub_k), origin)
                out[k] = nested
                continue
            # Sequences and scalars replace the lower layer wholesale
            out[k] = deepcopy(v)
            record((k,), origin)

    return out, src


def _apply_defaults(src: SourceMap) -> None:
    """Mark optional top-level fields no layer supplied as defaulted."""
    for spec in FIELDS:
        if spec.is_record:
            continue
        if spec.optional and spec.key not in src:
            src[spec.key] = FieldOrigin(origin=Origin.DEFAULT)


# --- Public resolution API ---


@overload
def resolve_config(
    argv: Sequence[str] = ...,
    *,
    environ: Mapping[str, str] | None = ...,
    path: str | os.PathLike[str] | None = ...,
    explain: Literal[True],
) -> tuple[FrozenConfig, SourceMap]: ...


@overload
def resolve_config(
    argv: Sequence[str] = ...,
    *,
    environ: Mapping[str, str] | None = ...,
    path: str | os.PathLike[str] | None = ...,
    explain: Literal[False] = ...,
) -> FrozenConfig: ...


def resolve_config(
    argv: Sequence[str] = (),
    *,
    environ: Mapping[str, str] | None = None,
    path: str | os.PathLike[str] | None = None,
    explain: bool = False,
) -> FrozenConfig | tuple[FrozenConfig, SourceMap]:
    """Resolve configuration from all sources into a FrozenConfig.

    This is the main public API for configuration resolution. It follows
    the precedence: defaults < env < file < command line.

    Args:
        argv: Command-line arguments (without the program name).
        environ: Environment snapshot. Defaults to ``snapshot_environment()``.
        path: Declarative file. Defaults to ``contextgw.config.yml`` in the cwd.
        explain: If True, return tuple of (config, source_map) for audit.

    Returns:
        FrozenConfig instance, or tuple of (FrozenConfig, SourceMap) if explain=True.

    Raises:
        ConfigValidationError: If the merged configuration violates the schema.
        ConfigFileError: If the file exists but cannot be read or parsed.
        CommandLineError: If argv does not match the flag grammar.
    """
    from . import loaders

    env_snapshot = loaders.snapshot_environment() if environ is None else environ
    file_path = Path(path) if path is not None else get_config_path()

    merged, sources = merge_layers(
        env=loaders.load_env(env_snapshot),
        file=loaders.load_file(file_path),
        cli=loaders.load_cli(argv),
        file_path=file_path,
    )
    frozen = validate(merged)
    _apply_defaults(sources)
    log.debug("Resolved configuration: %s", frozen)

    if not explain and should_emit_debug(env_snapshot):
        warnings.warn(
            "Config audit (redacted)\n" + "\n".join(audit_lines(frozen, sources)),
            stacklevel=2,
        )

    return (frozen, sources) if explain else frozen


# --- Minimal audit helpers (transparency with small surface) ---


def _origin_label(field: str, where: FieldOrigin) -> str:
    match where.origin:
        case Origin.ENV:
            return f"env:{where.env_key or env_var_name(*field.split('.'))}"
        case Origin.FILE:
            return f"file:{where.file or get_config_path()}"
        case Origin.CLI:
            return f"cli:{where.flag or flag_name(*field.split('.'))}"
        case _:
            return str(where.origin.value)


def audit_lines(cfg: FrozenConfig, sources: SourceMap) -> list[str]:
    """Produce redacted, human-readable audit lines per field.

    Only origins are shown; secrets are never printed.
    """
    del cfg  # values are intentionally not shown
    lines: list[str] = []
    for spec in FIELDS:
        keys = [child.key for child in spec.children] if spec.is_record else [spec.key]
        for key in keys:
            fo = sources.get(key)
            if fo is None:
                continue
            # Append explicit redaction indicator for sensitive fields
            redaction = " [REDACTED]" if is_sensitive_field_key(key) else ""
            lines.append(f"{key}: {_origin_label(key, fo)}{redaction}")
    return lines


def audit_text(cfg: FrozenConfig, sources: SourceMap) -> str:
    """Format audit as a single string suitable for printing/logging."""
    return "\n".join(audit_lines(cfg, sources))


def summarize_origins(sources: SourceMap) -> dict[str, int]:
    """Count how many fields originated from each layer."""
    counts: dict[str, int] = {}
    for fo in sources.values():
        key = fo.origin.value
        counts[key] = counts.get(key, 0) + 1
    return counts


def audit_layers_summary(src: SourceMap) -> list[str]:
    """Human-friendly summary of layer counts in fixed order."""
    counts = summarize_origins(src)
    return [f"{o.value:7s}: {counts.get(o.value, 0)} fields" for o in Origin]


def was_field_overridden(sources: SourceMap, field: str) -> bool:
    """Return True if a field's value did not come from defaults."""
    fo = sources.get(field)
    return bool(fo and fo.origin is not Origin.DEFAULT)


# --- Redacted serialization and diagnostics ---


def to_redacted_dict(cfg: FrozenConfig) -> dict[str, Any]:
    """Redacted dict for structured logging (never prints secrets)."""
    data = cfg.to_dict()
    return {
        k: "***redacted***" if is_sensitive_field_key(k) else v for k, v in data.items()
    }


def check_environment(environ: Mapping[str, str]) -> dict[str, str]:
    """Return the ``GW_*`` variables of a snapshot with secrets redacted."""
    out: dict[str, str] = {}
    for k, v in environ.items():
        if not k.startswith(ENV_PREFIX):
            continue
        out[k] = "***redacted***" if is_sensitive_field_key(k) else v
    return out
