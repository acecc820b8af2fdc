# src/contextgw/config/loaders.py

"""Configuration loaders for environment, the declarative file and argv.

Each loader returns a *partial* configuration: a plain dictionary holding
only the camelCase keys its source explicitly supplied. Loaders never apply
defaults and never validate; the core resolver merges and validates.
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, NoReturn
import warnings

from dotenv import dotenv_values
import yaml

from contextgw.errors import CommandLineError, ConfigFileError

from . import utils
from .schema import FIELDS, FieldKind, FieldSpec

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

log = logging.getLogger(__name__)

_RECORD_KEYS = frozenset(spec.name for spec in FIELDS if spec.is_record)

# --- Environment Loading ---


def snapshot_environment(
    dotenv_path: str | os.PathLike[str] | None = utils.DOTENV_FILENAME,
) -> dict[str, str]:
    """Capture one read-only view of the process environment.

    Values from an optional ``.env`` file are read with python-dotenv and
    overlaid by ``os.environ``, so the real environment always wins. The
    snapshot is passed explicitly to ``load_env`` instead of having loaders
    consult global state.
    """
    snapshot: dict[str, str] = {}
    if dotenv_path is not None and Path(dotenv_path).is_file():
        snapshot.update(
            {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
        )
    snapshot.update(os.environ)
    return snapshot


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _coerce_env_value(spec: FieldSpec, raw: str) -> Any:
    """Convert an env string according to the field kind."""
    if spec.kind is FieldKind.COMMAND:
        return raw.split()
    if spec.kind is FieldKind.STRING_LIST:
        return _split_list(raw)
    if spec.kind is FieldKind.BOOLEAN:
        return raw == "true"
    return raw


def load_env(environ: Mapping[str, str]) -> dict[str, Any]:
    """Load configuration from ``GW_*`` environment variables.

    Behavior:
    - One variable per field, one per ``serverInfo`` sub-field.
    - Unset and empty variables leave the field absent (never defaulted);
      so do list variables holding only separators.
    - The server command is split on whitespace, lists on commas.
    - The boolean is True only for the literal string ``"true"``.

    Args:
        environ: Environment snapshot, usually from ``snapshot_environment``.

    Returns:
        Partial configuration keyed by camelCase field names.
    """
    config: dict[str, Any] = {}
    for spec in FIELDS:
        if spec.is_record:
            nested = {
                child.name: _coerce_env_value(child, environ[child.env_var])
                for child in spec.children
                if environ.get(child.env_var)
            }
            if nested:
                config[spec.name] = nested
            continue
        raw = environ.get(spec.env_var)
        if not raw:
            continue
        value = _coerce_env_value(spec, raw)
        if spec.is_sequence and not value:
            continue  # only separators or whitespace
        config[spec.name] = value
    log.debug("Environment supplied fields: %s", sorted(config))
    return config


# --- Declarative file loading ---


def load_file(path: str | os.PathLike[str] | None = None) -> dict[str, Any]:
    """Load the declarative YAML file.

    A missing file is not an error and yields an empty partial. Any other
    read or parse failure is fatal. Keys written without a value are left
    out, as if they were absent.

    Args:
        path: File to read. Defaults to ``contextgw.config.yml`` in the cwd.

    Returns:
        Partial configuration with the file's known top-level keys.

    Raises:
        ConfigFileError: If the file cannot be read, is not UTF-8, is not valid
            YAML, or its root is not a mapping.
    """
    file = Path(path) if path is not None else utils.get_config_path()
    try:
        with file.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        log.debug("No configuration file at %s", file)
        return {}
    except UnicodeDecodeError as e:
        raise ConfigFileError(
            f"Could not decode {file} as UTF-8: {e}",
            path=file,
            hint="Save the file with UTF-8 encoding.",
        ) from e
    except yaml.YAMLError as e:
        raise ConfigFileError(
            f"Could not parse {file}: {e}",
            path=file,
            hint="Fix the YAML syntax or regenerate it with 'contextgw init'.",
        ) from e
    except OSError as e:
        raise ConfigFileError(f"Could not read {file}: {e}", path=file) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFileError(
            f"{file} must contain a mapping at the top level, "
            f"got {type(data).__name__}",
            path=file,
        )

    known = {spec.name for spec in FIELDS}
    unknown = sorted(str(k) for k in data if k not in known)
    if unknown:
        warnings.warn(
            f"Configuration: ignoring unknown keys in {file.name}: {', '.join(unknown)}",
            UserWarning,
            stacklevel=2,
        )
    return _drop_empty({k: v for k, v in data.items() if k in known})


def _drop_empty(data: dict[str, Any]) -> dict[str, Any]:
    """Drop keys written without a value (``relays:``); YAML reads them as None."""
    out: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict) and key in _RECORD_KEYS:
            value = {k: v for k, v in value.items() if v is not None}
            if not value:
                continue
        if value is not None:
            out[key] = value
    return out


# --- Command-line loading ---


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting on grammar errors."""

    def error(self, message: str) -> NoReturn:
        raise CommandLineError(message, hint=f"Run '{self.prog} --help' for usage.")


def _dest(spec: FieldSpec) -> str:
    return spec.key.replace(".", "__")


def build_parser(prog: str = "contextgw") -> argparse.ArgumentParser:
    """Build the flag grammar from the field descriptor table.

    ``-h/--help`` and ``-v/--version`` are handled by the CLI before this
    parser ever runs, so they are not registered here.
    """
    parser = _ArgumentParser(prog=prog, add_help=False, allow_abbrev=False)
    for spec in FIELDS:
        specs = spec.children if spec.is_record else (spec,)
        for leaf in specs:
            dest = _dest(leaf)
            if leaf.kind is FieldKind.COMMAND:
                parser.add_argument(leaf.flag, dest=dest, nargs="+", metavar="ARG")
            elif leaf.kind is FieldKind.STRING_LIST:
                parser.add_argument(
                    leaf.flag, dest=dest, action="append", metavar="VALUE"
                )
            elif leaf.kind is FieldKind.BOOLEAN:
                parser.add_argument(
                    leaf.flag, dest=dest, action=argparse.BooleanOptionalAction
                )
            else:
                parser.add_argument(leaf.flag, dest=dest, metavar="VALUE")
    parser.add_argument("positional", nargs="*", metavar="COMMAND")
    return parser


def load_cli(argv: Sequence[str]) -> dict[str, Any]:
    """Load configuration from the argument vector.

    The server command comes either from ``--server CMD [ARGS...]`` or from
    the positional arguments; supplying both is rejected. Arguments that
    begin with ``-`` must follow ``--`` to be read as part of the command.
    List flags may be repeated (and each value may hold comma-separated
    items); values are collected in encounter order.

    Raises:
        CommandLineError: If argv does not match the grammar.
    """
    args = list(argv)
    # Everything after the first "--" belongs to the server command verbatim
    trailing: list[str] = []
    if "--" in args:
        cut = args.index("--")
        args, trailing = args[:cut], args[cut + 1 :]

    parser = build_parser()
    ns = vars(parser.parse_intermixed_args(args))
    positional: list[str] = (ns.pop("positional") or []) + trailing

    config: dict[str, Any] = {}
    for spec in FIELDS:
        if spec.is_record:
            nested = {
                child.name: ns[_dest(child)]
                for child in spec.children
                if ns.get(_dest(child)) is not None
            }
            if nested:
                config[spec.name] = nested
            continue
        value = ns.get(_dest(spec))
        if value is None:
            continue
        if spec.kind is FieldKind.STRING_LIST:
            # Each occurrence may itself be a comma-separated list
            value = [item for raw in value for item in _split_list(raw)]
        config[spec.name] = value

    if positional:
        if "server" in config:
            raise CommandLineError(
                "The server command was given both with --server and as "
                f"positional arguments ({' '.join(positional)})",
                hint="Use either '--server CMD ARGS...' or '-- CMD ARGS...', not both.",
            )
        config["server"] = positional
    log.debug("Command line supplied fields: %s", sorted(config))
    return config
