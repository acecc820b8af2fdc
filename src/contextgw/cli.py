"""Command-line entry point for the gateway.

Usage:
    contextgw [OPTIONS] [--] [COMMAND [ARGS...]]   resolve config and start
    contextgw init                                  run the configuration wizard
    contextgw config {show,audit,env} [OPTIONS]     inspect resolution
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import TYPE_CHECKING

from contextgw import __version__
from contextgw.bootstrap import load_gateway_factory, start_gateway
from contextgw.config import (
    CONFIG_FILENAME,
    FIELDS,
    audit_layers_summary,
    audit_text,
    check_environment,
    resolve_config,
    snapshot_environment,
    to_redacted_dict,
)
from contextgw.config.utils import should_emit_debug
from contextgw.errors import ContextGWError, format_error
from contextgw.wizard import Wizard

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from contextgw.bootstrap import GatewayFactory

log = logging.getLogger(__name__)

PROG = "contextgw"

_FLAG_HELP = {
    "server": ("<command> [...args]", "The command and arguments to start the MCP server."),
    "privateKey": ("<hex-key>", "The private key in hex format."),
    "relays": ("<url>", "A relay URL; repeat the flag or separate URLs with commas."),
    "public": ("", "Announce the server publicly for discovery (--no-public to disable)."),
    "serverInfo.name": ("<name>", "The name of the server shown in the server info."),
    "serverInfo.picture": ("<url>", "The URL of the server's picture."),
    "serverInfo.website": ("<url>", "The URL of the server's website."),
    "allowedPublicKeys": ("<key>", "A public key allowed to connect; repeatable."),
    "encryptionMode": ("<mode>", "Encryption mode: optional, required or disabled."),
}


def usage() -> str:
    """Build the help text from the field descriptor table."""
    lines = [
        f"Usage: {PROG} [OPTIONS] [--] [COMMAND [ARGS...]]",
        f"       {PROG} init",
        f"       {PROG} config {{show,audit,env}} [OPTIONS]",
        "",
        "Options:",
    ]
    for spec in FIELDS:
        for leaf in spec.children if spec.is_record else (spec,):
            metavar, text = _FLAG_HELP.get(leaf.key, ("<value>", leaf.description))
            left = f"  {leaf.flag} {metavar}".rstrip()
            lines.append(f"{left:40s}{text} (Env: {leaf.env_var})")
    lines += [
        f"{'  -h, --help':40s}Show this help message.",
        f"{'  -v, --version':40s}Show the version number.",
        "",
        f"Configuration can also be provided via a '{CONFIG_FILENAME}' file or "
        "environment variables.",
        f"Priority: CLI flags > {CONFIG_FILENAME} > environment variables.",
        "Server arguments that start with '-' go after '--'.",
    ]
    return "\n".join(lines)


def _leading_flags(argv: Sequence[str]) -> list[str]:
    """Tokens before a ``--`` separator."""
    args = list(argv)
    return args[: args.index("--")] if "--" in args else args


def _configure_logging(environ: Mapping[str, str]) -> None:
    level = logging.DEBUG if should_emit_debug(environ) else logging.WARNING
    logging.basicConfig(
        level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s"
    )


def run_init() -> int:
    """Run the interactive wizard."""
    try:
        Wizard().run()
    except (KeyboardInterrupt, EOFError):
        sys.stderr.write("\nWizard aborted; nothing was written.\n")
        return 130
    except ContextGWError as e:
        sys.stderr.write(f"Wizard failed: {format_error(e)}\n")
        return 1
    return 0


def run_config(argv: Sequence[str], environ: Mapping[str, str]) -> int:
    """Diagnostics: show the redacted config, its audit, or GW_* variables."""
    parser = argparse.ArgumentParser(f"{PROG} config")
    parser.add_argument("cmd", choices=("show", "audit", "env"))
    parser.add_argument("rest", nargs=argparse.REMAINDER)
    args = parser.parse_args(list(argv))

    if args.cmd == "env":
        for k, v in sorted(check_environment(environ).items()):
            sys.stdout.write(f"{k}={v}\n")
        return 0

    cfg, src = resolve_config(args.rest, environ=environ, explain=True)
    if args.cmd == "show":
        sys.stdout.write(json.dumps(to_redacted_dict(cfg), indent=2) + "\n")
    else:
        sys.stdout.write(audit_text(cfg, src) + "\n")
        for line in audit_layers_summary(src):
            sys.stdout.write(line + "\n")
    return 0


def main(
    argv: Sequence[str] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    factory: GatewayFactory | None = None,
) -> int:
    """Resolve configuration and start the gateway.

    Returns:
        Process exit status: 0 on success, help, version or wizard completion;
        1 on any resolution, validation or bootstrap failure.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    env = snapshot_environment() if environ is None else environ
    _configure_logging(env)

    flags = _leading_flags(args)
    if "-h" in flags or "--help" in flags:
        sys.stdout.write(usage() + "\n")
        return 0
    if "-v" in flags or "--version" in flags:
        sys.stdout.write(__version__ + "\n")
        return 0

    try:
        if args[:1] == ["init"]:
            return run_init()
        if args[:1] == ["config"]:
            return run_config(args[1:], env)

        config = resolve_config(args, environ=env)
        start_gateway(config, factory or load_gateway_factory())
    except ContextGWError as e:
        sys.stderr.write(f"Failed to start gateway: {format_error(e)}\n")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
