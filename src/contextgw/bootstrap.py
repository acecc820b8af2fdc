"""Bootstrap boundary between resolved configuration and the gateway.

The gateway itself (server subprocess transport, relay pool, signer and the
encryption protocol) lives outside this package. This module only turns a
validated ``FrozenConfig`` into the constructor arguments the gateway needs
and locates a gateway implementation through the ``contextgw.gateways``
entry-point group.
"""

from __future__ import annotations

from dataclasses import dataclass
from importlib.metadata import entry_points
import logging
from typing import TYPE_CHECKING, Any, Protocol

from contextgw.errors import BootstrapError

if TYPE_CHECKING:
    from contextgw.config import FrozenConfig

log = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "contextgw.gateways"


@dataclass(frozen=True)
class GatewayDependencies:
    """Plain constructor arguments for a gateway implementation."""

    command: str
    args: tuple[str, ...]
    private_key: str
    relays: tuple[str, ...]
    is_public_server: bool
    server_info: dict[str, str] | None
    allowed_public_keys: tuple[str, ...] | None
    encryption_mode: str

    def __repr__(self) -> str:
        return (
            f"GatewayDependencies(command={self.command!r}, args={self.args!r}, "
            f"private_key='[REDACTED]', relays={self.relays!r}, "
            f"is_public_server={self.is_public_server!r}, "
            f"encryption_mode={self.encryption_mode!r})"
        )


class Gateway(Protocol):
    """What the CLI needs from a running gateway."""

    def start(self) -> Any: ...

    def stop(self) -> Any: ...


class GatewayFactory(Protocol):
    def __call__(self, deps: GatewayDependencies) -> Gateway: ...


def build_dependencies(config: FrozenConfig) -> GatewayDependencies:
    """Derive gateway constructor arguments from a validated configuration."""
    return GatewayDependencies(
        command=config.command,
        args=config.command_args,
        private_key=config.private_key,
        relays=config.relays,
        is_public_server=config.public,
        server_info=dict(config.server_info) if config.server_info else None,
        allowed_public_keys=config.allowed_public_keys,
        encryption_mode=config.encryption_mode.value,
    )


def load_gateway_factory(name: str | None = None) -> GatewayFactory:
    """Load a gateway factory registered under ``contextgw.gateways``.

    Args:
        name: Entry point name to pick. When None, exactly one registered
            factory is expected.

    Raises:
        BootstrapError: If no matching factory is installed or the choice is
            ambiguous.
    """
    eps = list(entry_points(group=ENTRY_POINT_GROUP))
    if name is not None:
        eps = [ep for ep in eps if ep.name == name]
    if not eps:
        target = f"'{name}'" if name else "any"
        raise BootstrapError(
            f"No gateway implementation found for {target} in {ENTRY_POINT_GROUP}",
            hint=(
                "Install a package that registers a factory under the "
                f"'{ENTRY_POINT_GROUP}' entry-point group."
            ),
        )
    if len(eps) > 1:
        names = ", ".join(sorted(ep.name for ep in eps))
        raise BootstrapError(
            f"Several gateway implementations are installed: {names}",
            hint="Pick one explicitly.",
        )
    log.debug("Using gateway factory %s", eps[0].value)
    return eps[0].load()


def start_gateway(config: FrozenConfig, factory: GatewayFactory) -> Gateway:
    """Construct the gateway from a validated configuration and start it."""
    deps = build_dependencies(config)
    log.info(
        "Starting gateway for %s with %d relay(s)", deps.command, len(deps.relays)
    )
    gateway = factory(deps)
    gateway.start()
    return gateway
