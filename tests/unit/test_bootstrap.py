"""Tests for the bootstrap boundary."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from contextgw.bootstrap import (
    ENTRY_POINT_GROUP,
    GatewayDependencies,
    build_dependencies,
    load_gateway_factory,
    start_gateway,
)
from contextgw.config import validate
from contextgw.errors import BootstrapError

pytestmark = pytest.mark.unit


class FakeGateway:
    def __init__(self, deps: GatewayDependencies) -> None:
        self.deps = deps
        self.started = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False


def _entry_point(name: str, target: object) -> MagicMock:
    ep = MagicMock()
    ep.name = name
    ep.value = f"{name}_pkg:factory"
    ep.load.return_value = target
    return ep


class TestBuildDependencies:
    def test_maps_every_field(self, minimal_partial):
        cfg = validate(
            {
                **minimal_partial,
                "public": True,
                "serverInfo": {"name": "echo"},
                "allowedPublicKeys": ["pk"],
                "encryptionMode": "REQUIRED",
            }
        )

        deps = build_dependencies(cfg)

        assert deps.command == "node"
        assert deps.args == ("server.js",)
        assert deps.private_key == minimal_partial["privateKey"]
        assert deps.relays == ("wss://relay.damus.io",)
        assert deps.is_public_server is True
        assert deps.server_info == {"name": "echo"}
        assert deps.allowed_public_keys == ("pk",)
        assert deps.encryption_mode == "required"

    def test_absent_optionals(self, minimal_partial):
        deps = build_dependencies(validate(minimal_partial))
        assert deps.server_info is None
        assert deps.allowed_public_keys is None
        assert deps.encryption_mode == "optional"

    def test_repr_redacts_private_key(self, minimal_partial, private_key):
        deps = build_dependencies(validate(minimal_partial))
        assert private_key not in repr(deps)


class TestStartGateway:
    def test_constructs_and_starts(self, minimal_partial):
        gateway = start_gateway(validate(minimal_partial), FakeGateway)

        assert isinstance(gateway, FakeGateway)
        assert gateway.started is True
        assert gateway.deps.command == "node"


class TestLoadGatewayFactory:
    def test_single_registered_factory(self):
        with patch(
            "contextgw.bootstrap.entry_points",
            return_value=[_entry_point("default", FakeGateway)],
        ) as eps:
            assert load_gateway_factory() is FakeGateway
        eps.assert_called_once_with(group=ENTRY_POINT_GROUP)

    def test_nothing_installed(self):
        with (
            patch("contextgw.bootstrap.entry_points", return_value=[]),
            pytest.raises(BootstrapError) as exc_info,
        ):
            load_gateway_factory()
        assert ENTRY_POINT_GROUP in (exc_info.value.hint or "")

    def test_ambiguous_choice(self):
        eps = [_entry_point("a", FakeGateway), _entry_point("b", FakeGateway)]
        with (
            patch("contextgw.bootstrap.entry_points", return_value=eps),
            pytest.raises(BootstrapError, match="a, b"),
        ):
            load_gateway_factory()

    def test_pick_by_name(self):
        other = object()
        eps = [_entry_point("a", other), _entry_point("b", FakeGateway)]
        with patch("contextgw.bootstrap.entry_points", return_value=eps):
            assert load_gateway_factory("b") is FakeGateway
            with pytest.raises(BootstrapError, match="'c'"):
                load_gateway_factory("c")
