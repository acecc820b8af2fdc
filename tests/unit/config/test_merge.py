"""Tests for layered merge and end-to-end resolution.

Covers:
- merge_layers: disjoint union, precedence, wholesale sequence replacement,
  per-sub-field record merge, input immutability, source tracking
- resolve_config: loaders wired in order, validation, explain mode
"""

from __future__ import annotations

import copy
from unittest.mock import patch

import pytest

from contextgw.config import (
    FieldOrigin,
    Origin,
    merge_layers,
    resolve_config,
    was_field_overridden,
)
from contextgw.errors import ConfigValidationError

pytestmark = pytest.mark.unit


class TestMergeLayers:
    """Pure precedence merge."""

    def test_all_empty(self):
        merged, src = merge_layers({}, {}, {})
        assert merged == {}
        assert src == {}

    def test_disjoint_layers_union(self, private_key):
        merged, src = merge_layers(
            {"privateKey": private_key},
            {"relays": ["wss://a"]},
            {"server": ["node"]},
        )

        assert merged == {
            "privateKey": private_key,
            "relays": ["wss://a"],
            "server": ["node"],
        }
        assert src["privateKey"].origin is Origin.ENV
        assert src["relays"].origin is Origin.FILE
        assert src["server"].origin is Origin.CLI

    def test_cli_beats_file_beats_env(self):
        merged, src = merge_layers(
            {"encryptionMode": "disabled", "public": False},
            {"encryptionMode": "optional", "public": True},
            {"encryptionMode": "required"},
        )

        assert merged["encryptionMode"] == "required"
        assert merged["public"] is True
        assert src["encryptionMode"].origin is Origin.CLI
        assert src["public"].origin is Origin.FILE

    def test_sequences_are_replaced_wholesale(self):
        """env a,b then file [c] resolves to [c], never a union."""
        merged, _ = merge_layers({"relays": ["wss://a", "wss://b"]}, {"relays": ["wss://c"]}, {})
        assert merged["relays"] == ["wss://c"]

        merged, _ = merge_layers(
            {"allowedPublicKeys": ["k1", "k2", "k3"]}, {}, {"allowedPublicKeys": ["k9"]}
        )
        assert merged["allowedPublicKeys"] == ["k9"]

    def test_false_and_empty_values_still_override(self):
        merged, _ = merge_layers({"public": True}, {}, {"public": False})
        assert merged["public"] is False

    def test_server_info_merged_per_sub_field(self):
        merged, src = merge_layers(
            {"serverInfo": {"name": "env-name", "picture": "env-pic"}},
            {"serverInfo": {"name": "file-name"}},
            {"serverInfo": {"website": "https://cli"}},
        )

        assert merged["serverInfo"] == {
            "name": "file-name",
            "picture": "env-pic",
            "website": "https://cli",
        }
        assert src["serverInfo.name"].origin is Origin.FILE
        assert src["serverInfo.picture"].origin is Origin.ENV
        assert src["serverInfo.website"].origin is Origin.CLI

    def test_inputs_are_not_mutated(self):
        env = {"relays": ["wss://a"], "serverInfo": {"name": "a"}}
        file = {"serverInfo": {"picture": "p"}}
        cli = {"relays": ["wss://b"]}
        snapshot = copy.deepcopy((env, file, cli))

        merged, _ = merge_layers(env, file, cli)
        merged["relays"].append("wss://mutated")
        merged["serverInfo"]["name"] = "mutated"

        assert (env, file, cli) == snapshot

    def test_source_hints(self, tmp_path):
        path = tmp_path / "contextgw.config.yml"
        _, src = merge_layers(
            {"serverInfo": {"name": "x"}},
            {"relays": ["wss://a"]},
            {"privateKey": "k"},
            file_path=path,
        )

        assert src["serverInfo.name"] == FieldOrigin(
            origin=Origin.ENV, env_key="GW_SERVER_INFO_NAME"
        )
        assert src["relays"] == FieldOrigin(origin=Origin.FILE, file=str(path))
        assert src["privateKey"] == FieldOrigin(origin=Origin.CLI, flag="--private-key")


class TestResolveConfig:
    """End-to-end resolution with loaders patched or real."""

    def test_resolves_from_environment_only(self, private_key):
        env = {
            "GW_SERVER": "node server.js",
            "GW_PRIVATE_KEY": private_key,
            "GW_RELAYS": "wss://a,wss://b",
        }

        cfg = resolve_config(environ=env)

        assert cfg.server == ("node", "server.js")
        assert cfg.relays == ("wss://a", "wss://b")
        assert cfg.public is False

    def test_precedence_across_real_sources(self, private_key, write_config):
        write_config(
            "relays: [wss://file]\n"
            "public: true\n"
            "serverInfo:\n  name: from-file\n"
        )
        env = {
            "GW_SERVER": "node server.js",
            "GW_PRIVATE_KEY": private_key,
            "GW_RELAYS": "wss://env1,wss://env2",
            "GW_PUBLIC": "false",
            "GW_SERVER_INFO_PICTURE": "https://env/pic.png",
        }

        cfg, src = resolve_config(
            ["--encryption-mode", "required", "--", "python", "-m", "srv"],
            environ=env,
            explain=True,
        )

        assert cfg.server == ("python", "-m", "srv")
        assert cfg.relays == ("wss://file",)
        assert cfg.public is True
        assert dict(cfg.server_info) == {
            "name": "from-file",
            "picture": "https://env/pic.png",
        }
        assert cfg.encryption_mode.value == "required"
        assert src["server"].origin is Origin.CLI
        assert src["relays"].origin is Origin.FILE
        assert src["privateKey"].origin is Origin.ENV

    def test_validation_errors_list_every_missing_field(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            resolve_config(environ={})
        assert {"server", "privateKey", "relays"} <= set(exc_info.value.paths)

    def test_defaults_are_marked_in_source_map(self, minimal_partial):
        with (
            patch("contextgw.config.loaders.load_env", return_value=minimal_partial),
            patch("contextgw.config.loaders.load_file", return_value={}),
        ):
            _, src = resolve_config(explain=True, environ={})

        assert src["public"].origin is Origin.DEFAULT
        assert src["encryptionMode"].origin is Origin.DEFAULT
        assert src["allowedPublicKeys"].origin is Origin.DEFAULT
        assert not was_field_overridden(src, "public")
        assert was_field_overridden(src, "relays")
        assert not was_field_overridden(src, "serverInfo.name")

    def test_loaders_receive_explicit_inputs(self, tmp_path):
        path = tmp_path / "custom.yml"
        env = {"GW_SERVER": "node"}
        with (
            patch("contextgw.config.loaders.load_env", return_value={}) as env_mock,
            patch("contextgw.config.loaders.load_file", return_value={}) as file_mock,
            patch("contextgw.config.loaders.load_cli", return_value={}) as cli_mock,
            pytest.raises(ConfigValidationError),
        ):
            resolve_config(["--public"], environ=env, path=path)

        env_mock.assert_called_once_with(env)
        file_mock.assert_called_once_with(path)
        cli_mock.assert_called_once_with(["--public"])

    def test_debug_audit_warning(self, minimal_partial):
        env = {"GW_DEBUG_CONFIG": "1"}
        with (
            patch("contextgw.config.loaders.load_env", return_value=minimal_partial),
            pytest.warns(UserWarning, match="Config audit") as record,
        ):
            resolve_config(environ=env)

        text = str(record[0].message)
        assert "privateKey: env:GW_PRIVATE_KEY [REDACTED]" in text
        assert minimal_partial["privateKey"] not in text

    def test_no_audit_warning_by_default(self, minimal_partial, recwarn):
        with patch("contextgw.config.loaders.load_env", return_value=minimal_partial):
            resolve_config(environ={})
        assert not [w for w in recwarn if "Config audit" in str(w.message)]
