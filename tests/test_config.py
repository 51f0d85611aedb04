"""
Tests for compound_chat.config.
"""
from __future__ import annotations

import pytest

from compound_chat.config import (
    BotConfig,
    SecurityConfig,
    _expand_env_vars,
    generate_master_key,
    get_data_dir,
    load_config,
    save_config,
)
from compound_chat.errors import ConfigError

from conftest import MASTER_KEY_HEX


class TestEnvExpansion:

    def test_expands_set_variable(self, monkeypatch):
        monkeypatch.setenv("CC_TEST_RPC", "https://rpc.example")
        assert _expand_env_vars("${CC_TEST_RPC}/v1") == "https://rpc.example/v1"

    def test_leaves_unset_variable(self, monkeypatch):
        monkeypatch.delenv("CC_TEST_MISSING", raising=False)
        assert _expand_env_vars("${CC_TEST_MISSING}") == "${CC_TEST_MISSING}"


class TestMasterKey:

    def test_valid_key(self):
        assert SecurityConfig(master_key=MASTER_KEY_HEX).master_key_bytes() == b"\x11" * 32

    def test_0x_prefix_allowed(self):
        assert len(SecurityConfig(master_key="0x" + "ab" * 40).master_key_bytes()) == 40

    @pytest.mark.parametrize(
        "value",
        ["", "${MASTER_ENCRYPTION_KEY}", "zz" * 32, "11" * 16],
    )
    def test_invalid_keys(self, value):
        with pytest.raises(ConfigError):
            SecurityConfig(master_key=value).master_key_bytes()

    def test_default_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MASTER_ENCRYPTION_KEY", MASTER_KEY_HEX)
        path = tmp_path / "config.yaml"
        save_config(BotConfig(), path)
        assert load_config(path).security.master_key_bytes() == b"\x11" * 32

    def test_generated_key_is_valid(self):
        assert len(SecurityConfig(master_key=generate_master_key()).master_key_bytes()) == 32


class TestLoadSave:

    def test_round_trip(self, tmp_path):
        config = BotConfig()
        config.chain.network = "ethereum"
        config.session.timeout_seconds = 120
        path = tmp_path / "nested" / "config.yaml"
        save_config(config, path)

        loaded = load_config(path)
        assert loaded.chain.network == "ethereum"
        assert loaded.session.timeout_seconds == 120
        assert loaded.rate_limit.max_messages == 10

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        config = load_config(path)
        assert config.chain.network == "sepolia"
        assert config.session.cancel_keywords == ["cancel", "stop", "abort"]

    def test_data_dir(self, tmp_path):
        assert not get_data_dir(tmp_path, create=False).exists()
        data_dir = get_data_dir(tmp_path)
        assert data_dir == tmp_path / ".compound-chat"
        assert data_dir.is_dir()
