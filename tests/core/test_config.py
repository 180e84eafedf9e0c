"""
Tests for Configuration Loading.

Flags give the baseline, environment variables override them.
"""

import pytest

from core.config import (
    AgentConfig,
    DumpConfig,
    load_agent_config,
    load_server_config,
    split_address,
)
from core.constants import (
    DEFAULT_ADDRESS,
    DEFAULT_FILE_STORAGE_PATH,
    DEFAULT_STORE_INTERVAL_SECONDS,
)
from core.exceptions import ConfigurationError


class TestServerConfig:
    """Tests for load_server_config."""

    def test_defaults(self):
        config = load_server_config([], env={})

        assert config.address == DEFAULT_ADDRESS
        assert config.database_dsn == ""
        assert config.key == ""
        assert config.dump.store_interval == DEFAULT_STORE_INTERVAL_SECONDS
        assert config.dump.file_storage_path == DEFAULT_FILE_STORAGE_PATH
        assert config.dump.restore is True

    def test_flags(self):
        config = load_server_config(
            ["-a", ":9090", "-i", "0", "-f", "/tmp/x.json", "-r", "false", "-k", "secret"],
            env={},
        )

        assert config.host == "0.0.0.0"
        assert config.port == 9090
        assert config.dump.sync_mode
        assert config.dump.file_storage_path == "/tmp/x.json"
        assert config.dump.restore is False
        assert config.key == "secret"

    def test_env_overrides_flags(self):
        env = {
            "ADDRESS": "127.0.0.1:7000",
            "STORE_INTERVAL": "5",
            "RESTORE": "false",
            "DATABASE_DSN": "sqlite:///metrics.db",
            "KEY": "from-env",
        }
        config = load_server_config(["-a", "localhost:1", "-i", "100", "-k", "flag"], env=env)

        assert config.address == "127.0.0.1:7000"
        assert config.dump.store_interval == 5
        assert config.dump.restore is False
        assert config.database_dsn == "sqlite:///metrics.db"
        assert config.key == "from-env"

    def test_empty_file_path_disables_dump(self):
        config = load_server_config([], env={"FILE_STORAGE_PATH": ""})
        assert not config.dump.enabled

    def test_invalid_store_interval(self):
        with pytest.raises(ConfigurationError):
            load_server_config([], env={"STORE_INTERVAL": "soon"})

    def test_invalid_address(self):
        with pytest.raises(ConfigurationError):
            load_server_config([], env={"ADDRESS": "no-port"})


class TestAgentConfig:
    """Tests for load_agent_config."""

    def test_defaults(self):
        config = load_agent_config([], env={})

        assert config.poll_interval == 2
        assert config.report_interval == 10
        assert config.compress is True
        assert config.updates_url == "http://localhost:8080/updates/"

    def test_env_intervals_map_to_their_own_fields(self):
        config = load_agent_config([], env={"POLL_INTERVAL": "1", "REPORT_INTERVAL": "7"})

        assert config.poll_interval == 1
        assert config.report_interval == 7

    def test_flags(self):
        config = load_agent_config(["-a", "metrics:80", "-p", "3", "-r", "9", "--no-compress"], env={})

        assert config.address == "metrics:80"
        assert config.poll_interval == 3
        assert config.report_interval == 9
        assert config.compress is False

    def test_zero_interval_rejected(self):
        with pytest.raises(ConfigurationError):
            load_agent_config([], env={"POLL_INTERVAL": "0"})


class TestHelpers:
    """Tests for small config helpers."""

    def test_split_address(self):
        assert split_address("localhost:8080") == ("localhost", 8080)
        assert split_address(":8080") == ("0.0.0.0", 8080)

    def test_split_address_bad_port(self):
        with pytest.raises(ConfigurationError):
            split_address("localhost:http")

    def test_dump_config_modes(self):
        assert DumpConfig(store_interval=0).sync_mode
        assert not DumpConfig(store_interval=10).sync_mode
        assert not DumpConfig(file_storage_path="").enabled

    def test_agent_url(self):
        assert AgentConfig(address="10.0.0.1:9000").updates_url == "http://10.0.0.1:9000/updates/"
