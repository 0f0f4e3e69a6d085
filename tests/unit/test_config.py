"""
Unit tests for server configuration.
"""

import pytest

from webhelper import ServerConfig


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults_are_valid(self):
        config = ServerConfig()
        config.validate()

        assert config.address == "127.0.0.1:8080"
        assert config.log_format == "text"

    @pytest.mark.parametrize("overrides", [
        {"port": 70000},
        {"port": -1},
        {"workers": 0},
        {"queue_size": 0},
        {"buffer_size": 100},
        {"timeout": 0},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()

    def test_lowercase_log_level_accepted(self):
        ServerConfig(log_level="debug").validate()


class TestFromAddress:
    """Tests for ServerConfig.from_address()."""

    def test_empty_host(self):
        config = ServerConfig.from_address(":8080")
        assert (config.host, config.port) == ("0.0.0.0", 8080)

    def test_host_and_port(self):
        config = ServerConfig.from_address("localhost:3000", workers=4)
        assert (config.host, config.port, config.workers) == ("localhost", 3000, 4)

    def test_ipv6(self):
        config = ServerConfig.from_address("[::1]:8080")
        assert config.host == "::1"

    @pytest.mark.parametrize("address", ["8080", "localhost:http", "host:"])
    def test_invalid(self, address):
        with pytest.raises(ValueError):
            ServerConfig.from_address(address)


class TestFromEnv:
    """Tests for ServerConfig.from_env()."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("WEBHELPER_HOST", "0.0.0.0")
        monkeypatch.setenv("WEBHELPER_PORT", "9000")
        monkeypatch.setenv("WEBHELPER_WORKERS", "3")
        monkeypatch.setenv("WEBHELPER_LOG_FORMAT", "json")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 9000
        assert config.workers == 3
        assert config.log_format == "json"

    def test_defaults(self, monkeypatch):
        for name in ("HOST", "PORT", "WORKERS", "TIMEOUT", "LOG_LEVEL", "LOG_FORMAT"):
            monkeypatch.delenv(f"WEBHELPER_{name}", raising=False)

        config = ServerConfig.from_env()

        assert config.port == 8080
        assert config.timeout == 30.0
