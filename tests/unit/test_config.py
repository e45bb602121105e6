"""
Unit tests for server and client configuration.
"""

import pytest

from norman import ServerConfig, ClientConfig
from norman.__main__ import build_parser, config_from_args


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults(self):
        """Test the protocol's default ports and read capacity."""
        config = ServerConfig()

        assert config.port == 7878
        assert config.response_port == 7575
        assert config.buffer_size == 512
        assert config.timeout is None
        assert config.error_policy == "respond"
        config.validate()

    @pytest.mark.parametrize("overrides", [
        {"workers": 0},
        {"port": 70000},
        {"response_port": 0},
        {"buffer_size": 0},
        {"timeout": 0},
        {"error_policy": "ignore"},
    ])
    def test_invalid_values(self, overrides: dict):
        """Test validate() rejects out-of-range settings."""
        config = ServerConfig(**overrides)

        with pytest.raises(ValueError):
            config.validate()

    def test_from_env(self, monkeypatch):
        """Test NORMAN_* environment variables are read."""
        monkeypatch.setenv("NORMAN_HOST", "0.0.0.0")
        monkeypatch.setenv("NORMAN_PORT", "9000")
        monkeypatch.setenv("NORMAN_WORKERS", "8")
        monkeypatch.setenv("NORMAN_RESPONSE_HOST", "10.0.0.7")
        monkeypatch.setenv("NORMAN_RESPONSE_PORT", "9001")
        monkeypatch.setenv("NORMAN_TIMEOUT", "2.5")
        monkeypatch.setenv("NORMAN_ERROR_POLICY", "abort")
        monkeypatch.setenv("NORMAN_LOG_LEVEL", "DEBUG")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 9000
        assert config.workers == 8
        assert config.response_host == "10.0.0.7"
        assert config.response_port == 9001
        assert config.timeout == 2.5
        assert config.error_policy == "abort"
        assert config.log_level == "DEBUG"

    def test_from_env_empty_timeout(self, monkeypatch):
        """Test an empty NORMAN_TIMEOUT means no timeout."""
        monkeypatch.setenv("NORMAN_TIMEOUT", "")

        assert ServerConfig.from_env().timeout is None


class TestClientConfig:
    """Tests for ClientConfig."""

    def test_ephemeral_response_port_allowed(self):
        """Test the client may listen on port 0."""
        ClientConfig(response_port=0).validate()

    def test_request_port_required(self):
        """Test port 0 is not a valid server port."""
        with pytest.raises(ValueError):
            ClientConfig(port=0).validate()


class TestServerCli:
    """Tests for the server command-line arguments."""

    def test_thread_count(self, monkeypatch):
        """Test the positional thread count sets the pool size."""
        monkeypatch.delenv("NORMAN_WORKERS", raising=False)
        args = build_parser().parse_args(["6"])

        assert config_from_args(args).workers == 6

    def test_missing_thread_count(self):
        """Test the thread count is required."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args([])

        assert exc_info.value.code == 2

    def test_non_numeric_thread_count(self):
        """Test a non-numeric thread count is a usage error."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["many"])

        assert exc_info.value.code == 2

    def test_legacy_errors_flag(self):
        """Test --legacy-errors switches to the abort policy."""
        args = build_parser().parse_args(["2", "--legacy-errors", "--port", "9999"])
        config = config_from_args(args)

        assert config.error_policy == "abort"
        assert config.port == 9999

    def test_zero_threads_exits(self, capsys):
        """Test zero threads is a configuration error with status 1."""
        from norman.__main__ import main

        with pytest.raises(SystemExit) as exc_info:
            main(["0"])

        assert exc_info.value.code == 1
        assert "Problem parsing arguments" in capsys.readouterr().err
