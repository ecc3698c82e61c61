"""
Configuration Tests
===================
"""

import gzip
import logging

import pytest

from tradefeed_agent.backoff import BackoffSettings
from tradefeed_agent.config import HourlyRotatingFileHandler, Settings, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "TRADEFEED_STREAM_URL",
        "TRADEFEED_BEARER_TOKEN",
        "TRADEFEED_IDLE_TIMEOUT",
        "TRADEFEED_CONNECT_TIMEOUT",
        "TRADEFEED_MAX_QUEUE_SIZE",
        "TRADEFEED_AGENT_PORT",
        "TRADEFEED_LOG_LEVEL",
        "TRADEFEED_LOG_FILE",
        "PORT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:

    def test_stream_defaults(self):
        settings = Settings()
        assert settings.stream.idle_timeout_seconds == 90.0
        assert settings.stream.connect_timeout_seconds == 30.0
        assert settings.stream.bearer_token == ""

    def test_backoff_defaults_match_policy(self):
        assert Settings().backoff.to_settings() == BackoffSettings()

    def test_token_not_in_repr(self):
        settings = Settings.model_validate({"stream": {"bearer_token": "s3cret"}})
        assert "s3cret" not in repr(settings)


class TestLoadConfig:

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "stream:\n"
            "  url: https://feed.example.com/stream\n"
            "  idle_timeout_seconds: 45\n"
            "backoff:\n"
            "  server_error_cap_seconds: 120\n"
        )

        settings = load_config(str(path))

        assert settings.stream.url == "https://feed.example.com/stream"
        assert settings.stream.idle_timeout_seconds == 45.0
        assert settings.backoff.to_settings().server_error_cap_sec == 120.0

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("stream:\n  idle_timeout_seconds: 45\n")
        monkeypatch.setenv("TRADEFEED_IDLE_TIMEOUT", "12.5")
        monkeypatch.setenv("TRADEFEED_BEARER_TOKEN", "tok")
        monkeypatch.setenv("TRADEFEED_MAX_QUEUE_SIZE", "10")

        settings = load_config(str(path))

        assert settings.stream.idle_timeout_seconds == 12.5
        assert settings.stream.bearer_token == "tok"
        assert settings.stream.max_queue_size == 10

    def test_port_precedence(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TRADEFEED_AGENT_PORT", "9000")
        monkeypatch.setenv("PORT", "8080")

        settings = load_config(str(tmp_path / "missing.yaml"))

        assert settings.server.port == 8080

    def test_invalid_value_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("stream:\n  idle_timeout_seconds: 0\n")

        with pytest.raises(ValueError):
            load_config(str(path))


class TestLogRotation:
    """Hourly file handler with a size cap and gzip archives."""

    def test_logging_defaults(self):
        settings = Settings()
        assert settings.logging.file_max_bytes == 20 * 1024 * 1024
        assert settings.logging.file_compress is True
        assert settings.stream.min_reconnect_interval_seconds == 1.0

    def test_size_cap_rolls_into_gzip_archives(self, tmp_path):
        path = tmp_path / "agent.log"
        handler = HourlyRotatingFileHandler(str(path), max_bytes=256, backup_count=3)
        handler.setFormatter(logging.Formatter("%(message)s"))
        log = logging.getLogger("tradefeed_agent.tests.rotation")
        log.propagate = False
        log.setLevel(logging.INFO)
        log.addHandler(handler)

        try:
            for _ in range(100):
                log.info("x" * 40)
        finally:
            log.removeHandler(handler)
            handler.close()

        archives = sorted(p for p in tmp_path.iterdir() if p.name != "agent.log")
        assert 1 <= len(archives) <= 3
        assert all(p.name.endswith(".gz") for p in archives)
        for archive in archives:
            with gzip.open(archive, "rt") as f:
                assert "x" * 40 in f.read()
        assert path.stat().st_size <= 256
