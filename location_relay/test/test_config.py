#!/usr/bin/env python3
"""测试配置和日志"""

import logging

from location_relay.utils import (
    RelayConfig,
    configure_logging,
    get_config,
    get_logger,
    reset_config,
    set_config,
    update_config,
)


def test_defaults():
    config = RelayConfig()
    assert config.hub_port == 3000
    assert config.hub_path == "/ws/location"
    assert config.send_queue_size == 256
    assert config.metrics_enabled is False


def test_from_env(monkeypatch):
    monkeypatch.setenv("RELAY_HUB_HOST", "0.0.0.0")
    monkeypatch.setenv("RELAY_HUB_PORT", "8123")
    monkeypatch.setenv("RELAY_HUB_PATH", "/live")
    monkeypatch.setenv("RELAY_SEND_QUEUE_SIZE", "8")
    monkeypatch.setenv("RELAY_SEND_TIMEOUT", "0.5")
    monkeypatch.setenv("RELAY_ENABLE_RICH_LOGGING", "false")
    monkeypatch.setenv("RELAY_METRICS_ENABLED", "yes")

    config = RelayConfig.from_env()

    assert config.hub_host == "0.0.0.0"
    assert config.hub_port == 8123
    assert config.hub_path == "/live"
    assert config.send_queue_size == 8
    assert config.send_timeout == 0.5
    assert config.enable_rich_logging is False
    assert config.metrics_enabled is True


def test_update_and_custom_keys():
    config = RelayConfig()
    config.update(hub_port=9000, region="hk")

    assert config.hub_port == 9000
    assert config.get("region") == "hk"
    assert config.get("missing", 42) == 42
    assert config.to_dict()["region"] == "hk"


def test_global_config(monkeypatch):
    monkeypatch.setenv("RELAY_HUB_PORT", "4000")
    reset_config()
    try:
        assert get_config().hub_port == 4000
        update_config(send_timeout=1.5)
        assert get_config().send_timeout == 1.5

        custom = RelayConfig(hub_port=5000)
        set_config(custom)
        assert get_config() is custom
    finally:
        reset_config()


def test_get_logger_is_namespaced_under_package():
    assert get_logger("hub.relay").name == "location_relay.hub.relay"
    assert get_logger("location_relay.client").name == "location_relay.client"


def test_configure_logging_replaces_handlers(tmp_path):
    log_file = tmp_path / "relay.log"
    logger = configure_logging(level="debug", log_file=str(log_file), enable_rich=False)
    configure_logging(level="debug", log_file=str(log_file), enable_rich=False)
    try:
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2

        get_logger("location_relay.test").info("hello relay")
        for handler in logger.handlers:
            handler.flush()
        assert "hello relay" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


def test_runtime_settings_override_environment(monkeypatch):
    monkeypatch.setenv("RELAY_HUB_PORT", "4000")
    reset_config()
    try:
        update_config(hub_port=4100)
        assert get_config().hub_port == 4100
    finally:
        reset_config()
