"""测试 Hub 配置"""

import pytest

from lan_messenger.utils import HubConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    import os

    for key in list(os.environ):
        if key.startswith("LAN_HUB_"):
            monkeypatch.delenv(key)


def test_defaults():
    config = HubConfig()

    assert config.host == "0.0.0.0"
    assert config.port == 5000
    assert config.ws_port is None
    assert config.enable_eval is True
    assert config.enable_geo is False
    assert config.snapshot_path == "users.json"
    assert config.max_sessions is None
    assert config.default_name == "Anonymous"


def test_from_env(monkeypatch):
    monkeypatch.setenv("LAN_HUB_PORT", "6000")
    monkeypatch.setenv("LAN_HUB_WS_PORT", "6001")
    monkeypatch.setenv("LAN_HUB_ENABLE_GEO", "true")
    monkeypatch.setenv("LAN_HUB_ENABLE_EVAL", "no")
    monkeypatch.setenv("LAN_HUB_MAX_SESSIONS", "3")
    monkeypatch.setenv("LAN_HUB_DRAIN_TIMEOUT", "1.5")
    monkeypatch.setenv("LAN_HUB_READ_TIMEOUT", "")
    monkeypatch.setenv("LAN_HUB_LOG_LEVEL", "DEBUG")

    config = HubConfig.from_env()

    assert config.port == 6000
    assert config.ws_port == 6001
    assert config.enable_geo is True
    assert config.enable_eval is False
    assert config.max_sessions == 3
    assert config.drain_timeout == 1.5
    assert config.read_timeout is None
    assert config.log_level == "DEBUG"


def test_update_ignores_none_and_keeps_unknown_keys():
    config = HubConfig()

    config.update(port=7000, host=None, room="lobby")

    assert config.port == 7000
    assert config.host == "0.0.0.0"
    assert config.get("room") == "lobby"
    assert config.get("missing", "fallback") == "fallback"


def test_to_dict_flattens_custom():
    config = HubConfig()
    config.update(room="lobby")

    data = config.to_dict()

    assert data["port"] == 5000
    assert data["room"] == "lobby"
    assert "custom" not in data
