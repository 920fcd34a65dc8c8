import dataclasses
import logging

import pytest

from app.rpc_proxy import config as config_module
from app.rpc_proxy.config import ProxyConfig


def test_create_normalizes_origins_to_tuple():
    config = ProxyConfig.create(
        base_url="https://rpc.example.com",
        ws_url="wss://rpc.example.com",
        api_key="KEY",
        allowed_origins=["https://a.example.com"],
    )
    assert config.allowed_origins == ("https://a.example.com",)
    assert config.timeout == 300.0


def test_create_without_origins():
    config = ProxyConfig.create("https://rpc.example.com", "wss://x", "KEY")
    assert config.allowed_origins == ()


def test_config_is_immutable():
    config = ProxyConfig.create("https://rpc.example.com", "wss://x", "KEY")
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.api_key = "other"


def test_from_env_reads_vars(monkeypatch):
    monkeypatch.setattr(config_module.env, "HELIUS_BASE_URL", "https://rpc.example.com/")
    monkeypatch.setattr(config_module.env, "HELIUS_WS_URL", "wss://rpc.example.com")
    monkeypatch.setattr(config_module.env, "HELIUS_API_KEY", "KEY")
    monkeypatch.setattr(config_module.env, "CORS_ALLOW_ORIGIN", ["https://a.example.com"])
    monkeypatch.setattr(config_module.env, "PROXY_TIMEOUT", 30.0)

    config = ProxyConfig.from_env()

    assert config == ProxyConfig(
        base_url="https://rpc.example.com/",
        ws_url="wss://rpc.example.com",
        api_key="KEY",
        allowed_origins=("https://a.example.com",),
        timeout=30.0,
    )


def test_from_env_warns_on_missing_settings(monkeypatch, caplog):
    monkeypatch.setattr(config_module.env, "HELIUS_BASE_URL", "")
    monkeypatch.setattr(config_module.env, "HELIUS_WS_URL", "")
    monkeypatch.setattr(config_module.env, "HELIUS_API_KEY", "")

    with caplog.at_level(logging.WARNING, logger="uvicorn.error"):
        ProxyConfig.from_env()

    messages = " ".join(r.getMessage() for r in caplog.records)
    assert "HELIUS_BASE_URL" in messages
    assert "HELIUS_API_KEY" in messages
    assert "HELIUS_WS_URL" in messages


@pytest.mark.parametrize("raw", [",", " ", " , ,"])
def test_from_env_warns_when_allow_list_parses_to_nothing(monkeypatch, caplog, raw):
    monkeypatch.setattr(config_module.env, "HELIUS_BASE_URL", "https://rpc.example.com")
    monkeypatch.setattr(config_module.env, "HELIUS_WS_URL", "wss://rpc.example.com")
    monkeypatch.setattr(config_module.env, "HELIUS_API_KEY", "KEY")
    monkeypatch.setattr(config_module.env, "CORS_ALLOW_ORIGIN_RAW", raw)
    monkeypatch.setattr(config_module.env, "CORS_ALLOW_ORIGIN", [])

    with caplog.at_level(logging.WARNING, logger="uvicorn.error"):
        config = ProxyConfig.from_env()

    assert config.allowed_origins == ()
    assert any(
        "CORS_ALLOW_ORIGIN" in r.getMessage() and "allowing all origins" in r.getMessage()
        for r in caplog.records
    )


def test_from_env_no_warning_for_unset_allow_list(monkeypatch, caplog):
    monkeypatch.setattr(config_module.env, "HELIUS_BASE_URL", "https://rpc.example.com")
    monkeypatch.setattr(config_module.env, "HELIUS_WS_URL", "wss://rpc.example.com")
    monkeypatch.setattr(config_module.env, "HELIUS_API_KEY", "KEY")
    monkeypatch.setattr(config_module.env, "CORS_ALLOW_ORIGIN_RAW", "")
    monkeypatch.setattr(config_module.env, "CORS_ALLOW_ORIGIN", [])

    with caplog.at_level(logging.WARNING, logger="uvicorn.error"):
        ProxyConfig.from_env()

    assert not any("CORS_ALLOW_ORIGIN" in r.getMessage() for r in caplog.records)
