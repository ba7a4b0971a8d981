"""Tests for configuration loading (webwx_relay.config)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from webwx_relay.config import RelayConfig, load_config


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "wechat_config.json"
    path.write_text(
        json.dumps(
            {
                "notify_interval": 120,
                "notify_to": ["json@example.com"],
                "detail": False,
                "forward_to": "Boss",
            }
        ),
        encoding="utf-8",
    )
    return path


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "missing.json"), env={})

        assert config == RelayConfig()
        assert config.notify_interval == 60.0
        assert config.batch_capacity == 9999
        assert not config.email_enabled

    def test_json_file_overrides_defaults(self, config_file: Path) -> None:
        config = load_config(str(config_file), env={})

        assert config.notify_interval == 120.0
        assert config.notify_to == ("json@example.com",)
        assert config.detail is False
        assert config.email_enabled

    def test_environment_overrides_file(self, config_file: Path) -> None:
        env = {
            "WECHAT_NOTIFY_TO": "a@example.com, b@example.com",
            "WECHAT_DETAIL": "true",
            "WECHAT_NOTIFY_INTERVAL": "30",
        }

        config = load_config(str(config_file), env=env)

        assert config.notify_to == ("a@example.com", "b@example.com")
        assert config.detail is True
        assert config.notify_interval == 30.0
        assert config.forward_to == "Boss"

    def test_overrides_win_and_none_is_ignored(self, config_file: Path) -> None:
        config = load_config(
            str(config_file),
            env={"WECHAT_FORWARD_TO": "Env"},
            overrides={"forward_to": "Cli", "notify_to": None, "detail": None},
        )

        assert config.forward_to == "Cli"
        assert config.notify_to == ("json@example.com",)
        assert config.detail is False

    def test_corrupt_file_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")

        assert load_config(str(path), env={}) == RelayConfig()

    def test_unknown_and_invalid_keys_are_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "odd.json"
        path.write_text(
            json.dumps({"colour": "blue", "notify_interval": "soon", "scan_attempts": 4}),
            encoding="utf-8",
        )

        config = load_config(str(path), env={})

        assert config.notify_interval == 60.0
        assert config.scan_attempts == 4
