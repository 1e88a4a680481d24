"""Tests for environment and queue file configuration."""

import json

import pytest

from queuebot.config import Config, QueueConfig, format_template, load_queue_config
from queuebot.core.slot_queue import AttemptCounts, PromptContext, QueueConfigError
from tests.fakes import FakeUser


def write_config(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return path


def test_config_from_env(monkeypatch, tmp_path):
    path = write_config(tmp_path, {})
    monkeypatch.setenv("DISCORD_TOKEN", "token")
    monkeypatch.setenv("QUEUE_CONFIG_PATH", str(path))
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = Config.from_env()

    assert config.log_level == "DEBUG"
    assert config.validate() == []


def test_config_validate_reports_all_errors(tmp_path):
    config = Config(queue_config_path=str(tmp_path / "missing.json"), log_level="LOUD")
    errors = config.validate()

    assert len(errors) == 3
    assert errors[0] == "DISCORD_TOKEN 누락"


def test_load_queue_config(tmp_path):
    path = write_config(
        tmp_path,
        {
            "channels": {
                "123": {
                    "clear": True,
                    "queues": [
                        {"title": "레이드", "max_active": 4, "pending_timeout": 30},
                        {"title": "도우미", "require_available": True, "existing_message": 55},
                    ],
                }
            }
        },
    )

    [channel] = load_queue_config(path)

    assert channel.channel_id == 123
    assert channel.clear is True
    assert [q.title for q in channel.queues] == ["레이드", "도우미"]
    kwargs = channel.queues[0].slot_queue_kwargs()
    assert kwargs["max_active"] == 4
    assert kwargs["pending_timeout"] == 30
    assert "prompt_accept_message" not in kwargs
    assert channel.queues[1].slot_queue_kwargs()["existing_message"] == 55


def test_load_queue_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_queue_config(tmp_path / "nope.json")


def test_load_queue_config_requires_channels(tmp_path):
    with pytest.raises(QueueConfigError):
        load_queue_config(write_config(tmp_path, {"channels": {}}))


@pytest.mark.parametrize(
    "data",
    [
        {"max_active": 2},
        {"title": "레이드"},
        {"title": "레이드", "max_active": 2, "colour": "red"},
        {"title": "레이드", "max_active": 2, "max_pending_skips": 0},
    ],
)
def test_invalid_queue_config(data):
    with pytest.raises(QueueConfigError):
        QueueConfig.from_dict(data)


def test_format_template():
    render = format_template("{user} 님 (건너뛰기 {skip}회, 시간초과 {timeout}회)")
    context = PromptContext(user=FakeUser(5), counts=AttemptCounts(timeout=1, skip=2))

    assert render(context) == "<@5> 님 (건너뛰기 2회, 시간초과 1회)"
    assert render(PromptContext(user=FakeUser(5), counts=None)).endswith("(건너뛰기 0회, 시간초과 0회)")


def test_configured_templates_are_passed_to_queue():
    config = QueueConfig.from_dict({"title": "레이드", "max_active": 1, "prompt_accept_message": "{user} 차례"})
    kwargs = config.slot_queue_kwargs()

    assert kwargs["prompt_accept_message"](PromptContext(user=FakeUser(9), counts=None)) == "<@9> 차례"
