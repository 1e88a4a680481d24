"""환경변수 + 대기열 JSON 기반 설정 모듈."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable

from .core.slot_queue import PromptContext, QueueConfigError


@dataclass(frozen=True)
class Config:
    """봇 설정 (환경변수에서 로드)."""

    # Discord
    discord_token: str = ""

    # 대기열 정의 파일
    queue_config_path: str = "config.json"

    # 로그
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Config:
        """환경변수에서 Config 인스턴스 생성."""
        return cls(
            discord_token=os.environ.get("DISCORD_TOKEN", ""),
            queue_config_path=os.environ.get("QUEUE_CONFIG_PATH", "config.json"),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> list[str]:
        """설정 유효성 검사. 오류 목록 반환."""
        errors: list[str] = []
        if not self.discord_token:
            errors.append("DISCORD_TOKEN 누락")
        if not Path(self.queue_config_path).is_file():
            errors.append(f"대기열 설정 파일 없음: {self.queue_config_path}")
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"알 수 없는 LOG_LEVEL: {self.log_level}")
        return errors


def format_template(text: str) -> Callable[[PromptContext], str]:
    """설정 문자열의 {user} {skip} {timeout} 자리표시자를 채우는 템플릿 함수."""

    def render(context: PromptContext) -> str:
        counts = context.counts
        return text.format(
            user=getattr(context.user, "mention", context.user),
            skip=counts.skip if counts else 0,
            timeout=counts.timeout if counts else 0,
        )

    return render


@dataclass(frozen=True)
class QueueConfig:
    """대기열 하나의 설정."""

    title: str
    existing_message: int | None = None
    require_available: bool = False
    max_active: int | None = None

    # 초 단위
    pending_timeout: float = 600.0
    max_pending_timeouts: int = 1
    max_pending_skips: int = 3

    queue_emoji: str = "🎫"
    available_emoji: str = "📋"
    accept_emoji: str = "✔️"
    skip_emoji: str = "✖️"

    prompt_accept_or_skip_message: str | None = None
    prompt_accept_message: str | None = None

    message_debounce: float = 0.3

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueueConfig:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise QueueConfigError(f"알 수 없는 대기열 설정: {', '.join(sorted(unknown))}")
        if not data.get("title"):
            raise QueueConfigError("대기열 title 누락")
        config = cls(**data)
        config.validate()
        return config

    def validate(self) -> None:
        if not self.require_available and not self.max_active:
            raise QueueConfigError(
                f"'{self.title}': require_available 또는 max_active 설정이 필요합니다"
            )
        if self.max_active is not None and self.max_active < 0:
            raise QueueConfigError(f"'{self.title}': max_active 는 0 이상이어야 합니다")
        if self.max_pending_timeouts < 1 or self.max_pending_skips < 1:
            raise QueueConfigError(f"'{self.title}': 최대 타임아웃/건너뛰기 횟수는 1 이상이어야 합니다")

    def slot_queue_kwargs(self) -> dict[str, Any]:
        """SlotQueue 생성 인자 (title 제외)."""
        kwargs: dict[str, Any] = {
            "existing_message": self.existing_message,
            "require_available": self.require_available,
            "max_active": self.max_active,
            "pending_timeout": self.pending_timeout,
            "max_pending_timeouts": self.max_pending_timeouts,
            "max_pending_skips": self.max_pending_skips,
            "queue_emoji": self.queue_emoji,
            "available_emoji": self.available_emoji,
            "accept_emoji": self.accept_emoji,
            "skip_emoji": self.skip_emoji,
            "message_debounce": self.message_debounce,
        }
        if self.prompt_accept_or_skip_message:
            kwargs["prompt_accept_or_skip_message"] = format_template(self.prompt_accept_or_skip_message)
        if self.prompt_accept_message:
            kwargs["prompt_accept_message"] = format_template(self.prompt_accept_message)
        return kwargs


@dataclass(frozen=True)
class ChannelConfig:
    """채널 하나와 그 채널에 게시할 대기열 목록."""

    channel_id: int
    clear: bool = False
    queues: list[QueueConfig] = field(default_factory=list)


def load_queue_config(path: str | Path) -> list[ChannelConfig]:
    """대기열 JSON 파일 로드.

    형식: {"channels": {"<채널 id>": {"clear": false, "queues": [{...}]}}}
    """
    resolved = Path(path).resolve()
    if not resolved.is_file():
        raise FileNotFoundError(f"{resolved} 파일을 찾을 수 없습니다")

    data = json.loads(resolved.read_text(encoding="utf-8"))
    channels = data.get("channels")
    if not isinstance(channels, dict) or not channels:
        raise QueueConfigError("channels 항목이 비어 있습니다")

    out: list[ChannelConfig] = []
    for channel_id, channel_data in channels.items():
        out.append(
            ChannelConfig(
                channel_id=int(channel_id),
                clear=bool(channel_data.get("clear", False)),
                queues=[QueueConfig.from_dict(q) for q in channel_data.get("queues", [])],
            )
        )
    return out
