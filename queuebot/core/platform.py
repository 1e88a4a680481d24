"""메시징 플랫폼 협력자 인터페이스.

코어(SlotQueue / UserPrompt / ReactionHandler)는 이 모듈의 Platform 프로토콜만
사용하고, 실제 구현(discord.py 어댑터, 테스트용 가짜 플랫폼)은 생성 시 주입된다.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Union

import discord

log = logging.getLogger(__name__)

MessageContent = Union[str, discord.Embed]

COLLECTOR_EVENTS = ("collect", "remove", "dispose", "end")


class PlatformError(Exception):
    """플랫폼 호출 실패."""


class NotFoundError(PlatformError):
    """이미 삭제된 메시지/리액션 (404). 재조정 로직에서는 '이미 일치'로 취급."""


class CannotMessageUser(PlatformError):
    """사용자에게 DM 을 보낼 수 없음."""


@dataclass(frozen=True)
class Reaction:
    """옵션 콜백에 전달되는 리액션 정보."""

    message: Any
    emoji: Any


@dataclass
class ReactionSnapshot:
    """fetch_reactions 결과: 이모지와 현재 리액션한 사용자 목록."""

    emoji: Any
    users: list[Any] = field(default_factory=list)


class ReactionCollector:
    """메시지 하나에 대한 취소 가능한 리액션 이벤트 구독.

    collect / remove / dispose 이벤트를 전달하고, timeout 이 지나면
    reason="time" 으로 end 이벤트를 보낸다. stop() 이후에는 아무 이벤트도
    전달하지 않는다.
    """

    def __init__(
        self,
        message: Any,
        *,
        timeout: float | None = None,
        on_stop: Callable[[ReactionCollector], None] | None = None,
    ) -> None:
        self.message = message
        self.timeout = timeout
        self.ended = False
        self.end_reason: str | None = None
        self._on_stop = on_stop
        self._listeners: dict[str, list[Callable[..., Any]]] = {
            name: [] for name in COLLECTOR_EVENTS
        }
        self._timeout_task: asyncio.Task | None = None
        if timeout:
            self._timeout_task = asyncio.create_task(self._timeout_countdown())

    def on(self, event: str, callback: Callable[..., Any]) -> ReactionCollector:
        if event not in self._listeners:
            raise ValueError(f"알 수 없는 이벤트: {event}")
        self._listeners[event].append(callback)
        return self

    async def _timeout_countdown(self) -> None:
        await asyncio.sleep(self.timeout)  # type: ignore[arg-type]
        self.stop("time")

    def handle(self, event: str, emoji: Any, user: Any) -> None:
        """플랫폼 이벤트 하나를 리스너에게 전달."""
        if self.ended:
            return
        reaction = Reaction(message=self.message, emoji=emoji)
        for callback in list(self._listeners[event]):
            callback(reaction, user)

    def stop(self, reason: str = "user") -> None:
        if self.ended:
            return
        self.ended = True
        self.end_reason = reason
        if reason != "time" and self._timeout_task and not self._timeout_task.done():
            self._timeout_task.cancel()
        if self._on_stop is not None:
            self._on_stop(self)
        for callback in list(self._listeners["end"]):
            callback(reason)


class CollectorRegistry:
    """메시지 id → 활성 ReactionCollector 목록. 플랫폼 구현들이 공유."""

    def __init__(self) -> None:
        self._collectors: dict[Any, list[ReactionCollector]] = {}

    def create(self, message: Any, timeout: float | None = None) -> ReactionCollector:
        collector = ReactionCollector(message, timeout=timeout, on_stop=self._discard)
        self._collectors.setdefault(message.id, []).append(collector)
        return collector

    def _discard(self, collector: ReactionCollector) -> None:
        collectors = self._collectors.get(collector.message.id, [])
        if collector in collectors:
            collectors.remove(collector)
        if not collectors:
            self._collectors.pop(collector.message.id, None)

    def active(self, message_id: Any) -> list[ReactionCollector]:
        return list(self._collectors.get(message_id, []))

    def dispatch(self, event: str, message_id: Any, emoji: Any, user: Any) -> int:
        """이벤트를 해당 메시지의 모든 collector 에 전달. 전달 수 반환."""
        collectors = self.active(message_id)
        for collector in collectors:
            collector.handle(event, emoji, user)
        return len(collectors)


class Platform(Protocol):
    """코어가 필요로 하는 메시징 플랫폼 기능."""

    @property
    def bot_user(self) -> Any: ...

    async def send_message(self, channel: Any, content: MessageContent) -> Any: ...

    async def edit_message(self, message: Any, content: MessageContent) -> Any: ...

    async def delete_message(self, message: Any) -> None: ...

    async def fetch_message(self, channel: Any, message_id: int) -> Any: ...

    async def fetch_channel_messages(self, channel: Any) -> list[Any]: ...

    async def react(self, message: Any, emoji: Any) -> None: ...

    async def remove_reaction(self, message: Any, emoji: Any, user: Any) -> None: ...

    async def clear_reaction(self, message: Any, emoji: Any) -> None: ...

    async def fetch_reactions(self, message: Any) -> list[ReactionSnapshot]: ...

    async def create_dm(self, user: Any) -> Any: ...

    def collect_reactions(
        self, message: Any, timeout: float | None = None
    ) -> ReactionCollector: ...
