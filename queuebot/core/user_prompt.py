"""사용자 한 명에게 보내는 일회성 수락/건너뛰기 프롬프트."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from .containers import compare_user
from .platform import (
    CannotMessageUser,
    MessageContent,
    NotFoundError,
    Platform,
    PlatformError,
    Reaction,
)
from .reaction_handler import ReactionHandler, ReactionOption
from .tasks import spawn

log = logging.getLogger(__name__)


@dataclass
class PromptOption:
    """프롬프트 응답 버튼."""

    emoji: Any
    collect: Callable[[Reaction, Any], Any]


class UserPrompt:
    """DM 으로 보내는 재사용 가능한 프롬프트 메시지.

    DM 을 보낼 수 없으면 fallback_channel 에 대신 보낸다.
    같은 인스턴스로 다시 prompt() 하면 기존 메시지를 수정하므로
    인스턴스당 살아있는 프롬프트 메시지는 항상 하나다.
    cancel() 이후에는 어떤 응답/타임아웃 콜백도 호출되지 않는다.
    """

    def __init__(self, platform: Platform, user: Any, fallback_channel: Any = None) -> None:
        self.platform = platform
        self.user = user
        self.fallback_channel = fallback_channel
        self.channel: Any = None
        self.message: Any = None
        self.reaction_handler: ReactionHandler | None = None
        self.cancelled = False
        self._lock = asyncio.Lock()

    @property
    def is_private(self) -> bool:
        return self.channel is not None and self.channel is not self.fallback_channel

    async def _get_channel(self) -> Any:
        if self.channel is None:
            try:
                self.channel = await self.platform.create_dm(self.user)
            except CannotMessageUser:
                if self.fallback_channel is None:
                    raise
                log.info("DM 전송 불가, 공개 채널로 대체: %s", self.user.id)
                self.channel = self.fallback_channel
        return self.channel

    async def _send(self, content: MessageContent) -> Any:
        channel = await self._get_channel()
        try:
            return await self.platform.send_message(channel, content)
        except CannotMessageUser:
            # DM 채널은 열렸지만 전송이 거부된 경우
            if self.fallback_channel is None or channel is self.fallback_channel:
                raise
            log.info("DM 전송 거부, 공개 채널로 대체: %s", self.user.id)
            self.channel = self.fallback_channel
            return await self.platform.send_message(self.channel, content)

    async def _clear_channel(self) -> None:
        """DM 채널의 다른 메시지 정리 (실패는 무시)."""
        if not self.is_private:
            return
        try:
            messages = await self.platform.fetch_channel_messages(self.channel)
        except PlatformError as ex:
            log.debug("DM 채널 조회 실패: %s", ex)
            return

        keep = self.message.id if self.message is not None else None
        await asyncio.gather(
            *(self.platform.delete_message(m) for m in messages if m.id != keep),
            return_exceptions=True,
        )

    async def prompt(
        self,
        options: Iterable[PromptOption],
        timeout: float | None,
        *,
        timeout_callback: Callable[[Any], Any] | None = None,
        content: MessageContent,
    ) -> None:
        """프롬프트 전송(또는 기존 메시지 수정) 후 응답 수집 시작."""
        async with self._lock:
            if self.cancelled:
                return

            if self.reaction_handler is not None:
                self.reaction_handler.stop()
                self.reaction_handler = None

            await self._get_channel()
            await self._clear_channel()

            if self.message is not None:
                try:
                    await self.platform.edit_message(self.message, content)
                except NotFoundError:
                    self.message = None
            if self.message is None:
                self.message = await self._send(content)

            # 전송 도중 취소되었으면 취소가 우선
            if self.cancelled:
                await self._remove_message()
                return

            wrapped = [
                ReactionOption(emoji=option.emoji, collect=self._wrap_collect(option.collect))
                for option in options
            ]
            self.reaction_handler = ReactionHandler(
                self.platform,
                self.message,
                wrapped,
                timeout=timeout,
                timeout_callback=lambda: self._on_timeout(timeout_callback),
            )

    def _wrap_collect(self, collect: Callable[[Reaction, Any], Any]) -> Callable[[Reaction, Any], Any]:
        def handle(reaction: Reaction, user: Any) -> Any:
            # 대상 사용자가 아니거나 취소된 뒤의 응답은 버튼처럼 즉시 제거
            if self.cancelled or not compare_user(user, self.user):
                return False
            self._teardown()
            collect(reaction, user)
            return None

        return handle

    def _on_timeout(self, callback: Callable[[Any], Any] | None) -> None:
        if self.cancelled:
            return
        self._teardown()
        if callback is not None:
            callback(self.user)

    def _teardown(self) -> None:
        if self.reaction_handler is not None:
            self.reaction_handler.stop()
            self.reaction_handler = None
        spawn(self._remove_message(), name=f"prompt-remove-{self.user.id}")

    async def _remove_message(self) -> None:
        message, self.message = self.message, None
        if message is not None:
            await self.platform.delete_message(message)

    def cancel(self) -> asyncio.Task | None:
        """프롬프트 취소 (여러 번 호출해도 안전). 메시지 삭제 태스크 반환."""
        if self.cancelled:
            return None
        self.cancelled = True
        if self.reaction_handler is not None:
            self.reaction_handler.stop()
            self.reaction_handler = None
        return spawn(self._remove_message(), name=f"prompt-cancel-{self.user.id}")
