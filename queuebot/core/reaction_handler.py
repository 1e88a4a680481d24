"""메시지의 리액션 상태를 선언된 옵션 목록과 맞춰 유지하는 재조정 엔진.

플랫폼의 실제 리액션 상태는 언제든 바뀔 수 있으므로, 이벤트가 올 때마다
(디바운스를 거쳐) 전체 상태를 다시 가져와 다음을 수행한다.

- 옵션이 없거나 condition 이 꺼진 이모지: 봇 리액션 제거
  (default_option.validate 가 거부하면 이모지 전체 제거)
- 옵션이 있는 이모지: validate 를 통과하지 못한 사용자 리액션 제거
- condition 이 켜진 옵션 중 봇 리액션이 없는 것: 봇이 리액션 추가
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from .containers import ComparisonSet, EmojiMap, compare_emoji, compare_user
from .debounce import Debouncer
from .platform import NotFoundError, Platform, Reaction, ReactionCollector
from .tasks import spawn

log = logging.getLogger(__name__)

REBUILD_DEBOUNCE = 0.3  # 초

ReactionCallback = Callable[[Reaction, Any], Any]


@dataclass
class ReactionOption:
    """리액션 버튼 하나의 동작 정의.

    collect 가 False 를 반환하면 해당 리액션을 즉시 제거한다 (버튼처럼 동작).
    validate 는 사용자의 리액션을 유지할지, condition 은 봇이 리액션을
    표시할지를 결정한다.
    """

    emoji: Any = None
    collect: ReactionCallback | None = None
    remove: ReactionCallback | None = None
    dispose: ReactionCallback | None = None
    validate: Callable[[Reaction, Any], bool] | None = None
    condition: Callable[[], bool] | None = None

    def has(self, name: str) -> bool:
        return getattr(self, name, None) is not None

    def is_shown(self) -> bool:
        return self.condition is None or bool(self.condition())


class ReactionHandler:
    """리액션 재조정 + 이벤트 디스패치."""

    def __init__(
        self,
        platform: Platform,
        message: Any,
        options: Iterable[ReactionOption],
        *,
        timeout: float | None = 0,
        default_option: ReactionOption | None = None,
        timeout_callback: Callable[[], Any] | None = None,
        debounce: float = REBUILD_DEBOUNCE,
    ) -> None:
        if message is None:
            raise ValueError("메시지가 필요합니다")

        self.platform = platform
        self.message = message
        self.timeout = timeout
        self.option_map: EmojiMap[ReactionOption] = EmojiMap(options)
        self.default_option = default_option
        self.timeout_callback = timeout_callback
        self.collector: ReactionCollector | None = None
        self.stopped = False

        self._debounced = Debouncer(self._rebuild, debounce)
        self.started = spawn(self.start(), name=f"reaction-handler-{message.id}")

    async def start(self) -> None:
        """첫 재조정을 즉시 수행한 뒤 리액션 수집을 시작."""
        try:
            await self._rebuild()
        finally:
            if not self.stopped and self.collector is None:
                self._create_collector()

    def _create_collector(self) -> None:
        self.collector = (
            self.platform.collect_reactions(self.message, self.timeout or None)
            .on("collect", self._proxy("collect"))
            .on("remove", self._proxy("remove"))
            .on("dispose", self._proxy("dispose"))
            .on("end", self._on_end)
        )

    def _proxy(self, name: str) -> Callable[[Reaction, Any], None]:
        def handle(reaction: Reaction, user: Any) -> None:
            # 봇 자신의 리액션 이벤트는 재조정 결과이므로 다시 재조정하지 않는다
            if compare_user(user, self.platform.bot_user):
                return
            try:
                # 사용자 정보가 없는 일괄 제거는 콜백 없이 재조정만
                if user is not None:
                    option = self.get_callback(reaction)
                    if option is not None and option.has(name):
                        result = getattr(option, name)(reaction, user)
                        if name == "collect" and result is False:
                            spawn(self._remove_user_reaction(reaction, user))
            except Exception:
                log.exception("리액션 콜백 오류 (%s)", name)
            finally:
                self.rebuild_reactions()

        return handle

    def _on_end(self, reason: str) -> None:
        if reason == "time" and self.timeout_callback is not None:
            self.timeout_callback()

    async def _remove_user_reaction(self, reaction: Reaction, user: Any) -> None:
        try:
            await self.platform.remove_reaction(self.message, reaction.emoji, user)
        except NotFoundError:
            log.debug("이미 제거된 리액션: %s", reaction.emoji)

    def get_option(self, reaction: Reaction) -> ReactionOption | None:
        return self.option_map.get(reaction.emoji)

    def get_callback(self, reaction: Reaction) -> ReactionOption | None:
        return self.option_map.get(reaction.emoji) or self.default_option

    def add_option(self, option: ReactionOption) -> None:
        self.option_map.add(option)
        self.rebuild_reactions()

    def remove_option(self, option: ReactionOption) -> None:
        self.option_map.remove(option)
        self.rebuild_reactions()

    def stop(self) -> None:
        self.stopped = True
        self._debounced.cancel()
        if self.collector is not None:
            self.collector.stop()

    def rebuild_reactions(self) -> Awaitable[None]:
        """디바운스된 재조정. await 하면 해당 재조정이 끝날 때까지 기다린다."""
        if self.stopped:
            future = asyncio.get_running_loop().create_future()
            future.set_result(None)
            return future
        return self._debounced()

    async def _rebuild(self) -> None:
        if self.stopped:
            return

        try:
            snapshots = await self.platform.fetch_reactions(self.message)
        except NotFoundError:
            log.debug("재조정 대상 메시지 없음: %s", self.message.id)
            return

        bot_user = self.platform.bot_user
        existing: ComparisonSet[Any] = ComparisonSet(compare_emoji)
        removals: list[Awaitable[None]] = []

        for snapshot in snapshots:
            if not snapshot.users:
                continue

            reaction = Reaction(message=self.message, emoji=snapshot.emoji)
            option = self.get_option(reaction)
            bot_reacted = any(compare_user(user, bot_user) for user in snapshot.users)

            if option is None or not option.is_shown():
                default = self.default_option
                if default is not None and default.validate is not None and not default.validate(reaction, None):
                    removals.append(self.platform.clear_reaction(self.message, snapshot.emoji))
                elif bot_reacted:
                    removals.append(
                        self.platform.remove_reaction(self.message, snapshot.emoji, bot_user)
                    )
            elif bot_reacted:
                existing.add(option.emoji)

            if option is not None and option.validate is not None:
                for user in snapshot.users:
                    if compare_user(user, bot_user):
                        continue
                    if not option.validate(reaction, user):
                        removals.append(
                            self.platform.remove_reaction(self.message, snapshot.emoji, user)
                        )

        results = await asyncio.gather(*removals, return_exceptions=True)
        failures = [r for r in results if isinstance(r, Exception) and not isinstance(r, NotFoundError)]
        for failure in failures:
            log.warning("리액션 제거 실패: %s", failure)
        if failures:
            raise failures[0]

        if self.stopped:
            return

        for option in self.option_map.values():
            if existing.has(option.emoji) or not option.is_shown():
                continue
            try:
                await self.platform.react(self.message, option.emoji)
            except NotFoundError:
                log.debug("리액션 추가 대상 메시지 없음: %s", self.message.id)
                return
