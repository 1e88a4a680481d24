"""리액션 기반 슬롯 대기열 (입장 제어 상태 머신).

사용자 상태: 미등록 → queue → pending → active
  - pending → queue: 건너뛰기/타임아웃 (횟수 제한, 초과 시 대기열에서 제거)
  - 모든 상태 → 미등록: 명시적 제거
available 풀은 require_available 일 때 최대 활성 인원을 결정하며
위 상태와는 독립적이다.

큐 상태 변경은 모두 동기적으로 일어나고, 보드 메시지/프롬프트 전송 같은
플랫폼 I/O 는 백그라운드 태스크와 디바운스를 통해 뒤따라간다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Literal, Union

import discord

from ..ui.embeds import queue_board_embed
from .containers import ComparisonMap, ComparisonQueue, compare_user
from .debounce import Debouncer
from .platform import MessageContent, NotFoundError, Platform, Reaction
from .reaction_handler import REBUILD_DEBOUNCE, ReactionHandler, ReactionOption
from .tasks import spawn
from .user_prompt import PromptOption, UserPrompt

log = logging.getLogger(__name__)

QueueType = Literal["available", "active", "pending", "queue"]
PassType = Literal["timeout", "skip"]

EVENTS = (
    "user_pass",
    "user_queued",
    "user_active",
    "user_pending",
    "user_add",
    "user_remove",
    "message_updated",
)


class QueueConfigError(ValueError):
    """잘못된 대기열 설정."""


@dataclass
class AttemptCounts:
    """사용자별 타임아웃/건너뛰기 횟수."""

    timeout: int = 0
    skip: int = 0


@dataclass(frozen=True)
class PromptContext:
    """프롬프트 메시지 템플릿에 전달되는 정보."""

    user: Any
    counts: AttemptCounts | None


@dataclass
class PromptRecord:
    prompt: UserPrompt
    skippable: bool


MessageTemplate = Union[str, Callable[[PromptContext], MessageContent]]


def _mention(user: Any) -> str:
    return getattr(user, "mention", None) or str(user)


def default_user_to_string(user: Any, queue_type: str) -> str:
    text = _mention(user)
    return f"_{text}_" if queue_type == "pending" else text


def default_accept_or_skip_message(context: PromptContext) -> str:
    return f"{_mention(context.user)} - 자리가 났습니다. 수락하거나, 건너뛰고 대기열 맨 앞으로 돌아갈 수 있습니다."


def default_accept_message(context: PromptContext) -> str:
    return f"{_mention(context.user)} - 자리가 났습니다. 수락하시겠습니까?"


class SlotQueue:
    """메시지 하나에 묶인 슬롯 대기열."""

    def __init__(
        self,
        platform: Platform,
        channel: Any,
        title: str,
        *,
        existing_message: Any = None,
        require_available: bool = False,
        max_active: int | None = None,
        pending_timeout: float = 600.0,
        max_pending_timeouts: int = 1,
        max_pending_skips: int = 3,
        queue_emoji: Any = "🎫",
        available_emoji: Any = "📋",
        accept_emoji: Any = "✔️",
        skip_emoji: Any = "✖️",
        prompt_accept_or_skip_message: MessageTemplate = default_accept_or_skip_message,
        prompt_accept_message: MessageTemplate = default_accept_message,
        additional_options: Iterable[ReactionOption] = (),
        message_debounce: float = 0.3,
        reaction_debounce: float = REBUILD_DEBOUNCE,
        user_to_string: Callable[[Any, str], str] = default_user_to_string,
    ) -> None:
        if not require_available and not max_active:
            raise QueueConfigError("대기열에는 require_available 또는 max_active 설정이 필요합니다")

        self.platform = platform
        self.channel = channel
        self.title = title
        self.existing_message = existing_message

        self.require_available = bool(require_available)
        self.max_active = max_active
        self.pending_timeout = pending_timeout
        self.max_pending_timeouts = max_pending_timeouts
        self.max_pending_skips = max_pending_skips

        self.queue_emoji = queue_emoji
        self.available_emoji = available_emoji
        self.accept_emoji = accept_emoji
        self.skip_emoji = skip_emoji

        self.prompt_accept_or_skip_message = prompt_accept_or_skip_message
        self.prompt_accept_message = prompt_accept_message
        self.additional_options = list(additional_options)
        self.reaction_debounce = reaction_debounce
        self.user_to_string = user_to_string

        self.available: ComparisonQueue[Any] = ComparisonQueue(compare_user)
        self.active: ComparisonQueue[Any] = ComparisonQueue(compare_user)
        self.pending: ComparisonQueue[Any] = ComparisonQueue(compare_user)
        self.queue: ComparisonQueue[Any] = ComparisonQueue(compare_user)

        self.prompts: ComparisonMap[Any, PromptRecord] = ComparisonMap(compare_user)
        self.attempt_counts: ComparisonMap[Any, AttemptCounts] = ComparisonMap(compare_user)

        self.message: Any = None
        self.reaction_handler: ReactionHandler | None = None

        self._debounced_update = Debouncer(self._update_message, message_debounce)
        self._listeners: dict[str, list[Callable[..., Any]]] = {name: [] for name in EVENTS}

    # ──────────── 이벤트 ────────────

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        if event not in self._listeners:
            raise ValueError(f"알 수 없는 이벤트: {event}")
        self._listeners[event].append(callback)

    def off(self, event: str, callback: Callable[..., Any]) -> None:
        if callback in self._listeners.get(event, []):
            self._listeners[event].remove(callback)

    def emit(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(*args)
            except Exception:
                log.exception("대기열 이벤트 리스너 오류 (%s)", event)

    # ──────────── 보드 메시지 ────────────

    async def start(self) -> None:
        """보드 메시지를 게시(또는 기존 메시지 재사용)하고 리액션 처리를 시작."""
        if self.existing_message is None:
            self.message = await self.platform.send_message(self.channel, self.render())
            log.info("대기열 보드 게시: %s", self.title)
            self._create_reaction_handler()
            return

        if isinstance(self.existing_message, (int, str)):
            self.message = await self.platform.fetch_message(self.channel, int(self.existing_message))
        else:
            self.message = self.existing_message
        log.info("기존 대기열 보드 재사용: %s (%s)", self.title, self.message.id)
        self._create_reaction_handler()
        await self._update_message()

    def _create_reaction_handler(self) -> ReactionHandler:
        options = [
            ReactionOption(
                emoji=self.queue_emoji,
                validate=lambda _, user: self.is_user_queued(user),
                collect=lambda _, user: self.add_user(user),
                remove=lambda _, user: self.remove_user(user),
            ),
            *self.additional_options,
        ]

        if self.require_available:
            options.insert(
                0,
                ReactionOption(
                    emoji=self.available_emoji,
                    condition=lambda: self.require_available,
                    validate=lambda _, user: self.available.has(user),
                    collect=lambda _, user: self.add_available_user(user),
                    remove=lambda _, user: self.remove_available_user(user),
                ),
            )

        self.reaction_handler = ReactionHandler(
            self.platform,
            self.message,
            options,
            default_option=ReactionOption(validate=lambda _, __: False),
            debounce=self.reaction_debounce,
        )
        return self.reaction_handler

    def render(self) -> discord.Embed:
        return queue_board_embed(
            self.title,
            available=self.available,
            active=self.active.get(),
            pending=self.pending.get(),
            queued=self.queue,
            max_active=self.get_max_active(),
            require_available=self.require_available,
            user_to_string=self.user_to_string,
        )

    def update_message(self) -> Awaitable[None]:
        """디바운스된 보드 갱신."""
        return self._debounced_update()

    async def _update_message(self) -> None:
        if self.message is None:
            return
        embed = self.render()
        try:
            await self.platform.edit_message(self.message, embed)
        except NotFoundError:
            log.warning("대기열 보드 메시지가 삭제됨: %s", self.title)
            return
        self.emit("message_updated", embed)

    # ──────────── 프롬프트 ────────────

    def _template_to_message(self, user: Any, template: MessageTemplate) -> MessageContent:
        if isinstance(template, str):
            return template
        return template(PromptContext(user=user, counts=self.attempt_counts.get(user)))

    def send_pending_prompt(self, user: Any) -> None:
        """수락(+뒤에 대기자가 있으면 건너뛰기) 프롬프트 전송."""
        skippable = len(self.queue) > 0

        options = [PromptOption(emoji=self.accept_emoji, collect=self._user_accept_prompt)]
        if skippable:
            options.append(
                PromptOption(emoji=self.skip_emoji, collect=lambda _, u: self._user_pass(u, "skip"))
            )

        record = self.prompts.get(user)
        prompt = record.prompt if record is not None else UserPrompt(self.platform, user, self.channel)
        self.prompts.add(user, PromptRecord(prompt=prompt, skippable=skippable))

        template = self.prompt_accept_or_skip_message if skippable else self.prompt_accept_message
        spawn(
            prompt.prompt(
                options,
                self.pending_timeout if skippable else 0,
                timeout_callback=lambda u: self._user_pass(u, "timeout"),
                content=self._template_to_message(user, template),
            ),
            name=f"pending-prompt-{user.id}",
        )

    def _discard_prompt(self, user: Any) -> None:
        record = self.prompts.remove(user)
        if record is not None:
            record.prompt.cancel()

    def _user_accept_prompt(self, _: Reaction, user: Any) -> None:
        if not self.pending.has(user):
            return
        log.info("[%s] 슬롯 수락: %s", self.title, user.id)
        self.move_user_to_active(user)

    def _user_pass(self, user: Any, pass_type: PassType) -> None:
        """건너뛰기/타임아웃 공통 처리."""
        if not self.pending.has(user):
            return

        self._discard_prompt(user)
        self.pending.remove(user)

        counts = self.attempt_counts.get(user)
        if counts is None:
            counts = AttemptCounts()
            self.attempt_counts.add(user, counts)
        setattr(counts, pass_type, getattr(counts, pass_type) + 1)
        limit = self.max_pending_skips if pass_type == "skip" else self.max_pending_timeouts

        returned = getattr(counts, pass_type) < limit
        if returned:
            # 맨 뒤가 아니라 현재 선두 바로 뒤로 복귀
            self.queue.insert(user, 1)
        else:
            log.info("[%s] %s 횟수 초과로 대기열에서 제외: %s", self.title, pass_type, user.id)
            self.attempt_counts.remove(user)
            # 응답 없는 사용자가 참여 가능 인원으로 자리를 늘리지 않도록 함께 제외
            self.available.remove(user)
            if self.reaction_handler is not None:
                self.reaction_handler.rebuild_reactions()

        self.emit("user_pass", user, pass_type, returned)

        self.check_queue_and_promote()
        self.check_and_update_prompts()
        self.update_message()

    def check_queue_and_promote(self) -> None:
        """빈 자리가 있는 동안 대기열 앞에서부터 pending 으로 승격."""
        while len(self.active) + len(self.pending) < self.get_max_active() and self.queue:
            self.move_user_to_pending(self.queue.shift())

    def check_and_update_prompts(self) -> None:
        """건너뛰기 가능 여부가 바뀐 pending 사용자에게 프롬프트 재전송."""
        skippable = len(self.queue) > 0
        for user, record in self.prompts.entries():
            if record.skippable != skippable and self.pending.has(user):
                self.send_pending_prompt(user)

    # ──────────── 상태 전이 ────────────

    def move_user_to_queue(self, user: Any) -> None:
        self._discard_prompt(user)
        self.active.remove(user)
        self.pending.remove(user)
        self.queue.remove(user)

        self.queue.push(user)

        self.update_message()
        self.emit("user_queued", user)

    def move_user_to_active(self, user: Any) -> None:
        self._discard_prompt(user)
        self.queue.remove(user)
        self.pending.remove(user)
        self.active.remove(user)

        self.active.push(user)

        self.update_message()
        self.emit("user_active", user)

    def move_user_to_pending(self, user: Any) -> None:
        self.queue.remove(user)
        self.active.remove(user)
        self.pending.remove(user)

        self.pending.push(user)
        log.info("[%s] 슬롯 제안: %s", self.title, user.id)

        self.send_pending_prompt(user)
        self.update_message()
        self.emit("user_pending", user)

    def reset_user_prompt_counts(self, user: Any) -> None:
        self.attempt_counts.add(user, AttemptCounts())

    def is_user_queued(self, user: Any) -> bool:
        return self.active.has(user) or self.pending.has(user) or self.queue.has(user)

    def add_user(self, user: Any) -> bool:
        """대기열 참여. 자리가 있으면 바로 활성, 없으면 대기열 맨 뒤."""
        if self.is_user_queued(user):
            return True

        if len(self.active) + len(self.pending) < self.get_max_active():
            self.move_user_to_active(user)
        else:
            self.reset_user_prompt_counts(user)
            self.move_user_to_queue(user)

        self.check_queue_and_promote()
        # 뒤에 대기자가 생겼으면 pending 사용자에게 건너뛰기 제공
        self.check_and_update_prompts()
        self.update_message()

        self.emit("user_add", user)
        return True

    def remove_user(self, user: Any) -> QueueType | None:
        """모든 목록에서 제거. 어디에도 없으면 아무것도 하지 않고 None."""
        queue_name: QueueType | None = None
        for name in ("active", "pending", "queue"):
            queue = self.get_queue_by_type(name)  # type: ignore[arg-type]
            if queue.has(user):
                queue.remove(user)
                queue_name = name  # type: ignore[assignment]

        self._discard_prompt(user)
        if queue_name is None:
            return None

        self.check_queue_and_promote()
        self.check_and_update_prompts()
        self.update_message()

        self.emit("user_remove", user, queue_name)
        return queue_name

    def add_available_user(self, user: Any) -> bool:
        if not self.available.has(user):
            self.available.push(user)

        self.check_queue_and_promote()
        self.check_and_update_prompts()
        self.update_message()
        return True

    def remove_available_user(self, user: Any) -> bool:
        if self.available.remove(user) is None:
            return False
        self.update_message()
        self.emit("user_remove", user, "available")
        return True

    # ──────────── 조회/설정 ────────────

    async def set_max_active(self, max_active: int) -> None:
        if max_active < 0:
            raise QueueConfigError("최대 활성 인원은 0 이상이어야 합니다")
        self.max_active = max_active
        self.check_queue_and_promote()
        self.check_and_update_prompts()
        await self.update_message()

    def get_max_active(self) -> int:
        if self.require_available:
            return len(self.available)
        return self.max_active or 0

    def get_queue_by_type(self, queue_type: QueueType) -> ComparisonQueue[Any]:
        return {
            "available": self.available,
            "active": self.active,
            "pending": self.pending,
            "queue": self.queue,
        }[queue_type]

    def get_active_users(self) -> ComparisonQueue[Any]:
        return self.active

    def get_pending_users(self) -> ComparisonQueue[Any]:
        return self.pending

    def get_available_users(self) -> ComparisonQueue[Any]:
        return self.available

    def get_queued_users(self) -> ComparisonQueue[Any]:
        return self.queue
