"""discord.py 기반 Platform 구현."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

import discord

from .platform import (
    CannotMessageUser,
    CollectorRegistry,
    MessageContent,
    NotFoundError,
    PlatformError,
    ReactionCollector,
    ReactionSnapshot,
)

log = logging.getLogger(__name__)

# DM 채널 정리 시 조회할 최근 메시지 수
DM_HISTORY_LIMIT = 50


@contextmanager
def _translate_errors() -> Iterator[None]:
    """discord.py 예외를 플랫폼 예외로 변환."""
    try:
        yield
    except discord.NotFound as ex:
        raise NotFoundError(str(ex)) from ex
    except discord.HTTPException as ex:
        raise PlatformError(str(ex)) from ex


class DiscordPlatform:
    """discord.Client 를 감싸는 어댑터.

    리액션 이벤트는 봇의 raw 리액션 이벤트 핸들러가 handle_* 메서드로
    넘겨주면 메시지 id 기준으로 활성 collector 에 전달된다.
    """

    def __init__(self, client: discord.Client) -> None:
        self.client = client
        self.collectors = CollectorRegistry()

    @property
    def bot_user(self) -> Any:
        return self.client.user

    # ──────────── 메시지 ────────────

    async def send_message(self, channel: Any, content: MessageContent) -> discord.Message:
        try:
            with _translate_errors():
                if isinstance(content, discord.Embed):
                    return await channel.send(embed=content)
                return await channel.send(content)
        except PlatformError as ex:
            if isinstance(channel, discord.DMChannel) and isinstance(ex.__cause__, discord.Forbidden):
                raise CannotMessageUser(str(ex)) from ex
            raise

    async def edit_message(self, message: discord.Message, content: MessageContent) -> discord.Message:
        with _translate_errors():
            if isinstance(content, discord.Embed):
                return await message.edit(content=None, embed=content)
            return await message.edit(content=content, embed=None)

    async def delete_message(self, message: discord.Message) -> None:
        try:
            with _translate_errors():
                await message.delete()
        except NotFoundError:
            log.debug("이미 삭제된 메시지: %s", message.id)

    async def fetch_message(self, channel: Any, message_id: int) -> discord.Message:
        with _translate_errors():
            return await channel.fetch_message(message_id)

    async def fetch_channel_messages(self, channel: Any) -> list[discord.Message]:
        with _translate_errors():
            return [m async for m in channel.history(limit=DM_HISTORY_LIMIT)]

    async def create_dm(self, user: Any) -> discord.DMChannel:
        try:
            with _translate_errors():
                return user.dm_channel or await user.create_dm()
        except PlatformError as ex:
            raise CannotMessageUser(str(ex)) from ex

    # ──────────── 리액션 ────────────

    async def react(self, message: discord.Message, emoji: Any) -> None:
        with _translate_errors():
            await message.add_reaction(emoji)

    async def remove_reaction(self, message: discord.Message, emoji: Any, user: Any) -> None:
        with _translate_errors():
            await message.remove_reaction(emoji, user)

    async def clear_reaction(self, message: discord.Message, emoji: Any) -> None:
        with _translate_errors():
            await message.clear_reaction(emoji)

    async def fetch_reactions(self, message: discord.Message) -> list[ReactionSnapshot]:
        with _translate_errors():
            fresh = await message.channel.fetch_message(message.id)
            snapshots = []
            for reaction in fresh.reactions:
                users = [user async for user in reaction.users()]
                snapshots.append(ReactionSnapshot(emoji=reaction.emoji, users=users))
            return snapshots

    def collect_reactions(self, message: Any, timeout: float | None = None) -> ReactionCollector:
        return self.collectors.create(message, timeout)

    # ──────────── 게이트웨이 이벤트 ────────────

    async def _resolve_user(self, payload: Any) -> Any:
        member = getattr(payload, "member", None)
        if member is not None:
            return member
        user = self.client.get_user(payload.user_id)
        if user is None:
            with _translate_errors():
                user = await self.client.fetch_user(payload.user_id)
        return user

    async def handle_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        if not self.collectors.active(payload.message_id):
            return
        user = await self._resolve_user(payload)
        self.collectors.dispatch("collect", payload.message_id, payload.emoji, user)

    async def handle_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        if not self.collectors.active(payload.message_id):
            return
        user = await self._resolve_user(payload)
        self.collectors.dispatch("remove", payload.message_id, payload.emoji, user)

    def handle_reaction_clear_emoji(self, payload: discord.RawReactionClearEmojiEvent) -> None:
        self.collectors.dispatch("dispose", payload.message_id, payload.emoji, None)

    def handle_reaction_clear(self, payload: discord.RawReactionClearEvent) -> None:
        self.collectors.dispatch("dispose", payload.message_id, None, None)
