"""
In-memory test doubles for the messaging platform.

FakePlatform implements the Platform protocol in memory: it keeps the live
reaction state of every message, records every write it performs and routes
reaction events through a real CollectorRegistry.
"""

import asyncio
import itertools
from dataclasses import dataclass, field

from queuebot.core.containers import compare_emoji, compare_user
from queuebot.core.platform import (
    CannotMessageUser,
    CollectorRegistry,
    NotFoundError,
    ReactionSnapshot,
)


@dataclass(eq=False)
class FakeUser:
    id: int
    name: str = "user"
    bot: bool = False

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"


@dataclass(eq=False)
class FakeChannel:
    id: int
    name: str = "channel"
    is_dm: bool = False
    messages: list = field(default_factory=list)


@dataclass(eq=False)
class FakeMessage:
    id: int
    channel: FakeChannel
    content: object = None
    deleted: bool = False
    reactions: list = field(default_factory=list)


class FakePlatform:
    def __init__(self):
        self.bot_user = FakeUser(1, "queuebot", bot=True)
        self.collectors = CollectorRegistry()
        self.writes = []
        self.dm_blocked = set()
        self.send_blocked = set()
        self.dm_channels = {}
        self.fetch_count = 0
        self._ids = itertools.count(1000)

    # -- helpers ---------------------------------------------------------

    def _check(self, message):
        if message.deleted:
            raise NotFoundError(f"message {message.id} deleted")

    def _reaction(self, message, emoji):
        for snapshot in message.reactions:
            if compare_emoji(snapshot.emoji, emoji):
                return snapshot
        return None

    def users_for(self, message, emoji):
        snapshot = self._reaction(message, emoji)
        return list(snapshot.users) if snapshot else []

    def has_bot_reaction(self, message, emoji):
        return any(compare_user(u, self.bot_user) for u in self.users_for(message, emoji))

    def writes_of(self, kind):
        return [w for w in self.writes if w[0] == kind]

    def live_messages(self, channel):
        return [m for m in channel.messages if not m.deleted]

    def user_react(self, message, emoji, user):
        """Simulate a user adding a reaction (state change + gateway event)."""
        snapshot = self._reaction(message, emoji)
        if snapshot is None:
            snapshot = ReactionSnapshot(emoji=emoji, users=[])
            message.reactions.append(snapshot)
        if not any(compare_user(u, user) for u in snapshot.users):
            snapshot.users.append(user)
        self.collectors.dispatch("collect", message.id, emoji, user)

    def user_unreact(self, message, emoji, user):
        self._drop_user(message, emoji, user)
        self.collectors.dispatch("remove", message.id, emoji, user)

    def _drop_user(self, message, emoji, user):
        snapshot = self._reaction(message, emoji)
        if snapshot is None:
            return False
        before = len(snapshot.users)
        snapshot.users = [u for u in snapshot.users if not compare_user(u, user)]
        if not snapshot.users:
            message.reactions.remove(snapshot)
        return len(snapshot.users) != before

    # -- Platform protocol ------------------------------------------------

    async def send_message(self, channel, content):
        if channel.is_dm and channel.id in self.send_blocked:
            raise CannotMessageUser("cannot send messages to this user")
        message = FakeMessage(id=next(self._ids), channel=channel, content=content)
        channel.messages.append(message)
        self.writes.append(("send", channel.id, message.id))
        return message

    async def edit_message(self, message, content):
        self._check(message)
        message.content = content
        self.writes.append(("edit", message.id))
        return message

    async def delete_message(self, message):
        if message.deleted:
            return
        message.deleted = True
        self.writes.append(("delete", message.id))

    async def fetch_message(self, channel, message_id):
        for message in channel.messages:
            if message.id == message_id and not message.deleted:
                return message
        raise NotFoundError(f"message {message_id} not found")

    async def fetch_channel_messages(self, channel):
        return self.live_messages(channel)

    async def react(self, message, emoji):
        self._check(message)
        snapshot = self._reaction(message, emoji)
        if snapshot is None:
            snapshot = ReactionSnapshot(emoji=emoji, users=[])
            message.reactions.append(snapshot)
        if not any(compare_user(u, self.bot_user) for u in snapshot.users):
            snapshot.users.append(self.bot_user)
        self.writes.append(("react", message.id, emoji))

    async def remove_reaction(self, message, emoji, user):
        self._check(message)
        self.writes.append(("remove_reaction", message.id, emoji, user.id))
        if self._drop_user(message, emoji, user):
            self.collectors.dispatch("remove", message.id, emoji, user)

    async def clear_reaction(self, message, emoji):
        self._check(message)
        self.writes.append(("clear_reaction", message.id, emoji))
        snapshot = self._reaction(message, emoji)
        if snapshot is not None:
            message.reactions.remove(snapshot)
            self.collectors.dispatch("dispose", message.id, emoji, None)

    async def fetch_reactions(self, message):
        self._check(message)
        self.fetch_count += 1
        return [ReactionSnapshot(emoji=s.emoji, users=list(s.users)) for s in message.reactions]

    async def create_dm(self, user):
        if user.id in self.dm_blocked:
            raise CannotMessageUser(f"user {user.id} has DMs closed")
        if user.id not in self.dm_channels:
            self.dm_channels[user.id] = FakeChannel(id=next(self._ids), name=f"dm-{user.id}", is_dm=True)
        return self.dm_channels[user.id]

    def collect_reactions(self, message, timeout=None):
        return self.collectors.create(message, timeout)


async def settle(seconds: float = 0.05) -> None:
    """Let background tasks and zero-wait debounces run to completion."""
    for _ in range(5):
        await asyncio.sleep(seconds / 5)


