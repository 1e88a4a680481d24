"""Tests for UserPrompt delivery, answers, timeouts and cancellation."""

import pytest

from queuebot.core.platform import CannotMessageUser
from queuebot.core.user_prompt import PromptOption, UserPrompt
from tests.fakes import FakePlatform, settle


def options(answers):
    return [
        PromptOption(emoji="✔️", collect=lambda r, u: answers.append(("accept", u.id))),
        PromptOption(emoji="✖️", collect=lambda r, u: answers.append(("skip", u.id))),
    ]


@pytest.mark.asyncio
async def test_prompt_is_sent_privately_with_option_reactions(platform, channel, users):
    prompt = UserPrompt(platform, users[0], channel)
    await prompt.prompt(options([]), None, content="차례입니다")
    await prompt.reaction_handler.started

    assert prompt.is_private
    assert prompt.message.channel is platform.dm_channels[users[0].id]
    assert prompt.message.content == "차례입니다"
    assert platform.has_bot_reaction(prompt.message, "✔️")
    assert platform.has_bot_reaction(prompt.message, "✖️")


@pytest.mark.asyncio
async def test_reprompt_edits_same_message(platform, channel, users):
    prompt = UserPrompt(platform, users[0], channel)
    await prompt.prompt(options([]), None, content="first")
    first = prompt.message
    await prompt.prompt(options([]), None, content="second")

    assert prompt.message is first
    assert first.content == "second"
    assert len(platform.writes_of("send")) == 1
    assert platform.writes_of("edit") == [("edit", first.id)]


@pytest.mark.asyncio
async def test_answer_from_target_user_calls_back_and_deletes(platform, channel, users):
    answers = []
    prompt = UserPrompt(platform, users[0], channel)
    await prompt.prompt(options(answers), None, content="차례입니다")
    message = prompt.message
    await prompt.reaction_handler.started

    platform.user_react(message, "✔️", users[0])
    await settle()

    assert answers == [("accept", users[0].id)]
    assert message.deleted
    assert prompt.message is None
    assert prompt.reaction_handler is None


@pytest.mark.asyncio
async def test_other_users_cannot_answer(platform, channel, users):
    answers = []
    prompt = UserPrompt(platform, users[0], channel)
    await prompt.prompt(options(answers), None, content="차례입니다")
    message = prompt.message
    await prompt.reaction_handler.started

    platform.user_react(message, "✔️", users[1])
    await settle()

    assert answers == []
    assert not message.deleted
    assert users[1] not in platform.users_for(message, "✔️")


@pytest.mark.asyncio
async def test_timeout_calls_back_once(platform, channel, users):
    timed_out = []
    prompt = UserPrompt(platform, users[0], channel)
    await prompt.prompt(options([]), 0.02, timeout_callback=timed_out.append, content="차례입니다")
    message = prompt.message

    await settle(0.1)

    assert timed_out == [users[0]]
    assert message.deleted


@pytest.mark.asyncio
async def test_cancel_is_idempotent_and_final(platform, channel, users):
    answers, timed_out = [], []
    prompt = UserPrompt(platform, users[0], channel)
    await prompt.prompt(options(answers), 0.02, timeout_callback=timed_out.append, content="차례입니다")
    message = prompt.message

    task = prompt.cancel()
    assert task is not None
    await task
    assert prompt.cancel() is None

    platform.user_react(message, "✔️", users[0])
    await prompt.prompt(options(answers), None, content="again")
    await settle(0.1)

    assert message.deleted
    assert answers == []
    assert timed_out == []
    assert len(platform.writes_of("send")) == 1


class CancelOnSendPlatform(FakePlatform):
    def __init__(self):
        super().__init__()
        self.on_send = None

    async def send_message(self, channel, content):
        message = await super().send_message(channel, content)
        if self.on_send is not None:
            self.on_send()
        return message


@pytest.mark.asyncio
async def test_cancel_during_send_wins(channel, users):
    platform = CancelOnSendPlatform()
    prompt = UserPrompt(platform, users[0], channel)
    platform.on_send = prompt.cancel

    await prompt.prompt(options([]), None, content="차례입니다")
    await settle()

    sent = platform.dm_channels[users[0].id].messages[0]
    assert sent.deleted
    assert prompt.reaction_handler is None
    assert platform.writes_of("react") == []


@pytest.mark.asyncio
async def test_falls_back_to_public_channel_when_dms_closed(platform, channel, users):
    platform.dm_blocked.add(users[0].id)
    prompt = UserPrompt(platform, users[0], channel)

    await prompt.prompt(options([]), None, content="차례입니다")

    assert prompt.channel is channel
    assert not prompt.is_private
    assert prompt.message.channel is channel


@pytest.mark.asyncio
async def test_falls_back_when_dm_send_is_refused(platform, channel, users):
    dm = await platform.create_dm(users[0])
    platform.send_blocked.add(dm.id)
    prompt = UserPrompt(platform, users[0], channel)

    await prompt.prompt(options([]), None, content="차례입니다")

    assert prompt.message.channel is channel
    assert dm.messages == []


@pytest.mark.asyncio
async def test_closed_dms_without_fallback_raise(platform, users):
    platform.dm_blocked.add(users[0].id)
    prompt = UserPrompt(platform, users[0])

    with pytest.raises(CannotMessageUser):
        await prompt.prompt(options([]), None, content="차례입니다")


@pytest.mark.asyncio
async def test_stale_dm_messages_are_cleared(platform, channel, users):
    dm = await platform.create_dm(users[0])
    stale = await platform.send_message(dm, "지난 알림")
    prompt = UserPrompt(platform, users[0], channel)

    await prompt.prompt(options([]), None, content="차례입니다")

    assert stale.deleted
    assert platform.live_messages(dm) == [prompt.message]


@pytest.mark.asyncio
async def test_public_fallback_channel_is_never_cleared(platform, channel, users):
    board = await platform.send_message(channel, "board")
    platform.dm_blocked.add(users[0].id)
    prompt = UserPrompt(platform, users[0], channel)

    await prompt.prompt(options([]), None, content="first")
    await prompt.prompt(options([]), None, content="second")

    assert not board.deleted
