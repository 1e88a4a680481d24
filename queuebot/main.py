"""대기열 Discord 봇 진입점."""

from __future__ import annotations

import logging
import sys

import discord
from discord.ext import commands
from dotenv import load_dotenv

from .config import ChannelConfig, Config, load_queue_config
from .core.discord_platform import DiscordPlatform
from .core.slot_queue import SlotQueue

log = logging.getLogger("queuebot.bot")

# Cog 모듈 경로
INITIAL_COGS = [
    "queuebot.cogs.queue_admin",
]


class QueueBot(commands.Bot):
    """리액션 대기열 Discord 봇."""

    def __init__(self, config: Config, channels: list[ChannelConfig]) -> None:
        intents = discord.Intents.default()
        intents.reactions = True

        super().__init__(
            command_prefix="!",
            intents=intents,
            help_command=None,
        )

        self.config = config
        self.channel_configs = channels
        self.platform = DiscordPlatform(self)

        # 활성 대기열: channel_id → [SlotQueue]
        self.queues: dict[int, list[SlotQueue]] = {}
        self._queues_started = False

    async def setup_hook(self) -> None:
        """봇 시작 시 Cog 로드."""
        for cog in INITIAL_COGS:
            try:
                await self.load_extension(cog)
                log.info("Cog 로드: %s", cog)
            except Exception:
                log.exception("Cog 로드 실패: %s", cog)

        # 슬래시 커맨드 동기화
        await self.tree.sync()
        log.info("슬래시 커맨드 동기화 완료")

    async def on_ready(self) -> None:
        log.info("봇 로그인: %s (ID: %s)", self.user, self.user.id if self.user else "?")

        # 재연결 시 on_ready 가 다시 호출되므로 한 번만 생성
        if self._queues_started:
            return
        self._queues_started = True

        for channel_config in self.channel_configs:
            try:
                await self._start_channel(channel_config)
            except Exception:
                log.exception("채널 대기열 생성 실패: %s", channel_config.channel_id)

    async def _start_channel(self, channel_config: ChannelConfig) -> None:
        channel = await self.fetch_channel(channel_config.channel_id)
        if not isinstance(channel, discord.TextChannel):
            log.error("텍스트 채널이 아닙니다: %s", channel_config.channel_id)
            return
        log.info("채널 참여: %s", channel.name)

        if channel_config.clear:
            log.info("채널 정리: %s", channel.name)
            await channel.purge(limit=None)

        queues = self.queues.setdefault(channel.id, [])
        for queue_config in channel_config.queues:
            log.info("대기열 생성: %s", queue_config.title)
            queue = SlotQueue(
                self.platform,
                channel,
                queue_config.title,
                **queue_config.slot_queue_kwargs(),
            )
            await queue.start()
            queues.append(queue)

    def find_queue(self, channel_id: int, title: str) -> SlotQueue | None:
        for queue in self.queues.get(channel_id, []):
            if queue.title == title:
                return queue
        return None

    # ──────────── 리액션 이벤트 → 플랫폼 어댑터 ────────────

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        await self.platform.handle_reaction_add(payload)

    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        await self.platform.handle_reaction_remove(payload)

    async def on_raw_reaction_clear_emoji(self, payload: discord.RawReactionClearEmojiEvent) -> None:
        self.platform.handle_reaction_clear_emoji(payload)

    async def on_raw_reaction_clear(self, payload: discord.RawReactionClearEvent) -> None:
        self.platform.handle_reaction_clear(payload)


def run_bot() -> None:
    """봇 실행."""
    load_dotenv()
    config = Config.from_env()

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    errors = config.validate()
    if errors:
        for e in errors:
            log.error("설정 오류: %s", e)
        sys.exit(1)

    try:
        channels = load_queue_config(config.queue_config_path)
    except (OSError, ValueError) as ex:
        log.error("대기열 설정 오류: %s", ex)
        sys.exit(1)

    bot = QueueBot(config, channels)
    bot.run(config.discord_token, log_handler=None)


if __name__ == "__main__":
    run_bot()
