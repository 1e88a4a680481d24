"""대기열 관리자 슬래시 커맨드."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from ..core.slot_queue import QueueConfigError
from ..ui.embeds import error_embed, queue_status_embed

if TYPE_CHECKING:
    from ..main import QueueBot

log = logging.getLogger(__name__)


class QueueAdminCog(commands.Cog):
    """대기열 관리자 명령어."""

    def __init__(self, bot: QueueBot) -> None:
        self.bot = bot

    def _is_admin(self, interaction: discord.Interaction) -> bool:
        """관리자 권한 확인."""
        if interaction.guild is None:
            return False
        member = interaction.guild.get_member(interaction.user.id)
        if member is None:
            return False
        return member.guild_permissions.administrator

    async def _deny(self, interaction: discord.Interaction) -> None:
        await interaction.response.send_message("관리자 권한이 필요합니다.", ephemeral=True)

    # ──────────────────────────────────
    # /대기열 그룹
    # ──────────────────────────────────

    queue_group = app_commands.Group(name="대기열", description="대기열 관리자 명령어")

    @queue_group.command(name="현황", description="이 채널의 대기열 상태를 확인합니다")
    async def queue_status(self, interaction: discord.Interaction) -> None:
        if not self._is_admin(interaction):
            await self._deny(interaction)
            return

        queues = self.bot.queues.get(interaction.channel_id or 0, [])
        info = [
            {
                "title": q.title,
                "active": len(q.get_active_users()),
                "max_active": q.get_max_active(),
                "pending": len(q.get_pending_users()),
                "queued": len(q.get_queued_users()),
            }
            for q in queues
        ]
        await interaction.response.send_message(embed=queue_status_embed(info), ephemeral=True)

    @queue_group.command(name="최대인원", description="대기열의 최대 활성 인원을 변경합니다")
    @app_commands.describe(제목="대기열 제목", 인원="최대 활성 인원")
    async def set_max_active(
        self, interaction: discord.Interaction, 제목: str, 인원: int
    ) -> None:
        if not self._is_admin(interaction):
            await self._deny(interaction)
            return

        queue = self.bot.find_queue(interaction.channel_id or 0, 제목)
        if queue is None:
            await interaction.response.send_message(
                embed=error_embed(f"'{제목}' 대기열을 찾을 수 없습니다."), ephemeral=True
            )
            return
        if queue.require_available:
            await interaction.response.send_message(
                embed=error_embed("참여 가능 인원으로 운영되는 대기열입니다."), ephemeral=True
            )
            return

        await interaction.response.defer(ephemeral=True)
        try:
            await queue.set_max_active(인원)
        except QueueConfigError as ex:
            await interaction.followup.send(embed=error_embed(str(ex)))
            return

        log.info("[%s] 최대 활성 인원 변경: %d (%s)", 제목, 인원, interaction.user)
        await interaction.followup.send(f"**{제목}** 최대 활성 인원이 {인원}명으로 변경되었습니다.")

    @queue_group.command(name="제거", description="대기열에서 사용자를 제거합니다")
    @app_commands.describe(제목="대기열 제목", 사용자="제거할 사용자")
    async def remove_user(
        self, interaction: discord.Interaction, 제목: str, 사용자: discord.User
    ) -> None:
        if not self._is_admin(interaction):
            await self._deny(interaction)
            return

        queue = self.bot.find_queue(interaction.channel_id or 0, 제목)
        if queue is None:
            await interaction.response.send_message(
                embed=error_embed(f"'{제목}' 대기열을 찾을 수 없습니다."), ephemeral=True
            )
            return

        removed_from = queue.remove_user(사용자)
        if removed_from is None:
            await interaction.response.send_message(
                f"{사용자.mention} 님은 대기열에 없습니다.", ephemeral=True
            )
            return

        # 보드의 리액션도 정리
        if queue.reaction_handler is not None:
            queue.reaction_handler.rebuild_reactions()
        await interaction.response.send_message(
            f"{사용자.mention} 님을 **{제목}** 대기열에서 제거했습니다.", ephemeral=True
        )


async def setup(bot: QueueBot) -> None:
    await bot.add_cog(QueueAdminCog(bot))
