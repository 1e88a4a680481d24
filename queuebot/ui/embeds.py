"""Discord Embed 빌더."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Iterable

import discord


# 색상 상수
COLOR_OPEN = 0x2ECC71
COLOR_FULL = 0xF1C40F
COLOR_ERROR = 0xE74C3C
COLOR_INFO = 0x3498DB

EMPTY_ROW = "-"

UserToString = Callable[[Any, str], str]


def _field_rows(
    groups: Iterable[tuple[str, Iterable[Any]]],
    user_to_string: UserToString,
    expected: int = 1,
) -> str:
    """사용자 목록을 줄 단위 문자열로. 빈 칸은 '-' 로 채운다 (필드 값이 비면 Discord 오류)."""
    rows = [user_to_string(user, queue_type) for queue_type, users in groups for user in users]
    while len(rows) < max(1, expected):
        rows.append(EMPTY_ROW)
    return "\n".join(rows)


def queue_board_embed(
    title: str,
    *,
    available: Iterable[Any],
    active: list[Any],
    pending: list[Any],
    queued: Iterable[Any],
    max_active: int,
    require_available: bool,
    user_to_string: UserToString,
) -> discord.Embed:
    """대기열 보드 Embed."""
    in_use = len(active) + len(pending)
    embed = discord.Embed(
        title=title,
        color=COLOR_OPEN if in_use < max_active else COLOR_FULL,
        timestamp=datetime.now(timezone.utc),
    )

    if require_available:
        embed.add_field(
            name="참여 가능",
            value=_field_rows([("available", available)], user_to_string),
            inline=True,
        )

    pending_str = f"+{len(pending)}" if pending else ""
    embed.add_field(
        name=f"활성 {len(active)}{pending_str}/{max_active}",
        value=_field_rows(
            [("active", active), ("pending", pending)], user_to_string, expected=max_active
        ),
        inline=True,
    )
    embed.add_field(
        name="대기",
        value=_field_rows([("queue", queued)], user_to_string),
        inline=True,
    )
    embed.set_footer(text="마지막 업데이트")
    return embed


def queue_status_embed(queues: list[dict[str, Any]]) -> discord.Embed:
    """관리자용 대기열 현황 Embed."""
    embed = discord.Embed(title="대기열 현황", color=COLOR_INFO)
    for info in queues:
        embed.add_field(
            name=info["title"],
            value=(
                f"활성: **{info['active']}** / {info['max_active']}\n"
                f"응답 대기: {info['pending']}\n"
                f"대기: {info['queued']}"
            ),
            inline=True,
        )
    if not queues:
        embed.add_field(name="상태", value="이 채널에 대기열이 없습니다", inline=False)
    return embed


def error_embed(message: str) -> discord.Embed:
    """에러 Embed."""
    return discord.Embed(
        title="오류",
        description=message,
        color=COLOR_ERROR,
    )
