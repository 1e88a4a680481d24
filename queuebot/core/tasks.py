"""백그라운드 태스크 헬퍼."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

log = logging.getLogger(__name__)

# 실행 중 태스크가 GC 되지 않도록 참조 유지
_background: set[asyncio.Task] = set()


def spawn(coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task:
    """코루틴을 태스크로 실행하고, 예외는 로그로 남긴다."""
    task = asyncio.create_task(coro, name=name)
    _background.add(task)
    task.add_done_callback(_finished)
    return task


def _finished(task: asyncio.Task) -> None:
    _background.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.error("백그라운드 태스크 오류 (%s)", task.get_name(), exc_info=exc)
