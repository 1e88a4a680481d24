"""후행(trailing) 디바운스 래퍼."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

log = logging.getLogger(__name__)


class Debouncer:
    """비동기 함수 호출을 wait 초 단위로 묶어 마지막 호출 뒤 한 번만 실행한다.

    같은 구간에 들어온 호출들은 모두 같은 실행 결과를 기다린다.
    실행 도중 들어온 호출은 버리지 않고, 현재 실행이 끝난 뒤 다시 한 번
    타이머를 걸어 실행한다.
    """

    def __init__(self, func: Callable[[], Awaitable[Any]], wait: float) -> None:
        self._func = func
        self._wait = wait
        self._timer: asyncio.Task | None = None
        self._waiters: list[asyncio.Future] = []
        self._running = False
        self._rerun = False

    @property
    def pending(self) -> bool:
        return self._timer is not None or self._running

    def __call__(self) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        # 결과를 아무도 기다리지 않아도 경고가 나지 않도록 예외를 소비
        future.add_done_callback(_consume_exception)
        self._waiters.append(future)
        if self._running:
            self._rerun = True
        else:
            self._restart_timer()
        return future

    def _restart_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.create_task(self._countdown())

    async def _countdown(self) -> None:
        await asyncio.sleep(self._wait)
        self._timer = None
        await self._run()

    async def _run(self) -> None:
        waiters, self._waiters = self._waiters, []
        self._running = True
        self._rerun = False
        try:
            result = await self._func()
        except Exception as exc:
            log.exception("디바운스 실행 실패: %s", getattr(self._func, "__name__", self._func))
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_exception(exc)
        else:
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_result(result)
        finally:
            self._running = False

        if self._rerun:
            self._restart_timer()

    def cancel(self) -> None:
        """대기 중인 실행을 취소."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
        self._rerun = False
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.cancel()


def _consume_exception(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()
