"""Command executor and tick timer.

Commands are the only way an application performs effects.  Each runs as an
independent concurrent task and reports back through a queue the reactor
waits on; a failure becomes an error message instead of an exception.
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from termloop.messages import CustomMsg, Message, TickMsg, error_message, is_message, parse_message

logger = logging.getLogger(__name__)

Command = Callable[[], Any] | Callable[[], Awaitable[Any]]

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d*)?|\.\d+)\s*(us|µs|ms|s|m|h)?\s*$")

_DURATION_UNITS: dict[str, float] = {
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: float | int | str) -> float:
    """Convert a duration to seconds.

    Numbers are taken as seconds.  Strings carry a unit suffix, e.g.
    ``"10ms"``, ``"1.5s"``, ``"2m"``; a bare numeric string means seconds.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        m = _DURATION_RE.match(value)
        if m is None:
            raise ValueError(f"invalid duration: {value!r}")
        seconds = float(m.group(1)) * _DURATION_UNITS[m.group(2) or "s"]
    else:
        raise ValueError(f"invalid duration: {value!r}")
    if seconds < 0:
        raise ValueError(f"duration must not be negative: {value!r}")
    return seconds


def to_message(result: Any) -> Message:
    """Coerce a command's return value into a message."""
    if is_message(result):
        return result
    if isinstance(result, Mapping) and "kind" in result:
        return parse_message(dict(result))
    return CustomMsg(type="result", data=result)


class CommandExecutor:
    """Run commands concurrently and deliver their results to *results*.

    Coroutine functions run as tasks on the current loop; plain callables
    run on a private thread pool so blocking bodies never stall the
    reactor.  Pending commands are not cancelled by :meth:`shutdown`; their
    results are dropped.
    """

    def __init__(self, results: asyncio.Queue[Message], *, max_workers: int | None = None) -> None:
        self._results = results
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="termloop-cmd")
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, fn: Command) -> None:
        if self._closed:
            logger.debug("executor closed, ignoring command %r", fn)
            return
        task = asyncio.get_running_loop().create_task(self._run(fn))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def batch(self, *fns: Command) -> None:
        for fn in fns:
            self.schedule(fn)

    async def _run(self, fn: Command) -> None:
        try:
            if inspect.iscoroutinefunction(fn):
                result = await fn()
            else:
                loop = asyncio.get_running_loop()
                # the copied context lets the module-level API find the program
                ctx = contextvars.copy_context()
                result = await loop.run_in_executor(self._pool, ctx.run, fn)
                if inspect.isawaitable(result):
                    result = await result
            msg = None if result is None else to_message(result)
        except Exception as exc:
            logger.exception("command %r failed", fn)
            msg = error_message(exc)

        if msg is None or self._closed:
            return
        await self._results.put(msg)

    def shutdown(self) -> None:
        """Stop accepting commands and release the pool without waiting."""
        self._closed = True
        self._pool.shutdown(wait=False, cancel_futures=True)


class TickSlot:
    """The single one-shot timer a program may have armed.

    When the timer fires a :class:`TickMsg` is put on *ticks* and the slot
    is empty again until re-armed.  Arming while a timer is pending cancels
    that timer, so at most one tick results from a run of re-arms.
    """

    def __init__(self, ticks: asyncio.Queue[Message]) -> None:
        self._ticks = ticks
        self._handle: asyncio.TimerHandle | None = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self, duration: float | int | str) -> None:
        seconds = parse_duration(duration)
        self.cancel()
        self._handle = asyncio.get_running_loop().call_later(seconds, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._ticks.put_nowait(TickMsg())
