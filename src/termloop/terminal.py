"""Terminal I/O boundary.

Provides a ``Terminal`` protocol covering everything the runtime needs from
the device (writes, raw mode, a byte feed, size, resize notification) and a
concrete ``ProcessTerminal`` backed by the process's stdin/stdout.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
import termios
import tty
from typing import Callable, Protocol

from termloop.decoder import ByteQueue

logger = logging.getLogger(__name__)

DEFAULT_COLUMNS = 80
DEFAULT_ROWS = 24


# ---------------------------------------------------------------------------
# Terminal protocol
# ---------------------------------------------------------------------------


class Terminal(Protocol):
    """Interface for terminal I/O operations."""

    def write(self, data: str) -> None: ...

    def enter_raw(self) -> None: ...

    def exit_raw(self) -> None: ...

    def start_input(self, source: ByteQueue) -> None: ...

    def stop_input(self) -> None: ...

    def set_resize_handler(self, handler: Callable[[], None] | None) -> None: ...

    @property
    def columns(self) -> int: ...

    @property
    def rows(self) -> int: ...


# ---------------------------------------------------------------------------
# ProcessTerminal implementation
# ---------------------------------------------------------------------------


class ProcessTerminal:
    """Concrete terminal backed by ``sys.stdin``/``sys.stdout``.

    Raw mode goes through :mod:`tty` and :mod:`termios`; stdin is read by an
    asyncio reader callback that feeds a :class:`ByteQueue`; SIGWINCH is
    delivered through the running loop's signal handling.
    """

    def __init__(self, *, write_log: str | None = None) -> None:
        self._original_termios: list | None = None
        self._source: ByteQueue | None = None
        self._reader_fd: int | None = None
        self._resize_handler: Callable[[], None] | None = None
        self._sigwinch_installed: bool = False
        self._write_log_path: str = (
            write_log if write_log is not None else os.environ.get("TERMLOOP_WRITE_LOG", "")
        )

    # -- properties ---------------------------------------------------------

    @property
    def columns(self) -> int:
        try:
            return os.get_terminal_size(sys.stdout.fileno()).columns
        except (ValueError, OSError):
            return DEFAULT_COLUMNS

    @property
    def rows(self) -> int:
        try:
            return os.get_terminal_size(sys.stdout.fileno()).lines
        except (ValueError, OSError):
            return DEFAULT_ROWS

    # -- raw mode -----------------------------------------------------------

    def enter_raw(self) -> None:
        """Save the current attributes and switch stdin to raw mode."""
        fd = sys.stdin.fileno()
        self._original_termios = termios.tcgetattr(fd)
        tty.setraw(fd)

    def exit_raw(self) -> None:
        """Restore the attributes saved by :meth:`enter_raw`."""
        if self._original_termios is None:
            return
        termios.tcsetattr(sys.stdin.fileno(), termios.TCSADRAIN, self._original_termios)
        self._original_termios = None

    # -- input --------------------------------------------------------------

    def start_input(self, source: ByteQueue) -> None:
        """Register an asyncio reader on stdin that feeds *source*."""
        if self._reader_fd is not None:
            return
        self._source = source
        fd = sys.stdin.fileno()
        asyncio.get_running_loop().add_reader(fd, self._on_stdin_readable)
        self._reader_fd = fd

    def stop_input(self) -> None:
        if self._reader_fd is None:
            return
        try:
            asyncio.get_running_loop().remove_reader(self._reader_fd)
        except (RuntimeError, ValueError):
            pass
        self._reader_fd = None
        self._source = None

    def _on_stdin_readable(self) -> None:
        try:
            raw = os.read(sys.stdin.fileno(), 4096)
        except OSError:
            raw = b""

        if self._source is None:
            return
        if not raw:
            self._source.close()
            self.stop_input()
            return
        self._source.feed(raw)

    # -- resize -------------------------------------------------------------

    def set_resize_handler(self, handler: Callable[[], None] | None) -> None:
        self._resize_handler = handler
        loop = asyncio.get_running_loop()
        if handler is not None and not self._sigwinch_installed:
            loop.add_signal_handler(signal.SIGWINCH, self._on_sigwinch)
            self._sigwinch_installed = True
        elif handler is None and self._sigwinch_installed:
            loop.remove_signal_handler(signal.SIGWINCH)
            self._sigwinch_installed = False

    def _on_sigwinch(self) -> None:
        if self._resize_handler is not None:
            self._resize_handler()

    # -- output -------------------------------------------------------------

    def write(self, data: str) -> None:
        """Write directly to stdout, and to the write log when configured."""
        try:
            sys.stdout.write(data)
            sys.stdout.flush()
        except OSError:
            pass

        if self._write_log_path:
            try:
                with open(self._write_log_path, "a", encoding="utf-8") as f:
                    f.write(data)
            except OSError:
                logger.debug("write log %s unavailable", self._write_log_path)
