"""Terminal state manager.

Brackets a run with the mode transitions a full-screen or inline app needs
and guarantees they are undone: ``TerminalSession`` is a context manager
whose exit sequence runs on every path out of the ``with`` block.
"""

from __future__ import annotations

import logging
from types import TracebackType

from termloop import ansi
from termloop.decoder import ByteSource
from termloop.terminal import DEFAULT_COLUMNS, DEFAULT_ROWS, Terminal

logger = logging.getLogger(__name__)


class TerminalSession:
    """Enter and leave raw mode, alternate screen, and mouse reporting.

    Only what :meth:`enter` switched on is switched off again, and
    :meth:`exit` is safe to call more than once.
    """

    def __init__(
        self,
        terminal: Terminal,
        *,
        alt_screen: bool = False,
        mouse: bool = False,
    ) -> None:
        self.terminal = terminal
        self.alt_screen = alt_screen
        self.mouse = mouse

        self._raw = False
        self._alt_entered = False
        self._mouse_enabled = False
        self._cursor_hidden = False

        self.columns: int = getattr(terminal, "columns", DEFAULT_COLUMNS) or DEFAULT_COLUMNS
        self.rows: int = getattr(terminal, "rows", DEFAULT_ROWS) or DEFAULT_ROWS

    @property
    def active(self) -> bool:
        return self._raw

    # -- enter / exit ---------------------------------------------------

    def enter(self) -> None:
        """Switch modes on.  If this fails partway, whatever was entered is undone."""
        self.terminal.enter_raw()
        self._raw = True

        out: list[str] = []
        if self.alt_screen:
            out.append(ansi.ALT_SCREEN_ON)
            out.append(ansi.CLEAR_SCREEN)
            out.append(ansi.CURSOR_HOME)
            self._alt_entered = True
        if self.mouse:
            out.append(ansi.MOUSE_ENABLE)
            self._mouse_enabled = True
        out.append(ansi.CURSOR_HIDE)
        self._cursor_hidden = True
        try:
            self.terminal.write("".join(out))
        except BaseException:
            # the failed write may still have switched some modes on
            try:
                self.exit()
            except Exception:
                logger.debug("terminal restore after failed enter also failed", exc_info=True)
            raise
        logger.debug("terminal session entered (alt_screen=%s, mouse=%s)", self.alt_screen, self.mouse)

    def exit(self) -> None:
        """Restore the terminal.  Raw mode is left even if a write fails."""
        if not self._raw and not self._cursor_hidden:
            return

        out: list[str] = [ansi.CURSOR_SHOW]
        if self._mouse_enabled:
            out.append(ansi.MOUSE_DISABLE)
        if self._alt_entered:
            out.append(ansi.ALT_SCREEN_OFF)
        out.append(ansi.RESET)

        self._cursor_hidden = False
        self._mouse_enabled = False
        self._alt_entered = False
        try:
            self.terminal.write("".join(out))
        finally:
            if self._raw:
                self._raw = False
                self.terminal.exit_raw()
        logger.debug("terminal session restored")

    def __enter__(self) -> TerminalSession:
        self.enter()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.exit()

    # -- size detection -------------------------------------------------

    async def query_size(self, source: ByteSource, timeout: float = 0.5) -> tuple[int, int]:
        """Ask the terminal for its size with a cursor-position report.

        Must run after raw mode is on and before anything else consumes
        *source*.  Returns ``(columns, rows)``; when the response is missing
        or malformed the previous values are kept.
        """
        self.terminal.write(
            ansi.CURSOR_SAVE + ansi.cursor_move_to(9999, 9999) + ansi.DSR_QUERY
        )
        try:
            size = await self._read_position_report(source, timeout)
        finally:
            self.terminal.write(ansi.CURSOR_RESTORE)

        if size is None:
            logger.debug("no usable size report, keeping %dx%d", self.columns, self.rows)
        else:
            rows, cols = size
            if rows > 0:
                self.rows = rows
            if cols > 0:
                self.columns = cols
        return self.columns, self.rows

    @staticmethod
    async def _read_position_report(source: ByteSource, timeout: float) -> tuple[int, int] | None:
        if await source.read_byte(timeout) != 0x1B:
            return None
        if await source.read_byte(timeout) != 0x5B:  # [
            return None

        fields: list[str] = [""]
        while True:
            b = await source.read_byte(timeout)
            if b is None:
                return None
            if b == 0x52:  # R
                break
            if b == 0x3B:  # ;
                if len(fields) == 2:
                    return None
                fields.append("")
                continue
            if not 0x30 <= b <= 0x39 or len(fields[-1]) >= 6:
                return None
            fields[-1] += chr(b)

        if len(fields) != 2 or not fields[0] or not fields[1]:
            return None
        return int(fields[0]), int(fields[1])
