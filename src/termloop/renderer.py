"""Differential frame renderer.

Keeps the previously painted frame and, on each paint, rewrites only the
lines whose content changed.  The cursor is assumed to rest on the last line
of the previous frame between paints; every paint restores that invariant.
"""

from __future__ import annotations

import logging
from typing import Callable

from termloop import ansi
from termloop.text import split_lines

logger = logging.getLogger(__name__)


class FrameRenderer:
    """Paint successive frames with minimal terminal writes.

    Parameters
    ----------
    write:
        Callable receiving the escape/text buffer for one paint.
    alt_screen:
        Whether the alternate screen buffer is active.  Frames are then
        anchored at the top-left corner instead of at the cursor.
    newline:
        Line separator.  Raw mode disables output post-processing, so the
        default is CR+LF.
    """

    def __init__(
        self,
        write: Callable[[str], None],
        *,
        alt_screen: bool = False,
        newline: str = "\r\n",
    ) -> None:
        self._write = write
        self._alt_screen = alt_screen
        self._newline = newline

        self._previous_lines: list[str] | None = None
        self._frame_height: int = 0

        self._force_full: bool = False

        self._paint_count: int = 0
        self._rewrite_count: int = 0

    # -- state ----------------------------------------------------------

    @property
    def previous_lines(self) -> list[str] | None:
        """Lines of the last painted frame, or ``None`` before the first paint."""
        return None if self._previous_lines is None else list(self._previous_lines)

    @property
    def frame_height(self) -> int:
        return self._frame_height

    @property
    def paint_count(self) -> int:
        return self._paint_count

    @property
    def rewrite_count(self) -> int:
        """Total lines rewritten by differential paints."""
        return self._rewrite_count

    def reset(self) -> None:
        """Forget the painted frame; the next paint is a full paint."""
        self._previous_lines = None
        self._frame_height = 0
        self._force_full = False

    def invalidate(self) -> None:
        """Repaint every line on the next paint.

        The cursor still returns to the frame origin first and everything
        below it is cleared, so the old frame leaves no residue.  Used when
        the terminal is resized.
        """
        if self._previous_lines is not None:
            self._force_full = True

    # -- painting -------------------------------------------------------

    def paint(self, view: str) -> int:
        """Paint *view* and return the number of lines rewritten.

        The first paint writes every line.  Later paints write only lines
        that differ from the previous frame, so repainting an identical
        frame returns 0.
        """
        lines = split_lines(view)
        if self._previous_lines is None:
            out = self._full(lines)
            rewritten = len(lines)
        elif self._force_full:
            out = self._origin()
            out.append(ansi.CLEAR_DOWN)
            out.extend(self._full(lines)[1 if self._alt_screen else 0 :])
            rewritten = len(lines)
            self._force_full = False
        elif lines == self._previous_lines:
            # unchanged frame, cursor already rests on its last line
            self._paint_count += 1
            return 0
        else:
            out, rewritten = self._diff(lines, self._previous_lines)
            self._rewrite_count += rewritten

        self._write("".join(out))

        self._previous_lines = lines
        self._frame_height = len(lines)
        self._paint_count += 1
        return rewritten

    def _full(self, lines: list[str]) -> list[str]:
        out: list[str] = []
        if self._alt_screen:
            out.append(ansi.CURSOR_HOME)
        out.append(self._newline.join(lines))
        out.append(ansi.CURSOR_HIDE)
        return out

    def _diff(self, lines: list[str], prev: list[str]) -> tuple[list[str], int]:
        out = self._origin()

        num_new = len(lines)
        num_old = len(prev)
        total = max(num_new, num_old)
        rewritten = 0

        for i in range(total):
            if i > 0:
                out.append(self._newline)
            if i >= num_new:
                # Line existed before but not now
                out.append(ansi.CLEAR_LINE)
            elif i >= num_old or lines[i] != prev[i]:
                out.append(ansi.CLEAR_LINE)
                out.append(lines[i])
                rewritten += 1

        if num_new < num_old:
            out.append(ansi.cursor_up(num_old - num_new))
            out.append("\r")

        if rewritten:
            logger.debug("repainted %d of %d lines", rewritten, num_new)
        return out, rewritten

    def _origin(self) -> list[str]:
        """Escape codes moving the cursor back to the frame's first line."""
        if self._alt_screen:
            return [ansi.CURSOR_HOME]
        out: list[str] = []
        if self._frame_height > 1:
            out.append(ansi.cursor_up(self._frame_height - 1))
        out.append("\r")
        return out
