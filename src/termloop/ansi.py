"""ANSI/VT escape primitives used by the runtime.

Cursor movement, screen and line clearing, alternate screen, mouse tracking
modes, and parsing of xterm SGR mouse reports.
"""

from __future__ import annotations

import re

from termloop.messages import MouseMsg

# ---------------------------------------------------------------------------
# Escape constants
# ---------------------------------------------------------------------------

ESC = "\x1b"
CSI = "\x1b["

RESET = "\x1b[0m"

CURSOR_HIDE = "\x1b[?25l"
CURSOR_SHOW = "\x1b[?25h"
CURSOR_SAVE = "\x1b[s"
CURSOR_RESTORE = "\x1b[u"
CURSOR_HOME = "\x1b[1;1H"

CLEAR_SCREEN = "\x1b[2J"
CLEAR_LINE = "\x1b[2K"
CLEAR_LINE_RIGHT = "\x1b[0K"
CLEAR_LINE_LEFT = "\x1b[1K"
CLEAR_DOWN = "\x1b[0J"
CLEAR_UP = "\x1b[1J"

ALT_SCREEN_ON = "\x1b[?1049h"
ALT_SCREEN_OFF = "\x1b[?1049l"

# SGR encoding (1006) with button tracking (1000)
MOUSE_ENABLE = "\x1b[?1000h\x1b[?1006h"
MOUSE_DISABLE = "\x1b[?1000l\x1b[?1006l"
# Any-event tracking, reports motion with no button held
MOUSE_MOTION_ENABLE = "\x1b[?1003h\x1b[?1006h"
MOUSE_MOTION_DISABLE = "\x1b[?1003l\x1b[?1006l"

# Device Status Report: terminal answers ESC [ rows ; cols R
DSR_QUERY = "\x1b[6n"


def cursor_up(n: int = 1) -> str:
    return f"{CSI}{n}A"


def cursor_down(n: int = 1) -> str:
    return f"{CSI}{n}B"


def cursor_right(n: int = 1) -> str:
    return f"{CSI}{n}C"


def cursor_left(n: int = 1) -> str:
    return f"{CSI}{n}D"


def cursor_move_to(row: int, col: int) -> str:
    return f"{CSI}{row};{col}H"


# ---------------------------------------------------------------------------
# SGR mouse reports
# ---------------------------------------------------------------------------

_SGR_MOUSE_RE = re.compile(r"^(?:\x1b)?\[<(\d+);(\d+);(\d+)([Mm])$")

_MOUSE_SHIFT = 4
_MOUSE_ALT = 8
_MOUSE_CTRL = 16
_MOUSE_MOTION = 32
_MOUSE_SCROLL = 64

_BUTTONS = ("left", "middle", "right", "none")


def parse_mouse_sgr(seq: str) -> MouseMsg | None:
    """Parse an SGR mouse report of the form ``[<btn;col;row`` + ``M``/``m``.

    The leading ESC is optional.  ``M`` is a press, ``m`` a release.  Returns
    ``None`` for anything that is not a well-formed report.
    """
    m = _SGR_MOUSE_RE.match(seq)
    if m is None:
        return None

    btn = int(m.group(1))
    col = int(m.group(2))
    row = int(m.group(3))
    released = m.group(4) == "m"
    base = btn & 3

    if btn & _MOUSE_SCROLL:
        button = "scroll"
        action = "scroll_up" if base == 0 else "scroll_down"
    else:
        button = _BUTTONS[base]
        if btn & _MOUSE_MOTION:
            action = "motion"
        elif released:
            action = "release"
        else:
            action = "press"

    return MouseMsg(
        button=button,
        action=action,
        row=row,
        col=col,
        shift=bool(btn & _MOUSE_SHIFT),
        alt=bool(btn & _MOUSE_ALT),
        ctrl=bool(btn & _MOUSE_CTRL),
    )
