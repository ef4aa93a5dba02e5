"""Text measurement helpers for styled terminal output.

The renderer only needs :func:`split_lines`; the rest is the measurement
surface style/layout code builds on: stripping escape codes, measuring the
visible width of grapheme clusters, and padding to a visible width.
"""

from __future__ import annotations

import re
import unicodedata

import grapheme
import wcwidth as _wcwidth

# CSI sequences with any final letter, OSC 8 hyperlinks, and APC payloads
_STRIP_RE = re.compile(
    r"\x1b\[[0-9;?]*[A-Za-z]"
    r"|\x1b\]8;;[^\x07]*\x07"
    r"|\x1b_[^\x07\x1b]*(?:\x07|\x1b\\)"
)

_width_cache: dict[str, int] = {}
_WIDTH_CACHE_MAX = 512


def _cache_width(key: str, value: int) -> int:
    if len(_width_cache) >= _WIDTH_CACHE_MAX:
        _width_cache.clear()
    _width_cache[key] = value
    return value


def strip_ansi(text: str) -> str:
    """Remove escape sequences, leaving only the visible text."""
    return _STRIP_RE.sub("", text)


def split_lines(text: str) -> list[str]:
    """Split *text* into lines on ``\\n``.

    A single trailing newline does not produce an extra empty line, and an
    empty string yields one empty line, so every view occupies at least one
    terminal row.
    """
    lines = text.split("\n")
    if len(lines) > 1 and lines[-1] == "":
        lines.pop()
    return lines


def _grapheme_width(g: str) -> int:
    if len(g) == 1:
        cp = ord(g)
        if cp < 0x20 or 0x7F <= cp <= 0x9F:
            return 0
        return max(_wcwidth.wcwidth(g), 0)

    for ch in g:
        cp = ord(ch)
        # VS16, ZWJ, skin tones, regional indicators
        if cp in (0xFE0F, 0x200D) or 0x1F3FB <= cp <= 0x1F3FF or 0x1F1E6 <= cp <= 0x1F1FF:
            return 2

    if ord(g[0]) >= 0x1F000:
        return 2

    cat = unicodedata.category(g[0])
    if cat.startswith("M") or cat == "Cf":
        return 0
    return max(_wcwidth.wcwidth(g[0]), 0)


def visible_width(text: str) -> int:
    """Return the number of terminal columns *text* occupies.

    Escape sequences are ignored and tabs count as three columns.  Pure
    printable ASCII takes a fast path; other strings are measured per
    grapheme cluster and cached.
    """
    if not text:
        return 0

    stripped = strip_ansi(text).replace("\t", "   ")
    if stripped.isascii() and stripped.isprintable():
        return len(stripped)

    cached = _width_cache.get(stripped)
    if cached is not None:
        return cached

    total = sum(_grapheme_width(g) for g in grapheme.graphemes(stripped))
    return _cache_width(stripped, total)


def max_width(text: str) -> int:
    """Widest visible line of a possibly multi-line string."""
    return max((visible_width(line) for line in split_lines(text)), default=0)


def height(text: str) -> int:
    return len(split_lines(text))


def pad_right(text: str, width: int, fill: str = " ") -> str:
    gap = width - visible_width(text)
    if gap <= 0:
        return text
    return text + fill * gap


def pad_left(text: str, width: int, fill: str = " ") -> str:
    gap = width - visible_width(text)
    if gap <= 0:
        return text
    return fill * gap + text


def pad_center(text: str, width: int, fill: str = " ") -> str:
    gap = width - visible_width(text)
    if gap <= 0:
        return text
    left = gap // 2
    return fill * left + text + fill * (gap - left)
