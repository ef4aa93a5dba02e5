"""Input decoder: raw terminal bytes to key and mouse messages.

The decoder pulls one byte at a time from a :class:`ByteSource` and walks a
small state machine over the escape-sequence grammar terminals emit in raw
mode: control bytes, ``ESC`` prefixes for Alt, CSI sequences (cursor keys,
tilde keys, modifier reports, SGR mouse), SS3 sequences, and UTF-8 lead
bytes.  Decoded messages are put on a bounded :class:`asyncio.Queue`, so a
slow consumer pauses the decoder.

Unrecognised or malformed input never raises; it simply yields no message.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Protocol

from termloop.ansi import parse_mouse_sgr
from termloop.messages import KeyMsg, Message

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------

# Final byte of a parameterless CSI sequence
CSI_KEYS: dict[str, str] = {
    "A": "up",
    "B": "down",
    "C": "right",
    "D": "left",
    "H": "home",
    "F": "end",
    "Z": "shift+tab",
}

# Leading parameter of ESC [ N ~
TILDE_KEYS: dict[str, str] = {
    "1": "home",
    "2": "insert",
    "3": "delete",
    "4": "end",
    "5": "pgup",
    "6": "pgdown",
    "11": "f1",
    "12": "f2",
    "13": "f3",
    "14": "f4",
    "15": "f5",
    "17": "f6",
    "18": "f7",
    "19": "f8",
    "20": "f9",
    "21": "f10",
    "23": "f11",
    "24": "f12",
}

# Final byte of ESC [ 1 ; M X
MODIFIED_KEYS: dict[str, str] = {
    "A": "up",
    "B": "down",
    "C": "right",
    "D": "left",
    "H": "home",
    "F": "end",
}

# xterm modifier parameter (1 + bitmask) -> key-name prefix
MODIFIER_PREFIXES: dict[int, str] = {
    2: "shift+",
    3: "alt+",
    4: "shift+alt+",
    5: "ctrl+",
    6: "ctrl+shift+",
    7: "ctrl+alt+",
    8: "ctrl+shift+alt+",
}

# Byte following ESC O
SS3_KEYS: dict[int, str] = {
    0x50: "f1",
    0x51: "f2",
    0x52: "f3",
    0x53: "f4",
    0x41: "up",
    0x42: "down",
    0x43: "right",
    0x44: "left",
    0x48: "home",
    0x46: "end",
}

_LEADING_NUMBER_RE = re.compile(r"^(\d+)")
_MODIFIER_RE = re.compile(r"^1;(\d+)")

ESC = 0x1B


def utf8_continuation_count(lead: int) -> int:
    """Number of continuation bytes implied by a UTF-8 lead byte."""
    if 0xC0 <= lead <= 0xDF:
        return 1
    if 0xE0 <= lead <= 0xEF:
        return 2
    if 0xF0 <= lead <= 0xF7:
        return 3
    return 0


# ---------------------------------------------------------------------------
# Byte sources
# ---------------------------------------------------------------------------


class ByteSource(Protocol):
    """Blocking byte-at-a-time input."""

    async def read_byte(self, timeout: float | None = None) -> int | None:
        """Return the next byte, or ``None`` at end of stream.

        With a *timeout*, ``None`` is also returned when no byte arrives in
        time.
        """
        ...


class ByteQueue:
    """An in-process :class:`ByteSource` fed with :meth:`feed`.

    The process terminal feeds it from a stdin reader callback; tests feed
    it directly.  :meth:`close` marks end of stream once buffered bytes are
    consumed.
    """

    _EOF = -1

    def __init__(self) -> None:
        self._queue: asyncio.Queue[int] = asyncio.Queue()
        self._closed = False
        self._eof_seen = False

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, data: bytes | str) -> None:
        if self._closed:
            return
        if isinstance(data, str):
            data = data.encode("utf-8")
        for b in data:
            self._queue.put_nowait(b)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(self._EOF)

    async def read_byte(self, timeout: float | None = None) -> int | None:
        if self._eof_seen:
            return None
        try:
            if timeout is None:
                b = await self._queue.get()
            else:
                b = await asyncio.wait_for(self._queue.get(), timeout)
        except TimeoutError:
            return None
        if b == self._EOF:
            self._eof_seen = True
            return None
        return b


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------


class InputDecoder:
    """Decode a :class:`ByteSource` into key/mouse messages.

    Parameters
    ----------
    source:
        Where bytes come from.
    events:
        Destination queue.  When bounded, :meth:`run` waits for room.
    escape_timeout:
        Seconds to wait after a lone ``ESC`` before reporting it as the
        Escape key.
    """

    def __init__(
        self,
        source: ByteSource,
        events: asyncio.Queue[Message],
        *,
        escape_timeout: float = 0.01,
    ) -> None:
        self._source = source
        self._events = events
        self._escape_timeout = escape_timeout
        self._ended = False

    async def run(self) -> None:
        """Decode until the source reports end of stream."""
        while not self._ended:
            msg = await self.next_event()
            if msg is not None:
                await self._events.put(msg)

    async def next_event(self) -> Message | None:
        """Read and decode one event.

        Returns ``None`` when the bytes read form no recognised event, or at
        end of stream (after which :attr:`ended` is true).
        """
        b = await self._source.read_byte()
        if b is None:
            if not self._ended:
                logger.debug("input stream ended")
            self._ended = True
            return None
        return await self.decode(b)

    @property
    def ended(self) -> bool:
        return self._ended

    async def decode(self, b: int) -> Message | None:
        """Decode the event that starts with byte *b*.

        Any further bytes the event needs are read from the source.
        """
        if 1 <= b <= 26:
            if b == 9:
                return KeyMsg(key="tab")
            if b in (10, 13):
                return KeyMsg(key="enter")
            return KeyMsg(key="ctrl+" + chr(b + 96))

        if b == ESC:
            return await self._decode_escape()

        if b == 127:
            return KeyMsg(key="backspace")

        if b == 32:
            return KeyMsg(key=" ")

        if 33 <= b <= 126:
            return KeyMsg(key=chr(b))

        if 0xC0 <= b <= 0xFD:
            return await self._decode_utf8(b)

        return None

    async def _decode_escape(self) -> Message | None:
        nb = await self._source.read_byte(self._escape_timeout)
        if nb is None:
            return KeyMsg(key="escape")
        if nb == 0x5B:  # [
            return await self._decode_csi()
        if nb == 0x4F:  # O
            return await self._decode_ss3()
        if nb == ESC:
            return KeyMsg(key="escape")
        if 32 <= nb <= 126:
            return KeyMsg(key="alt+" + chr(nb))
        return KeyMsg(key="escape")

    async def _decode_csi(self) -> Message | None:
        params = ""
        while True:
            b = await self._source.read_byte()
            if b is None:
                return None

            c = chr(b)

            if not params and c == "<":
                return await self._decode_sgr_mouse()

            if 0x40 <= b <= 0x7E:
                return self._csi_final(params, c)

            # parameter (0x30-0x3F) and intermediate bytes
            params += c

    def _csi_final(self, params: str, final: str) -> Message | None:
        if not params:
            key = CSI_KEYS.get(final)
            return KeyMsg(key=key) if key else self._drop(params + final)

        if final == "~":
            m = _LEADING_NUMBER_RE.match(params)
            key = TILDE_KEYS.get(m.group(1)) if m else None
            return KeyMsg(key=key) if key else self._drop(params + final)

        m = _MODIFIER_RE.match(params)
        if m is not None:
            key = MODIFIED_KEYS.get(final)
            if key is None:
                return self._drop(params + final)
            return KeyMsg(key=MODIFIER_PREFIXES.get(int(m.group(1)), "") + key)

        return self._drop(params + final)

    async def _decode_sgr_mouse(self) -> Message | None:
        body = ""
        while True:
            b = await self._source.read_byte()
            if b is None:
                return None
            c = chr(b)
            if c in ("M", "m"):
                msg = parse_mouse_sgr(f"[<{body}{c}")
                return msg if msg is not None else self._drop("<" + body + c)
            body += c

    async def _decode_ss3(self) -> Message | None:
        b = await self._source.read_byte()
        if b is None:
            return None
        key = SS3_KEYS.get(b)
        return KeyMsg(key=key) if key else self._drop("O" + chr(b))

    async def _decode_utf8(self, lead: int) -> Message:
        seq = bytearray([lead])
        for _ in range(utf8_continuation_count(lead)):
            b = await self._source.read_byte()
            if b is None:
                break
            seq.append(b)
        return KeyMsg(key=seq.decode("utf-8", errors="replace"))

    @staticmethod
    def _drop(seq: str) -> None:
        logger.debug("dropping unrecognised sequence %r", seq)
        return None


async def decode_bytes(data: bytes | str, *, escape_timeout: float = 0.01) -> list[Message]:
    """Decode a complete byte string and return every message it yields."""
    source = ByteQueue()
    source.feed(data)
    source.close()
    events: asyncio.Queue[Message] = asyncio.Queue()
    await InputDecoder(source, events, escape_timeout=escape_timeout).run()
    out: list[Message] = []
    while not events.empty():
        out.append(events.get_nowait())
    return out
