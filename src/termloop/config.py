"""Runtime configuration for a program run."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Callable


def _env_flag(name: str) -> bool | None:
    value = os.environ.get(name)
    if value is None or value == "":
        return None
    return value == "1"


@dataclass(frozen=True)
class ProgramConfig:
    """Snapshot of run options, fixed when the program starts.

    ``fps`` is an advisory render-rate hint; frames are painted after every
    dispatch regardless.
    """

    alt_screen: bool = False
    mouse: bool = False
    fps: int = 60
    on_quit: Callable[[], None] | None = None

    # Input decoder queue bound; the decoder waits when it is full
    event_queue_size: int = 64
    # Seconds to wait for a byte after a lone ESC
    escape_timeout: float = 0.01
    # Seconds to wait for each byte of the size report
    size_timeout: float = 0.5
    # Append every terminal write to this file
    write_log: str | None = None

    def __post_init__(self) -> None:
        if self.fps <= 0:
            raise ValueError(f"fps must be positive, got {self.fps}")
        if self.event_queue_size <= 0:
            raise ValueError(f"event_queue_size must be positive, got {self.event_queue_size}")
        if self.escape_timeout < 0 or self.size_timeout < 0:
            raise ValueError("timeouts must not be negative")

    @classmethod
    def from_env(cls, **overrides: Any) -> ProgramConfig:
        """Build a config from ``TERMLOOP_*`` variables, then apply *overrides*."""
        values: dict[str, Any] = {}

        alt_screen = _env_flag("TERMLOOP_ALT_SCREEN")
        if alt_screen is not None:
            values["alt_screen"] = alt_screen

        mouse = _env_flag("TERMLOOP_MOUSE")
        if mouse is not None:
            values["mouse"] = mouse

        fps = os.environ.get("TERMLOOP_FPS")
        if fps:
            try:
                values["fps"] = int(fps)
            except ValueError:
                raise ValueError(f"TERMLOOP_FPS must be an integer, got {fps!r}") from None

        write_log = os.environ.get("TERMLOOP_WRITE_LOG")
        if write_log:
            values["write_log"] = write_log

        values.update(overrides)
        return cls(**values)

    def with_options(self, **changes: Any) -> ProgramConfig:
        return replace(self, **changes)
