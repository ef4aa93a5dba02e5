"""Message types delivered to an application's ``update`` function.

Every message is a frozen Pydantic model carrying a literal ``kind``
discriminator, so the full set forms a closed tagged union.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

MouseButton = Literal["left", "middle", "right", "none", "scroll"]
MouseAction = Literal["press", "release", "motion", "scroll_up", "scroll_down"]


class _Msg(BaseModel):
    model_config = ConfigDict(frozen=True)


class KeyMsg(_Msg):
    kind: Literal["key"] = "key"
    key: str
    value: Any = None


class MouseMsg(_Msg):
    kind: Literal["mouse"] = "mouse"
    button: MouseButton
    action: MouseAction
    row: int
    col: int
    shift: bool = False
    alt: bool = False
    ctrl: bool = False


class TickMsg(_Msg):
    kind: Literal["tick"] = "tick"


class InboxMsg(_Msg):
    kind: Literal["inbox"] = "inbox"
    value: Any = None


class CustomMsg(_Msg):
    kind: Literal["custom"] = "custom"
    type: str
    message: str = ""
    data: Any = None


class QuitMsg(_Msg):
    kind: Literal["quit"] = "quit"


Message = Annotated[
    Union[KeyMsg, MouseMsg, TickMsg, InboxMsg, CustomMsg, QuitMsg],
    Field(discriminator="kind"),
]

_message_adapter: TypeAdapter[Message] = TypeAdapter(Message)


def parse_message(data: Any) -> Message:
    """Validate a plain mapping (e.g. ``{"kind": "key", "key": "q"}``) into a message."""
    return _message_adapter.validate_python(data)


def is_message(value: object) -> bool:
    return isinstance(value, (KeyMsg, MouseMsg, TickMsg, InboxMsg, CustomMsg, QuitMsg))


def error_message(exc: BaseException) -> CustomMsg:
    """Build the message delivered in place of a failed command's result."""
    return CustomMsg(type="error", message=str(exc) or type(exc).__name__)


def in_region(msg: MouseMsg, row: int, col: int, width: int, height: int) -> bool:
    """Return ``True`` if the mouse event falls inside the given rectangle.

    ``row``/``col`` give the 1-based top-left cell; the region spans
    ``width`` columns and ``height`` rows.
    """
    return row <= msg.row < row + height and col <= msg.col < col + width
