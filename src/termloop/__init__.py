"""termloop: terminal application runtime with differential rendering."""

# Escape primitives
from termloop.ansi import parse_mouse_sgr

# Commands and timers
from termloop.commands import CommandExecutor, TickSlot, parse_duration

# Configuration
from termloop.config import ProgramConfig

# Input decoding
from termloop.decoder import ByteQueue, ByteSource, InputDecoder, decode_bytes

# Messages
from termloop.messages import (
    CustomMsg,
    InboxMsg,
    KeyMsg,
    Message,
    MouseMsg,
    QuitMsg,
    TickMsg,
    error_message,
    in_region,
    parse_message,
)

# Runtime
from termloop.program import (
    CANCEL,
    Program,
    ProgramState,
    batch,
    cmd,
    current_program,
    height,
    is_running,
    quit,
    run,
    send,
    size,
    tick,
    width,
)

# Rendering
from termloop.renderer import FrameRenderer

# Terminal state
from termloop.session import TerminalSession
from termloop.terminal import ProcessTerminal, Terminal

# Text measurement
from termloop.text import max_width, split_lines, strip_ansi, visible_width

__all__ = [
    # Ansi
    "parse_mouse_sgr",
    # Commands
    "CommandExecutor",
    "TickSlot",
    "parse_duration",
    # Config
    "ProgramConfig",
    # Decoder
    "ByteQueue",
    "ByteSource",
    "InputDecoder",
    "decode_bytes",
    # Messages
    "CustomMsg",
    "InboxMsg",
    "KeyMsg",
    "Message",
    "MouseMsg",
    "QuitMsg",
    "TickMsg",
    "error_message",
    "in_region",
    "parse_message",
    # Runtime
    "CANCEL",
    "Program",
    "ProgramState",
    "batch",
    "cmd",
    "current_program",
    "height",
    "is_running",
    "quit",
    "run",
    "send",
    "size",
    "tick",
    "width",
    # Rendering
    "FrameRenderer",
    # Terminal
    "ProcessTerminal",
    "Terminal",
    "TerminalSession",
    # Text
    "max_width",
    "split_lines",
    "strip_ansi",
    "visible_width",
]
