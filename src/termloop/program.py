"""The program runtime: a single-threaded reactor over every event source.

A :class:`Program` ties the pieces together.  It brackets the run with a
:class:`~termloop.session.TerminalSession`, measures the terminal, starts the
input decoder, and then loops: wait until any source is ready, turn its
payload into a message, call ``update``, and paint ``view`` through the
differential renderer.

Sources, in the order used to break ties when several are ready at once:

1. supervisor events (cancellation)
2. resize notifications
3. decoded input
4. command results
5. the tick timer
6. inbox values

Messages from one source arrive in the order they were produced; nothing
is promised across sources.
"""

from __future__ import annotations

import asyncio
import contextvars
import enum
import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any, Generic, TypeVar

from termloop.commands import Command, CommandExecutor, TickSlot, parse_duration
from termloop.config import ProgramConfig
from termloop.decoder import ByteQueue, InputDecoder
from termloop.messages import CustomMsg, InboxMsg, Message, QuitMsg
from termloop.renderer import FrameRenderer
from termloop.session import TerminalSession
from termloop.terminal import ProcessTerminal, Terminal

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")

CANCEL = "cancel"

_current: contextvars.ContextVar[Program[Any] | None] = contextvars.ContextVar(
    "termloop_program", default=None
)


class ProgramState(enum.Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


def is_cancel(event: object) -> bool:
    """Return ``True`` if a supervisor event asks the program to stop."""
    if event == CANCEL:
        return True
    if isinstance(event, Mapping):
        return event.get("kind") == CANCEL
    return getattr(event, "kind", None) == CANCEL


class Program(Generic[ModelT]):
    """Run an application defined by ``init``, ``update`` and ``view``.

    ``update`` receives the current model and a message and returns the
    next model; it must not touch the terminal, and requests effects
    through :meth:`cmd`, :meth:`batch` and :meth:`tick`.  ``view`` returns
    the frame text, lines separated by ``\\n``.

    *supervisor* and *inbox* are optional externally owned queues.  A
    cancellation event on *supervisor* delivers one :class:`QuitMsg` and
    stops the loop; values on *inbox* arrive as :class:`InboxMsg`.
    """

    def __init__(
        self,
        init: Callable[[], ModelT],
        update: Callable[[ModelT, Message], ModelT],
        view: Callable[[ModelT], str],
        config: ProgramConfig | None = None,
        *,
        terminal: Terminal | None = None,
        supervisor: asyncio.Queue[Any] | None = None,
        inbox: asyncio.Queue[Any] | None = None,
    ) -> None:
        self._init = init
        self._update = update
        self._view = view
        self.config = config or ProgramConfig()
        self._terminal = terminal

        self._supervisor: asyncio.Queue[Any] = supervisor if supervisor is not None else asyncio.Queue()
        self._inbox: asyncio.Queue[Any] = inbox if inbox is not None else asyncio.Queue()
        self._resizes: asyncio.Queue[tuple[int, int]] = asyncio.Queue()
        self._events: asyncio.Queue[Message] = asyncio.Queue(maxsize=self.config.event_queue_size)
        # None on this queue only wakes the loop
        self._results: asyncio.Queue[Message | None] = asyncio.Queue()
        self._ticks: asyncio.Queue[Message] = asyncio.Queue()

        self._sources: tuple[tuple[str, asyncio.Queue[Any]], ...] = (
            ("supervisor", self._supervisor),
            ("resize", self._resizes),
            ("input", self._events),
            ("command", self._results),
            ("tick", self._ticks),
            ("inbox", self._inbox),
        )
        self._getters: dict[str, asyncio.Future[Any]] = {}

        self._executor: CommandExecutor | None = None
        self._tick_slot: TickSlot | None = None
        self._renderer: FrameRenderer | None = None
        self._session: TerminalSession | None = None
        self._event_loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: int | None = None

        self._state = ProgramState.INITIALIZING
        self._quit_requested = False
        self._model: ModelT | None = None
        self._width: int = 80
        self._height: int = 24

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ProgramState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state in (ProgramState.RUNNING, ProgramState.DRAINING)

    @property
    def model(self) -> ModelT | None:
        return self._model

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def size(self) -> tuple[int, int]:
        return self._width, self._height

    @property
    def renderer(self) -> FrameRenderer | None:
        return self._renderer

    # ------------------------------------------------------------------
    # Application API
    # ------------------------------------------------------------------

    def quit(self) -> None:
        """Stop after the current dispatch has been rendered.

        Safe to call from commands, including ones running on worker threads.
        """
        if self._off_loop_thread():
            self._call_on_loop(self.quit)
            return
        self._quit_requested = True
        # wake the reactor if it is waiting, e.g. when a command asked to quit
        self._results.put_nowait(None)

    def cmd(self, fn: Command) -> None:
        """Run *fn* concurrently and deliver its return value as a message."""
        if self._executor is None:
            logger.debug("cmd() outside a run ignored")
            return
        if self._off_loop_thread():
            self._call_on_loop(self.cmd, fn)
            return
        self._executor.schedule(fn)

    def batch(self, *fns: Command) -> None:
        if self._executor is None:
            logger.debug("batch() outside a run ignored")
            return
        if self._off_loop_thread():
            self._call_on_loop(self.batch, *fns)
            return
        self._executor.batch(*fns)

    def tick(self, duration: float | int | str) -> None:
        """Deliver one :class:`TickMsg` after *duration*; call again to repeat."""
        if self._tick_slot is None:
            raise RuntimeError("tick() requires a running program")
        if self._off_loop_thread():
            parse_duration(duration)
            self._call_on_loop(self.tick, duration)
            return
        self._tick_slot.arm(duration)

    def send(self, value: Any) -> None:
        """Post *value* to this program's inbox."""
        if self._off_loop_thread():
            self._call_on_loop(self.send, value)
            return
        self._inbox.put_nowait(value)

    def cancel(self) -> None:
        """Ask the program to stop, as a supervisor would."""
        if self._off_loop_thread():
            self._call_on_loop(self.cancel)
            return
        self._supervisor.put_nowait(CANCEL)

    def _off_loop_thread(self) -> bool:
        return self._loop_thread is not None and threading.get_ident() != self._loop_thread

    def _call_on_loop(self, fn: Callable[..., None], *args: Any) -> None:
        assert self._event_loop is not None
        try:
            self._event_loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            # loop already closed, the run is over
            logger.debug("%s() after the run ended ignored", fn.__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run_sync(self) -> ModelT:
        """Run the program on a fresh event loop and return the final model."""
        return asyncio.run(self.run())

    async def run(self) -> ModelT:
        """Run until quit or cancellation and return the final model.

        Any exception raised by ``init``, ``update``, ``view`` or the
        ``on_quit`` hook propagates unchanged, after the terminal has been
        restored.
        """
        if self._state is not ProgramState.INITIALIZING:
            raise RuntimeError("a Program can only be run once")

        token = _current.set(self)
        self._event_loop = asyncio.get_running_loop()
        self._loop_thread = threading.get_ident()
        terminal = self._terminal or ProcessTerminal(write_log=self.config.write_log)
        session = TerminalSession(
            terminal,
            alt_screen=self.config.alt_screen,
            mouse=self.config.mouse,
        )
        self._session = session
        source = ByteQueue()
        decoder_task: asyncio.Task[None] | None = None

        try:
            with session:
                terminal.start_input(source)
                try:
                    self._width, self._height = await session.query_size(
                        source, self.config.size_timeout
                    )
                    terminal.set_resize_handler(self._on_resize)

                    self._executor = CommandExecutor(self._results)
                    self._tick_slot = TickSlot(self._ticks)

                    self._model = self._init()

                    decoder = InputDecoder(
                        source,
                        self._events,
                        escape_timeout=self.config.escape_timeout,
                    )
                    decoder_task = asyncio.get_running_loop().create_task(decoder.run())

                    self._renderer = FrameRenderer(terminal.write, alt_screen=self.config.alt_screen)
                    self._state = ProgramState.RUNNING
                    logger.debug("program running at %dx%d", self._width, self._height)

                    self._renderer.paint(self._view(self._model))
                    await self._loop()

                    self._state = ProgramState.DRAINING
                    if self.config.on_quit is not None:
                        self.config.on_quit()
                finally:
                    self._state = ProgramState.DRAINING
                    self._teardown(terminal, source, decoder_task)
        finally:
            self._state = ProgramState.TERMINATED
            _current.reset(token)
            logger.debug("program terminated")

        return self._model  # type: ignore[return-value]

    def _teardown(
        self,
        terminal: Terminal,
        source: ByteQueue,
        decoder_task: asyncio.Task[None] | None,
    ) -> None:
        for getter in self._getters.values():
            getter.cancel()
        self._getters.clear()

        if decoder_task is not None:
            decoder_task.cancel()
        if self._tick_slot is not None:
            self._tick_slot.cancel()
        if self._executor is not None:
            self._executor.shutdown()

        terminal.set_resize_handler(None)
        terminal.stop_input()
        source.close()

    # ------------------------------------------------------------------
    # Reactor
    # ------------------------------------------------------------------

    async def _loop(self) -> None:
        assert self._renderer is not None
        dirty = False

        while not self._quit_requested:
            name, payload = await self._next_ready()
            msg = self._translate(name, payload)

            if msg is not None:
                self._model = self._update(self._model, msg)  # type: ignore[arg-type]
                dirty = True

            if dirty:
                self._renderer.paint(self._view(self._model))  # type: ignore[arg-type]
                dirty = False

    async def _next_ready(self) -> tuple[str, Any]:
        """Wait for any source and consume exactly one ready payload.

        A pending ``get()`` is kept per source across iterations, so a
        payload taken off a queue but not chosen this time is handed out on
        a later iteration rather than lost.
        """
        loop = asyncio.get_running_loop()
        for name, queue in self._sources:
            if name not in self._getters:
                self._getters[name] = loop.create_task(queue.get())

        await asyncio.wait(self._getters.values(), return_when=asyncio.FIRST_COMPLETED)

        for name, _ in self._sources:
            getter = self._getters[name]
            if getter.done():
                del self._getters[name]
                return name, getter.result()

        raise RuntimeError("no event source became ready")  # pragma: no cover

    def _translate(self, name: str, payload: Any) -> Message | None:
        if name == "supervisor":
            if is_cancel(payload):
                logger.debug("cancellation received")
                self._quit_requested = True
                return QuitMsg()
            logger.debug("ignoring supervisor event %r", payload)
            return None

        if name == "resize":
            width, height = payload
            self._width, self._height = width, height
            if self._session is not None:
                self._session.columns, self._session.rows = width, height
            if self._renderer is not None:
                self._renderer.invalidate()
            return CustomMsg(type="resize", data={"width": width, "height": height})

        if name == "inbox":
            return InboxMsg(value=payload)

        # input, command and tick payloads are already messages; a None
        # command payload is a wake-up after quit()
        return payload

    def _on_resize(self) -> None:
        if self._session is None:
            return
        terminal = self._session.terminal
        self._resizes.put_nowait((terminal.columns, terminal.rows))


# ---------------------------------------------------------------------------
# Module-level API bound to the program running in the current context
# ---------------------------------------------------------------------------


def current_program() -> Program[Any]:
    """Return the program running in this context.

    Available inside ``init``, ``update``, ``view`` and async commands.
    """
    program = _current.get()
    if program is None:
        raise RuntimeError("no termloop program is running in this context")
    return program


def quit() -> None:
    current_program().quit()


def cmd(fn: Command) -> None:
    current_program().cmd(fn)


def batch(*fns: Command) -> None:
    current_program().batch(*fns)


def tick(duration: float | int | str) -> None:
    current_program().tick(duration)


def send(value: Any) -> None:
    current_program().send(value)


def width() -> int:
    return current_program().width


def height() -> int:
    return current_program().height


def size() -> tuple[int, int]:
    return current_program().size


def is_running() -> bool:
    program = _current.get()
    return program is not None and program.is_running


def run(
    init: Callable[[], ModelT],
    update: Callable[[ModelT, Message], ModelT],
    view: Callable[[ModelT], str],
    config: ProgramConfig | None = None,
    **kwargs: Any,
) -> ModelT:
    """Build a :class:`Program` and run it to completion on a new event loop."""
    return Program(init, update, view, config, **kwargs).run_sync()
