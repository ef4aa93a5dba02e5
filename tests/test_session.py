"""Tests for TerminalSession -- mode bracketing and size detection."""

from __future__ import annotations

import pytest

from termloop import ansi
from termloop.decoder import ByteQueue
from termloop.session import TerminalSession

from .virtual_terminal import VirtualTerminal


class TestEnterExit:
    def test_enter_plain(self) -> None:
        term = VirtualTerminal()
        session = TerminalSession(term)
        session.enter()
        assert term.raw
        assert not term.cursor_visible
        assert not term.alt_screen
        assert not term.mouse
        assert session.active

    def test_enter_with_alt_screen_and_mouse(self) -> None:
        term = VirtualTerminal()
        TerminalSession(term, alt_screen=True, mouse=True).enter()
        out = term.output
        assert out.index(ansi.ALT_SCREEN_ON) < out.index(ansi.CLEAR_SCREEN) < out.index(ansi.CURSOR_HOME)
        assert term.alt_screen
        assert term.mouse
        assert not term.cursor_visible

    def test_exit_restores_everything(self) -> None:
        term = VirtualTerminal()
        session = TerminalSession(term, alt_screen=True, mouse=True)
        session.enter()
        term.clear_buffer()
        session.exit()
        assert term.output == (
            ansi.CURSOR_SHOW + ansi.MOUSE_DISABLE + ansi.ALT_SCREEN_OFF + ansi.RESET
        )
        assert not term.raw
        assert term.cursor_visible
        assert not term.alt_screen
        assert not term.mouse
        assert not session.active

    def test_exit_only_undoes_what_was_entered(self) -> None:
        term = VirtualTerminal()
        session = TerminalSession(term)
        session.enter()
        term.clear_buffer()
        session.exit()
        assert ansi.MOUSE_DISABLE not in term.output
        assert ansi.ALT_SCREEN_OFF not in term.output

    def test_exit_is_idempotent(self) -> None:
        term = VirtualTerminal()
        session = TerminalSession(term)
        session.enter()
        session.exit()
        term.clear_buffer()
        session.exit()
        assert term.output == ""

    def test_context_manager_restores_on_exception(self) -> None:
        term = VirtualTerminal()
        with pytest.raises(ZeroDivisionError):
            with TerminalSession(term, alt_screen=True):
                assert term.raw
                1 / 0
        assert not term.raw
        assert term.cursor_visible
        assert not term.alt_screen

    def test_raw_mode_left_even_if_write_fails(self) -> None:
        class FailingTerminal(VirtualTerminal):
            fail = False

            def write(self, data: str) -> None:
                if self.fail:
                    raise OSError("broken pipe")
                super().write(data)

        term = FailingTerminal()
        session = TerminalSession(term)
        session.enter()
        term.fail = True
        with pytest.raises(OSError):
            session.exit()
        assert not term.raw

    def test_failed_enter_leaves_raw_mode(self) -> None:
        class FailingTerminal(VirtualTerminal):
            def write(self, data: str) -> None:
                raise OSError("terminal gone")

        term = FailingTerminal()
        session = TerminalSession(term, alt_screen=True, mouse=True)
        with pytest.raises(OSError, match="terminal gone"):
            with session:
                pytest.fail("body must not run when enter fails")
        assert term.raw_entered == 1
        assert not term.raw
        assert not session.active

    def test_failed_enter_restores_modes_the_write_reached(self) -> None:
        class PartialTerminal(VirtualTerminal):
            failed = False

            def write(self, data: str) -> None:
                super().write(data)
                if not self.failed:
                    self.failed = True
                    raise OSError("short write")

        term = PartialTerminal()
        with pytest.raises(OSError):
            TerminalSession(term, alt_screen=True, mouse=True).enter()
        assert not term.raw
        assert term.cursor_visible
        assert not term.alt_screen
        assert not term.mouse


class TestQuerySize:
    @pytest.mark.asyncio
    async def test_reads_report(self) -> None:
        term = VirtualTerminal(rows=40, columns=120)
        source = ByteQueue()
        term.start_input(source)
        session = TerminalSession(term)
        session.columns, session.rows = 80, 24
        assert await session.query_size(source, timeout=0.1) == (120, 40)
        assert (session.columns, session.rows) == (120, 40)

    @pytest.mark.asyncio
    async def test_query_protocol(self) -> None:
        term = VirtualTerminal()
        source = ByteQueue()
        term.start_input(source)
        await TerminalSession(term).query_size(source, timeout=0.1)
        assert term.output == (
            ansi.CURSOR_SAVE + ansi.cursor_move_to(9999, 9999) + ansi.DSR_QUERY + ansi.CURSOR_RESTORE
        )

    @pytest.mark.asyncio
    async def test_no_reply_keeps_previous_size(self) -> None:
        term = VirtualTerminal(rows=30, columns=100, answer_size_query=False)
        source = ByteQueue()
        term.start_input(source)
        session = TerminalSession(term)
        assert await session.query_size(source, timeout=0.01) == (100, 30)
        assert term.output.endswith(ansi.CURSOR_RESTORE)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reply",
        [
            "x",
            "\x1bx",
            "\x1b[12R",
            "\x1b[;80R",
            "\x1b[1;2;3R",
            "\x1b[1a;80R",
            "\x1b[24;80",
        ],
    )
    async def test_malformed_reply_keeps_previous_size(self, reply: str) -> None:
        term = VirtualTerminal(rows=24, columns=80)
        term.size_reply = reply
        source = ByteQueue()
        term.start_input(source)
        session = TerminalSession(term)
        session.columns, session.rows = 77, 11
        assert await session.query_size(source, timeout=0.01) == (77, 11)

    @pytest.mark.asyncio
    async def test_zero_dimensions_are_ignored(self) -> None:
        term = VirtualTerminal()
        term.size_reply = "\x1b[0;0R"
        source = ByteQueue()
        term.start_input(source)
        session = TerminalSession(term)
        session.columns, session.rows = 90, 30
        assert await session.query_size(source, timeout=0.01) == (90, 30)
