"""Tests for the file-backed host and its loop timers."""

import io

import pytest
from rich.console import Console

from ..file_host import FileHost
from ..host import ERROR, WARN


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=120)


@pytest.fixture
def file_host(console):
    h = FileHost(console=console)
    yield h
    h.close()


@pytest.fixture
def doc(tmp_path):
    path = tmp_path / "doc.md"
    path.write_text("# Doc\n\n```mermaid\ngraph TD\n```\n")
    return str(path)


class TestBuffers:
    """Tests for opening files as buffers."""

    def test_open_reads_lines_and_sets_current(self, file_host, doc):
        bufnr = file_host.open(doc)
        assert file_host.current_buffer() == bufnr
        assert file_host.buffer_lines(bufnr) == ["# Doc", "", "```mermaid", "graph TD", "```"]
        assert file_host.buffer_filetype(bufnr) == "markdown"
        assert file_host.buffer_path(bufnr) == doc

    @pytest.mark.parametrize("name,filetype", [
        ("a.markdown", "markdown"),
        ("a.qmd", "quarto"),
        ("a.Rmd", "rmd"),
        ("a.norg", "norg"),
        ("a.txt", "txt"),
    ])
    def test_filetype_from_extension(self, file_host, tmp_path, name, filetype):
        path = tmp_path / name
        path.write_text("")
        assert file_host.buffer_filetype(file_host.open(str(path))) == filetype

    def test_filetype_override(self, file_host, doc):
        assert file_host.buffer_filetype(file_host.open(doc, filetype="vimwiki")) == "vimwiki"

    def test_buffers_numbered_in_order(self, file_host, doc):
        assert file_host.open(doc) == 1
        assert file_host.open(doc) == 2

    def test_no_buffer(self, file_host):
        with pytest.raises(RuntimeError):
            file_host.current_buffer()

    def test_invalid_buffer(self, file_host):
        with pytest.raises(KeyError):
            file_host.buffer_lines(5)

    def test_missing_file(self, file_host, tmp_path):
        with pytest.raises(OSError):
            file_host.open(str(tmp_path / "missing.md"))


class TestCommandsAndAutocmds:
    """Tests for command and autocommand dispatch."""

    def test_run_command(self, file_host):
        calls = []
        file_host.create_user_command("Hello", lambda: calls.append(1), desc="Say hi")
        file_host.run_command("Hello")
        assert calls == [1]
        assert file_host.commands == {"Hello": "Say hi"}

    def test_unknown_command(self, file_host):
        with pytest.raises(KeyError):
            file_host.run_command("Nope")

    def test_filetype_fired_on_open(self, file_host, doc):
        events = []
        file_host.create_autocmd("FileType", events.append, pattern=["markdown"])
        file_host.create_autocmd("FileType", events.append, pattern=["norg"])
        bufnr = file_host.open(doc)
        assert len(events) == 1
        assert events[0].buf == bufnr
        assert events[0].match == "markdown"

    def test_buffer_local_autocmd(self, file_host, doc):
        first = file_host.open(doc)
        second = file_host.open(doc)
        events = []
        file_host.create_autocmd(["InsertEnter", "CursorMoved"], events.append,
                                 buffer=first)
        assert file_host.fire("CursorMoved", second) == 0
        assert file_host.fire("CursorMoved", first) == 1
        assert events[0].event == "CursorMoved"

    def test_autocmd_ids_unique(self, file_host):
        a = file_host.create_autocmd("BufEnter", lambda e: None)
        b = file_host.create_autocmd("BufEnter", lambda e: None)
        assert a != b


class TestNotify:
    """Tests for user notifications."""

    def test_notifications_recorded_and_printed(self, file_host, console):
        file_host.notify("careful [now]", WARN)
        file_host.notify("broken", ERROR)
        assert file_host.notifications == [(WARN, "careful [now]"), (ERROR, "broken")]
        output = console.file.getvalue()
        assert "careful [now]" in output
        assert "broken" in output


class TestLoopTimer:
    """Tests for timers driven by the asyncio loop."""

    def test_repeats_until_stopped(self, file_host):
        timer = file_host.new_timer()
        ticks = []

        def tick():
            ticks.append(1)
            if len(ticks) == 3:
                timer.stop()

        timer.start(0, 5, tick)
        assert timer.is_active()
        assert file_host.run_until(lambda: not timer.is_active(), timeout=2)
        file_host.run_until(lambda: False, timeout=0.05)
        assert len(ticks) == 3

    def test_one_shot(self, file_host):
        timer = file_host.new_timer()
        ticks = []
        timer.start(1, 0, lambda: ticks.append(1))
        assert file_host.run_until(lambda: ticks, timeout=2)
        assert not timer.is_active()

    def test_close(self, file_host):
        timer = file_host.new_timer()
        ticks = []
        timer.start(0, 5, lambda: ticks.append(1))
        timer.close()
        assert timer.is_closing()
        assert not timer.is_active()
        file_host.run_until(lambda: False, timeout=0.05)
        assert ticks == []
        with pytest.raises(RuntimeError):
            timer.start(0, 5, lambda: None)

    def test_run_until_timeout(self, file_host):
        assert file_host.run_until(lambda: False, timeout=0.05) is False

    def test_no_timer_after_close(self, console):
        h = FileHost(console=console)
        h.close()
        assert h.new_timer() is None
