# diagramview/file_host.py
"""Editor host over files on disk, driven by an asyncio event loop.

Used by the command line front end and handy for scripting: files are
opened as buffers, user commands and autocommands are kept in tables
and fired explicitly, and timers are ``loop.call_later`` chains so every
callback runs serialized on the loop.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from rich.console import Console

from .host import DEBUG, ERROR, INFO, WARN, AutocmdEvent

logger = logging.getLogger(__name__)

FILETYPE_BY_EXTENSION = {
    ".md": "markdown",
    ".markdown": "markdown",
    ".mdx": "markdown",
    ".qmd": "quarto",
    ".rmd": "rmd",
    ".norg": "norg",
}

_NOTIFY_STYLES = {
    DEBUG: "dim",
    INFO: "",
    WARN: "yellow",
    ERROR: "bold red",
}


class LoopTimer:
    """Repeating timer on an asyncio loop.

    The next tick is scheduled before the callback runs, so a callback
    that stops its own timer cancels the pending tick.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._callback: Optional[Callable[[], None]] = None
        self._repeat_ms = 0
        self._active = False
        self._closing = False

    def start(self, delay_ms: int, repeat_ms: int,
              callback: Callable[[], None]) -> None:
        if self._closing:
            raise RuntimeError("timer is closed")
        self.stop()
        self._callback = callback
        self._repeat_ms = repeat_ms
        self._active = True
        self._handle = self._loop.call_later(delay_ms / 1000, self._fire)

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._active = False

    def close(self) -> None:
        self.stop()
        self._callback = None
        self._closing = True

    def is_active(self) -> bool:
        return self._active

    def is_closing(self) -> bool:
        return self._closing

    def _fire(self) -> None:
        if not self._active or self._callback is None:
            return
        callback = self._callback
        if self._repeat_ms > 0:
            self._handle = self._loop.call_later(self._repeat_ms / 1000, self._fire)
        else:
            self._handle = None
            self._active = False
        callback()


@dataclass
class _Buffer:
    bufnr: int
    path: str
    filetype: str
    lines: List[str] = field(default_factory=list)


@dataclass
class _Autocmd:
    autocmd_id: int
    events: Tuple[str, ...]
    callback: Callable[[AutocmdEvent], None]
    buffer: Optional[int] = None
    pattern: Optional[Tuple[str, ...]] = None


class FileHost:
    """EditorHost implementation backed by files and an asyncio loop."""

    WINDOW = 1000

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None,
                 console: Optional[Console] = None):
        self._owns_loop = loop is None
        self._loop = loop or asyncio.new_event_loop()
        self._console = console or Console(stderr=True)
        self._buffers: Dict[int, _Buffer] = {}
        self._current: Optional[int] = None
        self._next_bufnr = 1
        self._commands: Dict[str, Tuple[Callable[[], None], str]] = {}
        self._autocmds: List[_Autocmd] = []
        self._next_autocmd = 1
        self.notifications: List[Tuple[int, str]] = []

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def open(self, path: str, filetype: Optional[str] = None) -> int:
        """Load a file into a new buffer and make it current.

        Fires ``FileType`` for the new buffer.

        Args:
            path: File to open.
            filetype: Filetype override; guessed from the extension if None.

        Returns:
            The buffer number.

        Raises:
            OSError: If the file cannot be read.
            UnicodeDecodeError: If the file is not UTF-8 text.
        """
        with open(path, encoding="utf-8") as f:
            lines = f.read().splitlines()
        if filetype is None:
            ext = os.path.splitext(path)[1].lower()
            filetype = FILETYPE_BY_EXTENSION.get(ext, ext.lstrip("."))

        bufnr = self._next_bufnr
        self._next_bufnr += 1
        self._buffers[bufnr] = _Buffer(bufnr, path, filetype, lines)
        self._current = bufnr
        logger.debug("Opened %s as buffer %d (%s)", path, bufnr, filetype)
        self.fire("FileType", bufnr)
        return bufnr

    def buffer_path(self, bufnr: int) -> str:
        return self._buffer(bufnr).path

    # EditorHost

    def current_buffer(self) -> int:
        if self._current is None:
            raise RuntimeError("no buffer is open")
        return self._current

    def current_window(self) -> int:
        return self.WINDOW

    def buffer_filetype(self, bufnr: int) -> str:
        return self._buffer(bufnr).filetype

    def buffer_lines(self, bufnr: int) -> List[str]:
        return list(self._buffer(bufnr).lines)

    def notify(self, message: str, level: int = INFO) -> None:
        self.notifications.append((level, message))
        logger.log(level, "%s", message)
        style = _NOTIFY_STYLES.get(level, "")
        self._console.print(message, style=style or None, markup=False)

    def create_user_command(self, name: str, callback: Callable[[], None],
                            desc: str = "") -> None:
        self._commands[name] = (callback, desc)

    def create_autocmd(
        self,
        events: Union[str, Sequence[str]],
        callback: Callable[[AutocmdEvent], None],
        buffer: Optional[int] = None,
        pattern: Optional[Sequence[str]] = None,
    ) -> int:
        if isinstance(events, str):
            events = [events]
        autocmd = _Autocmd(
            autocmd_id=self._next_autocmd,
            events=tuple(events),
            callback=callback,
            buffer=buffer,
            pattern=tuple(pattern) if pattern is not None else None,
        )
        self._next_autocmd += 1
        self._autocmds.append(autocmd)
        return autocmd.autocmd_id

    def new_timer(self) -> Optional[LoopTimer]:
        if self._loop.is_closed():
            return None
        return LoopTimer(self._loop)

    # Driving the host

    @property
    def commands(self) -> Dict[str, str]:
        """Registered user commands and their descriptions."""
        return {name: desc for name, (_, desc) in self._commands.items()}

    def run_command(self, name: str) -> None:
        entry = self._commands.get(name)
        if entry is None:
            raise KeyError(f"Unknown command: {name}")
        entry[0]()

    def fire(self, event: str, bufnr: Optional[int] = None) -> int:
        """Run the autocommands registered for ``event`` on a buffer.

        Returns:
            Number of callbacks run.
        """
        if bufnr is None:
            bufnr = self.current_buffer()
        match = self._buffer(bufnr).filetype if event == "FileType" else ""
        ran = 0
        for autocmd in list(self._autocmds):
            if event not in autocmd.events:
                continue
            if autocmd.buffer is not None and autocmd.buffer != bufnr:
                continue
            if autocmd.pattern is not None and match not in autocmd.pattern:
                continue
            autocmd.callback(AutocmdEvent(event=event, buf=bufnr, match=match))
            ran += 1
        return ran

    def run_until(self, predicate: Callable[[], bool],
                  timeout: Optional[float] = None, step: float = 0.02) -> bool:
        """Run the event loop until ``predicate()`` holds or time runs out.

        Returns:
            True if the predicate became true.
        """
        async def wait() -> bool:
            deadline = None if timeout is None else time.monotonic() + timeout
            while not predicate():
                if deadline is not None and time.monotonic() >= deadline:
                    return False
                await asyncio.sleep(step)
            return True

        return self._loop.run_until_complete(wait())

    def close(self) -> None:
        if self._owns_loop and not self._loop.is_closed():
            self._loop.close()

    def _buffer(self, bufnr: int) -> _Buffer:
        buf = self._buffers.get(bufnr)
        if buf is None:
            raise KeyError(f"Invalid buffer: {bufnr}")
        return buf
