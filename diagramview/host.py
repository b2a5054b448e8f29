# diagramview/host.py
"""Protocols for the editor environment hosting the plugin.

The host owns buffers, windows, user commands, autocommands and the
event loop. Every callback it invokes (commands, autocommands, timer
ticks) runs on its serialized execution context, one at a time.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence, Union


# Notification levels, mirroring the logging module
DEBUG = logging.DEBUG
INFO = logging.INFO
WARN = logging.WARNING
ERROR = logging.ERROR


@dataclass
class AutocmdEvent:
    """Payload passed to autocommand callbacks.

    Attributes:
        event: Name of the event that fired (e.g. "FileType").
        buf: Buffer the event fired for.
        match: Pattern match for the event (the filetype for FileType).
    """
    event: str
    buf: int
    match: str = ""


class Timer(Protocol):
    """A repeating timer driven by the host's event loop."""

    def start(self, delay_ms: int, repeat_ms: int,
              callback: Callable[[], None]) -> None:
        ...

    def stop(self) -> None:
        ...

    def close(self) -> None:
        ...

    def is_active(self) -> bool:
        ...

    def is_closing(self) -> bool:
        ...


class EditorHost(Protocol):
    """Editor capabilities the plugin depends on."""

    def current_buffer(self) -> int:
        ...

    def current_window(self) -> int:
        ...

    def buffer_filetype(self, bufnr: int) -> str:
        ...

    def buffer_lines(self, bufnr: int) -> List[str]:
        ...

    def notify(self, message: str, level: int = INFO) -> None:
        ...

    def create_user_command(self, name: str, callback: Callable[[], None],
                            desc: str = "") -> None:
        ...

    def create_autocmd(
        self,
        events: Union[str, Sequence[str]],
        callback: Callable[[AutocmdEvent], None],
        buffer: Optional[int] = None,
        pattern: Optional[Sequence[str]] = None,
    ) -> int:
        ...

    def new_timer(self) -> Optional[Timer]:
        """Create a timer, or return None if the host cannot allocate one."""
        ...
