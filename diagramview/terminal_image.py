# diagramview/terminal_image.py
"""Images painted onto a terminal with the graphics encoders.

``TerminalImageBackend.from_file`` creates a ``TerminalImage`` bound to
a buffer and window at a ``(x, y)`` cell anchor. Creating the image does
not touch the terminal; ``render()`` paints it and ``clear()`` removes it.

Two placement modes are supported:

* positioned: a ``position(window) -> (top, left)`` callable maps the
  window to screen cells and the image is drawn at the anchor with the
  cursor saved and restored around it;
* streamed (no ``position``): the image is written at the current
  output position, preceded by a one-line caption naming the anchor.
"""

import itertools
import logging
import sys
from typing import Callable, Optional, TextIO, Tuple

from .encoders import GraphicsEncoder, cell_rows, select_encoder
from .terminal_caps import detect as detect_terminal_caps

logger = logging.getLogger(__name__)

PositionFn = Callable[[int], Tuple[int, int]]


class TerminalImage:
    """A diagram image displayed in a terminal."""

    def __init__(
        self,
        path: str,
        *,
        image_id: int,
        buffer: int,
        window: int,
        x: int,
        y: int,
        with_virtual_padding: bool,
        inline: bool,
        encoder: Optional[GraphicsEncoder],
        stream: Optional[TextIO],
        max_width: int,
        position: Optional[PositionFn] = None,
        on_clear: Optional[Callable[["TerminalImage"], None]] = None,
    ):
        self.path = path
        self.image_id = image_id
        self.buffer = buffer
        self.window = window
        self.x = x
        self.y = y
        self.with_virtual_padding = with_virtual_padding
        self.inline = inline
        self.rows = 0
        self._encoder = encoder
        self._stream = stream
        self._max_width = max_width
        self._position = position
        self._on_clear = on_clear
        self._rendered = False

    def __repr__(self) -> str:
        return (f"TerminalImage(id={self.image_id}, path={self.path!r}, "
                f"buffer={self.buffer}, row={self.y}, col={self.x})")

    @property
    def is_rendered(self) -> bool:
        return self._rendered

    def render(self) -> None:
        """Paint the image. Painting an already painted image repaints it."""
        try:
            with open(self.path, "rb") as f:
                png_data = f.read()
        except OSError as e:
            logger.warning("Cannot read diagram image %s: %s", self.path, e)
            return

        stream = self._stream or sys.stdout
        if self._encoder is None:
            stream.write(f"[diagram: {self.path}]\n")
            stream.flush()
            self.rows = 1
            self._rendered = True
            return

        width = max(8, self._max_width - self.x)
        payload = self._encoder.encode(png_data, max_width=width,
                                         image_id=self.image_id)
        self.rows = cell_rows(png_data, width)

        if self._position is None:
            stream.write(f"\x1b[2m[{self.path} @ {self.y + 1}:{self.x + 1}]\x1b[0m\n")
            stream.write(payload + "\n")
        else:
            top, left = self._position(self.window)
            # Padded images start on the row below their anchor
            row = top + self.y + (1 if self.with_virtual_padding else 0)
            col = left + self.x
            stream.write("\x1b7")
            for offset, line in enumerate(payload.split("\n")):
                stream.write(f"\x1b[{row + offset + 1};{col + 1}H{line}")
            stream.write("\x1b8")
        stream.flush()
        self._rendered = True

    def clear(self) -> None:
        """Remove the image from the terminal.

        Safe to call on an image that was never painted, and more than once.
        """
        if not self._rendered:
            return
        self._rendered = False

        if self._encoder is not None:
            sequence = self._encoder.delete_sequence(self.image_id)
            if sequence:
                stream = self._stream or sys.stdout
                stream.write(sequence)
                stream.flush()
        if self._on_clear is not None:
            self._on_clear(self)


class TerminalImageBackend:
    """Image backend that paints diagrams onto a terminal.

    Args:
        stream: Output stream (sys.stdout at paint time if None).
        encoder: Encoder to use; auto-selected from the terminal if None.
        max_width: Width budget in cells (terminal width if None).
        position: Maps a window to its top-left screen cell; streamed
            placement when None.
        on_clear: Called with an image after it is cleared, so the host
            can repaint the cells it covered.
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        encoder: Optional[GraphicsEncoder] = None,
        max_width: Optional[int] = None,
        position: Optional[PositionFn] = None,
        on_clear: Optional[Callable[[TerminalImage], None]] = None,
    ):
        if max_width is None:
            max_width = detect_terminal_caps().columns or 80
        self._max_width = max_width
        self._encoder = encoder if encoder is not None else select_encoder(max_width)
        self._stream = stream
        self._position = position
        self._on_clear = on_clear
        self._ids = itertools.count(1)

    @property
    def encoder(self) -> Optional[GraphicsEncoder]:
        return self._encoder

    def from_file(
        self,
        path: str,
        *,
        buffer: int,
        window: int,
        x: int,
        y: int,
        with_virtual_padding: bool = True,
        inline: bool = True,
    ) -> TerminalImage:
        return TerminalImage(
            path,
            image_id=next(self._ids),
            buffer=buffer,
            window=window,
            x=x,
            y=y,
            with_virtual_padding=with_virtual_padding,
            inline=inline,
            encoder=self._encoder,
            stream=self._stream,
            max_width=self._max_width,
            position=self._position,
            on_clear=self._on_clear,
        )
