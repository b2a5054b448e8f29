# diagramview/encoders/__init__.py
"""Terminal graphics encoders turning PNG bytes into printable output.

DIAGRAMVIEW_BACKEND picks one explicitly (kitty, iterm, sixel, ascii or
off). Otherwise the protocol found by terminal_caps is used, and
terminals without one get half-block art.
"""

import os
from io import BytesIO
from typing import Optional, Protocol, Tuple

from ..terminal_caps import detect as detect_terminal_caps

# Nominal cell size for converting between pixels and cells
CELL_WIDTH_PX = 8
CELL_HEIGHT_PX = 16

ENCODER_NAMES = ("kitty", "iterm", "sixel", "ascii")


class GraphicsEncoder(Protocol):
    """Encodes PNG images for one terminal graphics protocol."""

    @property
    def name(self) -> str:
        ...

    def encode(self, png_data: bytes, max_width: int = 0, image_id: int = 0) -> str:
        """Text that shows ``png_data`` when written to the terminal.

        Args:
            png_data: PNG bytes.
            max_width: Width budget in cells; 0 uses the encoder default.
            image_id: Id the image can later be deleted by, for protocols
                that support deletion.
        """
        ...

    def delete_sequence(self, image_id: int) -> str:
        """Text removing a displayed image, or "" if the protocol cannot."""
        ...


def select_encoder(max_width: int = 80) -> Optional[GraphicsEncoder]:
    """Pick the encoder for the current terminal.

    Returns:
        The encoder, or None when DIAGRAMVIEW_BACKEND=off turns display off.
    """
    choice = os.environ.get("DIAGRAMVIEW_BACKEND", "").strip().lower()
    if choice == "off":
        return None
    if choice not in ENCODER_NAMES:
        choice = detect_terminal_caps().graphics or "ascii"
    return create_encoder(choice, max_width)


def create_encoder(name: str, max_width: int = 80) -> GraphicsEncoder:
    """Instantiate the encoder called ``name``; unknown names get half-blocks."""
    if name == "kitty":
        from .kitty import KittyEncoder
        return KittyEncoder(max_width)
    if name == "iterm":
        from .iterm import ITermEncoder
        return ITermEncoder(max_width)
    if name == "sixel":
        from .sixel import SixelEncoder
        return SixelEncoder(max_width)
    from .halfblock import HalfBlockEncoder
    return HalfBlockEncoder(max_width)


def scaled_size(width: int, height: int, max_cols: int) -> Tuple[int, int]:
    """Pixel size of a ``width`` x ``height`` image shrunk to ``max_cols`` cells."""
    limit = max_cols * CELL_WIDTH_PX
    if width <= limit:
        return width, height
    return limit, int(height * limit / width)


def fit_width(png_data: bytes, max_cols: int) -> bytes:
    """Shrink a PNG wider than ``max_cols`` cells; smaller ones pass through.

    Raises:
        OSError: If the data is not a decodable image.
    """
    from PIL import Image

    img = Image.open(BytesIO(png_data))
    size = scaled_size(img.width, img.height, max_cols)
    if size == img.size:
        return png_data
    out = BytesIO()
    img.resize(size, Image.Resampling.LANCZOS).save(out, format="PNG")
    return out.getvalue()


def cell_rows(png_data: bytes, max_cols: int) -> int:
    """Terminal rows covered by the image once fitted to ``max_cols``."""
    from PIL import Image

    try:
        img = Image.open(BytesIO(png_data))
    except OSError:
        return 1
    _, height = scaled_size(img.width, img.height, max_cols)
    return max(1, -(-height // CELL_HEIGHT_PX))
