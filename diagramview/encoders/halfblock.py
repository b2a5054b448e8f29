# diagramview/encoders/halfblock.py
"""Half-block encoder for terminals without a graphics protocol.

Each cell shows two stacked pixels: the upper one as the foreground of
"▀", the lower one as its background. rich renders the styled text to
truecolor escapes.
"""

from io import BytesIO
from typing import List, Tuple

from rich.color import Color
from rich.console import Console
from rich.style import Style
from rich.text import Text

UPPER_HALF_BLOCK = "▀"

# Transparent pixels are shown on white, the usual diagram background
_BACKDROP = (255, 255, 255)


def _opaque(pixel: Tuple[int, int, int, int]) -> Tuple[int, int, int]:
    r, g, b, a = pixel
    return (r, g, b) if a >= 128 else _BACKDROP


class HalfBlockEncoder:
    """PNG to rows of coloured half-block characters."""

    name = "halfblock"

    def __init__(self, max_width: int = 80):
        self.max_width = max_width

    def encode(self, png_data: bytes, max_width: int = 0, image_id: int = 0) -> str:
        return "\n".join(self.encode_lines(png_data, max_width))

    def encode_lines(self, png_data: bytes, max_width: int = 0) -> List[str]:
        """One ANSI-styled string per terminal row."""
        from PIL import Image

        try:
            img = Image.open(BytesIO(png_data)).convert("RGBA")
        except OSError:
            return ["[diagram: failed to decode image]"]

        cols = min(max_width or self.max_width, img.width)
        rows = max(1, round(img.height * cols / img.width / 2))
        img = img.resize((cols, rows * 2), Image.Resampling.LANCZOS)
        px = img.load()

        console = Console(width=cols + 2, force_terminal=True, color_system="truecolor")
        lines = []
        for y in range(0, rows * 2, 2):
            text = Text()
            for x in range(cols):
                style = Style(color=Color.from_rgb(*_opaque(px[x, y])),
                              bgcolor=Color.from_rgb(*_opaque(px[x, y + 1])))
                text.append(UPPER_HALF_BLOCK, style=style)
            with console.capture() as capture:
                console.print(text, end="")
            lines.append(capture.get())
        return lines

    def delete_sequence(self, image_id: int) -> str:
        return ""
