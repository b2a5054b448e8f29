# diagramview/encoders/sixel.py
"""Sixel encoder (foot, mlterm, xterm built with sixel support).

The image is quantized to a 256 colour palette and emitted in bands six
pixel rows high. Within a band, every colour present gets one line of
sixel characters (bit n lit = row n of the band), ended by "$" to return
to the start of the band; "-" moves on to the next band.

https://vt100.net/docs/vt3xx-gp/chapter14.html
"""

from io import BytesIO
from itertools import groupby
from typing import List, Sequence

from . import fit_width

PALETTE_SIZE = 256
BAND_HEIGHT = 6


def run_length(values: Sequence[int]) -> str:
    """Sixel characters for ``values``; runs of three or more become !<n><c>."""
    out = []
    for value, run in groupby(values):
        count = len(list(run))
        char = chr(63 + value)
        out.append(f"!{count}{char}" if count >= 3 else char * count)
    return "".join(out)


class SixelEncoder:
    """PNG to sixel escapes."""

    name = "sixel"

    def __init__(self, max_width: int = 80):
        self.max_width = max_width

    def encode(self, png_data: bytes, max_width: int = 0, image_id: int = 0) -> str:
        from PIL import Image

        try:
            png_data = fit_width(png_data, max_width or self.max_width)
            img = Image.open(BytesIO(png_data)).convert("RGB")
        except OSError:
            return "[diagram: failed to decode image]"

        indexed = img.quantize(colors=PALETTE_SIZE)
        width, height = indexed.size
        # Mode "P": one palette index per byte
        pixels = indexed.tobytes()
        palette = indexed.getpalette() or []

        # P2=1: pixels left at 0 keep the background
        out = ["\x1bP0;1;0q", f'"1;1;{width};{height}']
        for index in range(min(len(palette) // 3, PALETTE_SIZE)):
            r, g, b = (channel * 100 // 255 for channel in palette[index * 3:index * 3 + 3])
            out.append(f"#{index};2;{r};{g};{b}")

        for top in range(0, height, BAND_HEIGHT):
            rows = [pixels[y * width:(y + 1) * width]
                    for y in range(top, min(top + BAND_HEIGHT, height))]
            out.extend(self._band(rows, width))
            out.append("-")

        out.append("\x1b\\")
        return "".join(out)

    def delete_sequence(self, image_id: int) -> str:
        # Sixel pixels belong to the cells they were drawn over
        return ""

    @staticmethod
    def _band(rows: List[bytes], width: int) -> List[str]:
        colours = sorted(set().union(*(set(row) for row in rows)))
        lines = []
        for colour in colours:
            values = [
                sum(1 << bit for bit, row in enumerate(rows) if row[x] == colour)
                for x in range(width)
            ]
            lines.append(f"#{colour}{run_length(values)}$")
        return lines
