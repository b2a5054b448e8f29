# diagramview/encoders/iterm.py
"""iTerm2 inline image encoder (iTerm2, WezTerm, mintty).

A single OSC 1337 sequence carries the whole image:

    ESC ] 1337 ; File=inline=1;size=N;width=W;preserveAspectRatio=1 : <base64> BEL

https://iterm2.com/documentation-images.html
"""

import base64
import logging

from . import fit_width

logger = logging.getLogger(__name__)


class ITermEncoder:
    """PNG to iTerm2 inline image escapes."""

    name = "iterm"

    def __init__(self, max_width: int = 80):
        self.max_width = max_width

    def encode(self, png_data: bytes, max_width: int = 0, image_id: int = 0) -> str:
        cols = max_width or self.max_width
        try:
            png_data = fit_width(png_data, cols)
        except OSError as e:
            logger.debug("Sending image unscaled: %s", e)

        params = {
            "inline": 1,
            "size": len(png_data),
            "width": cols,
            "preserveAspectRatio": 1,
        }
        header = ";".join(f"{key}={value}" for key, value in params.items())
        data = base64.standard_b64encode(png_data).decode("ascii")
        return f"\x1b]1337;File={header}:{data}\x07"

    def delete_sequence(self, image_id: int) -> str:
        # Inline images live in the text grid; repainting the cells removes them
        return ""
