# diagramview/encoders/kitty.py
"""Kitty graphics protocol encoder (kitty, ghostty).

The PNG is sent base64 encoded (f=100) in chunks of at most 4096 bytes,
each wrapped as ESC _ G <keys> ; <data> ESC \\. Only the first chunk
carries the control keys; m=1 marks that more chunks follow. Images get
an id (i=) so clearing a buffer can delete them again.

https://sw.kovidgoyal.net/kitty/graphics-protocol/
"""

import base64
import logging
from typing import List

from . import fit_width

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096


def _split(payload: str) -> List[str]:
    return [payload[i:i + CHUNK_SIZE]
            for i in range(0, len(payload), CHUNK_SIZE)] or [""]


class KittyEncoder:
    """PNG to kitty graphics escapes."""

    name = "kitty"

    def __init__(self, max_width: int = 80):
        self.max_width = max_width

    def encode(self, png_data: bytes, max_width: int = 0, image_id: int = 0) -> str:
        try:
            png_data = fit_width(png_data, max_width or self.max_width)
        except OSError as e:
            logger.debug("Sending image unscaled: %s", e)

        # a=T transmits and displays, C=1 keeps the cursor in place
        control = "f=100,a=T,C=1,q=2"
        if image_id:
            control += f",i={image_id}"

        chunks = _split(base64.standard_b64encode(png_data).decode("ascii"))
        last = len(chunks) - 1
        escapes = []
        for index, chunk in enumerate(chunks):
            more = 0 if index == last else 1
            keys = f"{control},m={more}" if index == 0 else f"m={more}"
            escapes.append(f"\x1b_G{keys};{chunk}\x1b\\")
        return "".join(escapes)

    def delete_sequence(self, image_id: int) -> str:
        if not image_id:
            return ""
        # d=I deletes by id and frees the stored image data
        return f"\x1b_Ga=d,d=I,i={image_id},q=2\x1b\\"
