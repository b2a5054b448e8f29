# diagramview/images.py
"""Creation and disposal of displayed diagram images."""

import logging
from typing import Optional, Tuple

from .models import ImageBackend, ImageHandle

logger = logging.getLogger(__name__)


class ImageLifecycleManager:
    """Wraps an image backend so images are created and released uniformly.

    Creation and first paint are separate steps: ``materialize`` only
    creates the image, the caller paints it with ``image.render()``.
    """

    def __init__(self, backend: ImageBackend):
        self._backend = backend

    @property
    def backend(self) -> ImageBackend:
        return self._backend

    def materialize(
        self,
        file_path: str,
        bufnr: int,
        winnr: int,
        anchor: Tuple[int, int],
    ) -> ImageHandle:
        """Create an image for ``file_path`` anchored at ``(row, col)``.

        Images are inline and padded so buffer text flows around them.
        """
        row, col = anchor
        return self._backend.from_file(
            file_path,
            buffer=bufnr,
            window=winnr,
            x=col,
            y=row,
            with_virtual_padding=True,
            inline=True,
        )

    def dispose(self, image: Optional[ImageHandle]) -> None:
        """Release the screen resources held by ``image``.

        Safe on images that were never painted. Failures are logged so
        one broken image cannot stop the rest of a buffer from clearing.
        """
        if image is None:
            return
        try:
            image.clear()
        except Exception:
            logger.exception("Failed to clear image %r", image)
