# diagramview/registry.py
"""Live set of materialized diagrams across all buffers."""

import logging
from typing import Iterator, List, Optional, Set

from .images import ImageLifecycleManager
from .models import Diagram, DiagramRange

logger = logging.getLogger(__name__)


class DiagramRegistry:
    """Ordered collection of rendered diagrams.

    Holds at most one record per ``(bufnr, range)``. Lookups are linear
    scans; a buffer rarely holds more than a handful of diagrams.

    Usage:
        registry = DiagramRegistry(images)
        registry.record(diagram)        # diagram.image must be set
        registry.for_buffer(bufnr)      # [diagram]
        registry.clear(bufnr)           # disposes images, drops records
    """

    def __init__(self, images: ImageLifecycleManager):
        self._images = images
        self._diagrams: List[Diagram] = []

    def __len__(self) -> int:
        return len(self._diagrams)

    def __iter__(self) -> Iterator[Diagram]:
        return iter(list(self._diagrams))

    def for_buffer(self, bufnr: int) -> List[Diagram]:
        return [d for d in self._diagrams if d.bufnr == bufnr]

    def find(self, bufnr: int, range: DiagramRange) -> Optional[Diagram]:
        for diagram in self._diagrams:
            if diagram.bufnr == bufnr and diagram.range == range:
                return diagram
        return None

    def buffers(self) -> Set[int]:
        return {d.bufnr for d in self._diagrams}

    def record(self, diagram: Diagram) -> Optional[Diagram]:
        """Insert a materialized diagram.

        A record already held for the same ``(bufnr, range)`` is replaced
        in place and returned; disposing its image is the caller's job.

        Args:
            diagram: Diagram carrying its image handle.

        Returns:
            The displaced record, or None.

        Raises:
            ValueError: If the diagram has no image.
        """
        if diagram.image is None:
            raise ValueError("only materialized diagrams can be recorded")

        for i, existing in enumerate(self._diagrams):
            if existing.key == diagram.key:
                if existing is diagram:
                    return None
                self._diagrams[i] = diagram
                return existing

        self._diagrams.append(diagram)
        return None

    def clear(self, bufnr: int) -> int:
        """Dispose and remove every diagram recorded for ``bufnr``.

        Clearing a buffer with nothing recorded is a no-op.

        Returns:
            Number of records removed.
        """
        kept: List[Diagram] = []
        removed: List[Diagram] = []
        for diagram in self._diagrams:
            (removed if diagram.bufnr == bufnr else kept).append(diagram)
        if not removed:
            return 0

        self._diagrams = kept
        for diagram in removed:
            image, diagram.image = diagram.image, None
            self._images.dispose(image)
        logger.debug("Cleared %d diagram(s) from buffer %d", len(removed), bufnr)
        return len(removed)

    def clear_all(self) -> None:
        for bufnr in sorted(self.buffers()):
            self.clear(bufnr)
