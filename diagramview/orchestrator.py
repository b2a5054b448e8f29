# diagramview/orchestrator.py
"""Top-level render and clear control flow.

A render pass for one buffer:

1. Pick the first integration whose filetypes include the buffer's.
2. Ask it for the buffer's diagrams (a fresh, authoritative snapshot).
3. Clear the buffer's previously shown images.
4. Dispatch each diagram to its renderer, in discovery order, and
   materialize the resulting image either right away or when the
   render job finishes.

Render jobs are never cancelled, and clearing a buffer leaves its pending
jobs alone: they still materialize when they finish. With the "discard"
stale-job policy a job that finishes after its buffer was rendered again
is ignored; with "keep" it still materializes, replacing any record at
the same location.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, Optional, Sequence, Tuple

from .errors import NoIntegrationFoundError, RendererNotFoundError
from .host import EditorHost
from .images import ImageLifecycleManager
from .models import Diagram, Integration, Renderer, RenderResult
from .paths import is_readable
from .poller import JobPoller
from .registry import DiagramRegistry

logger = logging.getLogger(__name__)

# Filetypes whose integrations report diagram rows one below the anchor
ANCHOR_ROW_CORRECTED_FILETYPES = frozenset({"norg"})


class RenderOrchestrator:
    """Renders the diagrams of a buffer and tracks their images."""

    def __init__(
        self,
        host: EditorHost,
        integrations: Sequence[Integration],
        registry: DiagramRegistry,
        poller: JobPoller,
        images: ImageLifecycleManager,
        renderer_options: Optional[Dict[str, Dict[str, Any]]] = None,
        stale_jobs: str = "discard",
    ):
        self._host = host
        self._integrations = list(integrations)
        self._registry = registry
        self._poller = poller
        self._images = images
        self._renderer_options = renderer_options or {}
        self._stale_jobs = stale_jobs
        self._generations: Dict[int, int] = defaultdict(int)

    @property
    def integrations(self) -> Sequence[Integration]:
        return tuple(self._integrations)

    def resolve_integration(self, bufnr: int) -> Integration:
        """Return the first integration handling the buffer's filetype.

        Raises:
            NoIntegrationFoundError: If no integration matches.
        """
        filetype = self._host.buffer_filetype(bufnr)
        for integration in self._integrations:
            if filetype in integration.filetypes:
                return integration
        raise NoIntegrationFoundError(filetype)

    def render_current(self) -> None:
        """Render the diagrams in the current buffer and window."""
        bufnr = self._host.current_buffer()
        winnr = self._host.current_window()
        self.render_buffer(bufnr, winnr, self.resolve_integration(bufnr))

    def render_buffer(
        self,
        bufnr: Optional[int] = None,
        winnr: Optional[int] = None,
        integration: Optional[Integration] = None,
    ) -> None:
        """Run a render pass over one buffer.

        Args:
            bufnr: Buffer to render (current buffer if None).
            winnr: Window to draw in (current window if None).
            integration: Integration to use (resolved from filetype if None).

        Raises:
            NoIntegrationFoundError: If no integration handles the buffer.
            RendererNotFoundError: If a discovered diagram names an unknown
                renderer. Diagrams dispatched before it are kept.
        """
        if bufnr is None:
            bufnr = self._host.current_buffer()
        if winnr is None:
            winnr = self._host.current_window()
        if integration is None:
            integration = self.resolve_integration(bufnr)

        diagrams = integration.query_buffer_diagrams(bufnr)
        self.clear_buffer(bufnr)
        self._generations[bufnr] += 1
        generation = self._generations[bufnr]
        filetype = self._host.buffer_filetype(bufnr)

        logger.debug("Rendering %d diagram(s) in buffer %d with %s",
                     len(diagrams), bufnr, integration.id)

        for diagram in diagrams:
            renderer = self._find_renderer(integration, diagram.renderer_id)
            options = self._renderer_options.get(renderer.id) or {}
            result = renderer.render(diagram.source, options)

            if result.is_pending:
                self._poller.watch(
                    result.job_id,
                    self._completion(diagram, result, filetype, winnr, generation),
                )
            else:
                self._materialize(diagram, result, filetype, winnr)

    def clear_buffer(self, bufnr: Optional[int] = None) -> int:
        """Dispose all images shown in a buffer.

        Returns:
            Number of diagrams removed.
        """
        if bufnr is None:
            bufnr = self._host.current_buffer()
        return self._registry.clear(bufnr)

    def _find_renderer(self, integration: Integration, renderer_id: str) -> Renderer:
        for renderer in integration.renderers:
            if renderer.id == renderer_id:
                return renderer
        raise RendererNotFoundError(renderer_id, integration.id)

    def _completion(self, diagram: Diagram, result: RenderResult,
                    filetype: str, winnr: int, generation: int):
        def on_complete() -> None:
            current = self._generations[diagram.bufnr]
            if self._stale_jobs == "discard" and generation != current:
                logger.debug(
                    "Discarding stale render of %s in buffer %d "
                    "(generation %d, current %d)",
                    diagram.renderer_id, diagram.bufnr, generation, current)
                return
            self._materialize(diagram, result, filetype, winnr)
        return on_complete

    def _materialize(self, diagram: Diagram, result: RenderResult,
                     filetype: str, winnr: int) -> None:
        path = result.file_path
        if not is_readable(path):
            logger.debug("No readable output for %s diagram at %s; skipping",
                         diagram.renderer_id, path)
            return

        image = self._images.materialize(
            path, diagram.bufnr, winnr, anchor_for(diagram, filetype))
        diagram.image = image
        displaced = self._registry.record(diagram)
        if displaced is not None:
            old_image, displaced.image = displaced.image, None
            self._images.dispose(old_image)
        image.render()
        logger.info("Rendered %s diagram in buffer %d at row %d",
                    diagram.renderer_id, diagram.bufnr, diagram.range.start_row)


def anchor_for(diagram: Diagram, filetype: str) -> Tuple[int, int]:
    """Return the ``(row, col)`` an image for ``diagram`` is anchored at."""
    row = diagram.range.start_row
    if filetype in ANCHOR_ROW_CORRECTED_FILETYPES:
        row -= 1
    return (row, diagram.range.start_col)
