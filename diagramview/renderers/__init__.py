# diagramview/renderers/__init__.py
"""Renderers that turn diagram source into PNG files.

Each renderer is registered under the id diagrams refer to it by (the
fence language in Markdown, the ``@code`` language in Neorg).
"""

from typing import Dict, List, Optional, Type

from ..jobs import JobTable
from .base import CommandRenderer
from .d2 import D2Renderer
from .gnuplot import GnuplotRenderer
from .mermaid import MermaidRenderer
from .plantuml import PlantUMLRenderer

RENDERERS: Dict[str, Type[CommandRenderer]] = {
    MermaidRenderer.id: MermaidRenderer,
    PlantUMLRenderer.id: PlantUMLRenderer,
    D2Renderer.id: D2Renderer,
    GnuplotRenderer.id: GnuplotRenderer,
}


def create_renderers(jobs: JobTable, cache_dir: str,
                     kroki_url: Optional[str] = None) -> List[CommandRenderer]:
    """Instantiate every registered renderer sharing one job table."""
    return [cls(jobs, cache_dir, kroki_url) for cls in RENDERERS.values()]


__all__ = [
    "CommandRenderer",
    "D2Renderer",
    "GnuplotRenderer",
    "MermaidRenderer",
    "PlantUMLRenderer",
    "RENDERERS",
    "create_renderers",
]
