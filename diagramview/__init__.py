# diagramview/__init__.py
"""Inline diagram rendering for editor buffers.

Finds diagram blocks (mermaid, plantuml, d2, gnuplot) in Markdown and
Neorg buffers, renders them with external tools as PNG files and shows
the images next to their source. Rendering jobs run in the background
and are polled from the host's event loop.
"""

from .config import get_cache_dir, load_options
from .errors import (
    ConfigurationError,
    DiagramError,
    MissingDependencyError,
    NoIntegrationFoundError,
    RendererNotFoundError,
)
from .models import Diagram, DiagramRange, RenderResult
from .plugin import DiagramPlugin, create_plugin

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "Diagram",
    "DiagramError",
    "DiagramPlugin",
    "DiagramRange",
    "MissingDependencyError",
    "NoIntegrationFoundError",
    "RenderResult",
    "RendererNotFoundError",
    "create_plugin",
    "get_cache_dir",
    "load_options",
]
