# diagramview/integrations/__init__.py
"""Integrations locating diagrams inside buffers of known filetypes."""

from typing import Any, Dict, List, Sequence, Type

from ..errors import ConfigurationError
from ..host import EditorHost
from ..models import Integration, Renderer
from .base import BufferIntegration
from .markdown import MarkdownIntegration
from .neorg import NeorgIntegration

INTEGRATIONS: Dict[str, Type[BufferIntegration]] = {
    MarkdownIntegration.id: MarkdownIntegration,
    NeorgIntegration.id: NeorgIntegration,
}


def resolve_integrations(
    specs: Sequence[Any],
    host: EditorHost,
    renderers: Sequence[Renderer],
) -> List[Integration]:
    """Turn configured integrations into integration objects.

    Args:
        specs: Integration names (keys of INTEGRATIONS) or ready-made
            objects implementing the Integration protocol.
        host: Host the built-in integrations read buffers from.
        renderers: Renderers handed to the built-in integrations.

    Raises:
        ConfigurationError: For an unknown name or an object that is not
            an integration.
    """
    resolved: List[Integration] = []
    for spec in specs:
        if isinstance(spec, str):
            cls = INTEGRATIONS.get(spec)
            if cls is None:
                raise ConfigurationError(
                    f"Unknown integration '{spec}' "
                    f"(available: {', '.join(sorted(INTEGRATIONS))})")
            resolved.append(cls(host, renderers))
        elif isinstance(spec, Integration):
            resolved.append(spec)
        else:
            raise ConfigurationError(f"Not an integration: {spec!r}")
    return resolved


__all__ = [
    "BufferIntegration",
    "INTEGRATIONS",
    "MarkdownIntegration",
    "NeorgIntegration",
    "resolve_integrations",
]
