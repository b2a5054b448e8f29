# diagramview/errors.py
"""Error types raised by the diagram rendering core."""

from typing import Optional


class DiagramError(Exception):
    """Base class for diagramview errors."""
    pass


class ConfigurationError(DiagramError):
    """Configuration invariant violated; aborts the current operation only."""
    pass


class RendererNotFoundError(ConfigurationError):
    """A discovered diagram names a renderer its integration does not provide."""

    def __init__(self, renderer_id: str, integration_id: Optional[str] = None):
        self.renderer_id = renderer_id
        self.integration_id = integration_id
        msg = f"diagram: cannot find renderer with id `{renderer_id}`"
        if integration_id:
            msg += f" in integration `{integration_id}`"
        super().__init__(msg)


class MissingDependencyError(ConfigurationError):
    """A required collaborator is not installed."""

    def __init__(self, dependency: str, hint: Optional[str] = None):
        self.dependency = dependency
        msg = f"diagram: missing dependency `{dependency}`"
        if hint:
            msg += f" ({hint})"
        super().__init__(msg)


class NoIntegrationFoundError(DiagramError):
    """No configured integration handles the buffer's filetype."""

    def __init__(self, filetype: str):
        self.filetype = filetype
        super().__init__(f"No integration found for filetype: {filetype}")
