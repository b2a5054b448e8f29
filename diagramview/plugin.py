# diagramview/plugin.py
"""Diagram rendering plugin.

Wires the render core into an editor host: registers the DiagramRender
and DiagramClear commands, clears rendered diagrams on buffer activity,
and owns the session state (registry, job poller, job table, images).

Usage:
    plugin = create_plugin()
    plugin.setup(host, {
        "integrations": ["markdown", "neorg"],
        "renderer_options": {"mermaid": {"theme": "dark"}},
        "events": {"clear_buffer": ["InsertEnter"]},
    })
    ...
    plugin.teardown()
"""

import logging
from typing import Any, Dict, List, Optional, Set

from .config import PluginOptions, get_cache_dir, load_options
from .errors import ConfigurationError, MissingDependencyError, NoIntegrationFoundError
from .host import ERROR, WARN, AutocmdEvent, EditorHost
from .images import ImageLifecycleManager
from .integrations import resolve_integrations
from .jobs import JobTable
from .models import ImageBackend, Integration
from .orchestrator import RenderOrchestrator
from .poller import JobPoller
from .registry import DiagramRegistry
from .renderers import create_renderers

logger = logging.getLogger(__name__)


class DiagramPlugin:
    """Renders diagrams embedded in editor buffers as inline images."""

    def __init__(self):
        self._host: Optional[EditorHost] = None
        self._options = PluginOptions()
        self._jobs: Optional[JobTable] = None
        self._poller: Optional[JobPoller] = None
        self._registry: Optional[DiagramRegistry] = None
        self._orchestrator: Optional[RenderOrchestrator] = None
        self._wired_buffers: Set[int] = set()

    @property
    def name(self) -> str:
        return "diagram"

    @property
    def options(self) -> PluginOptions:
        return self._options

    @property
    def registry(self) -> Optional[DiagramRegistry]:
        return self._registry

    @property
    def poller(self) -> Optional[JobPoller]:
        return self._poller

    @property
    def orchestrator(self) -> Optional[RenderOrchestrator]:
        return self._orchestrator

    @property
    def integrations(self) -> List[Integration]:
        if self._orchestrator is None:
            return []
        return list(self._orchestrator.integrations)

    def setup(
        self,
        host: EditorHost,
        opts: Optional[Dict[str, Any]] = None,
        image_backend: Optional[ImageBackend] = None,
    ) -> None:
        """Initialize the plugin against a host.

        Calling it again replaces the previous session, which is torn
        down once the new options have been validated.

        Args:
            host: Editor the plugin runs in.
            opts: Plugin options (see diagramview.config).
            image_backend: Backend displaying images. Defaults to a
                terminal backend, which needs Pillow.

        Raises:
            MissingDependencyError: If no image backend is available.
            ConfigurationError: If the options are invalid.
        """
        if image_backend is None:
            image_backend = _default_image_backend()

        options = load_options(opts)
        jobs = JobTable()
        renderers = create_renderers(jobs, options.cache_dir, options.kroki_url)
        integrations = resolve_integrations(options.integrations, host, renderers)
        if self._orchestrator is not None:
            logger.debug("Replacing existing diagram session")
            self.teardown()

        images = ImageLifecycleManager(image_backend)
        self._host = host
        self._options = options
        self._jobs = jobs
        self._poller = JobPoller(host, jobs, options.poll_interval_ms)
        self._registry = DiagramRegistry(images)
        self._orchestrator = RenderOrchestrator(
            host,
            integrations,
            self._registry,
            self._poller,
            images,
            renderer_options=options.renderer_options,
            stale_jobs=options.stale_jobs,
        )

        host.create_user_command(
            "DiagramRender", self.render_diagrams,
            desc="Render diagrams in the current buffer")
        host.create_user_command(
            "DiagramClear", self.clear_buffer,
            desc="Clear diagrams in the current buffer")

        current = host.current_buffer()
        current_ft = host.buffer_filetype(current)
        for integration in integrations:
            host.create_autocmd(
                "FileType",
                self._on_filetype,
                pattern=list(integration.filetypes),
            )
            if current_ft in integration.filetypes:
                self._setup_buffer_autocmds(current)

        logger.info("Diagram plugin ready: integrations=%s cache=%s",
                    [i.id for i in integrations], options.cache_dir)

    def render_diagrams(self) -> None:
        """Render diagrams in the current buffer (DiagramRender)."""
        orchestrator = self._require_setup()
        try:
            orchestrator.render_current()
        except NoIntegrationFoundError as e:
            self._host.notify(str(e), WARN)
        except ConfigurationError as e:
            logger.error("Render aborted: %s", e)
            self._host.notify(str(e), ERROR)

    def clear_buffer(self, bufnr: Optional[int] = None) -> None:
        """Clear rendered diagrams in a buffer (DiagramClear)."""
        self._require_setup().clear_buffer(bufnr)

    def get_cache_dir(self) -> str:
        return self._options.cache_dir or get_cache_dir()

    def teardown(self, clear_images: bool = True) -> None:
        """Stop polling, terminate render jobs and release the session state.

        Args:
            clear_images: Also clear every displayed image. Front ends that
                leave their output on screen pass False.
        """
        if self._poller is not None:
            self._poller.cancel_all()
        if self._jobs is not None:
            self._jobs.terminate_all()
        if self._registry is not None and clear_images:
            self._registry.clear_all()
        self._wired_buffers.clear()
        self._orchestrator = None
        self._poller = None
        self._jobs = None
        self._registry = None
        self._host = None

    def _require_setup(self) -> RenderOrchestrator:
        if self._orchestrator is None:
            raise ConfigurationError("diagram: setup() has not been called")
        return self._orchestrator

    def _on_filetype(self, event: AutocmdEvent) -> None:
        self._setup_buffer_autocmds(event.buf)

    def _setup_buffer_autocmds(self, bufnr: int) -> None:
        if not self._options.clear_events or bufnr in self._wired_buffers:
            return
        self._wired_buffers.add(bufnr)

        def clear(_event: AutocmdEvent) -> None:
            if self._orchestrator is not None:
                self._orchestrator.clear_buffer(bufnr)

        self._host.create_autocmd(self._options.clear_events, clear, buffer=bufnr)


def _default_image_backend() -> ImageBackend:
    try:
        import PIL  # noqa: F401
    except ImportError:
        raise MissingDependencyError("Pillow", "pip install Pillow")
    from .terminal_image import TerminalImageBackend
    return TerminalImageBackend()


def create_plugin() -> DiagramPlugin:
    """Factory function to create the diagram plugin."""
    return DiagramPlugin()
