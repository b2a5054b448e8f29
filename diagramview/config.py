# diagramview/config.py
"""Plugin options, defaults and configuration file loading.

Options are plain dicts merged over ``DEFAULT_OPTIONS`` (nested tables
are merged recursively, user values win), then overridden by
environment variables:

    DIAGRAMVIEW_MERMAID_THEME  - mermaid theme (default, dark, forest, neutral)
    DIAGRAMVIEW_MERMAID_SCALE  - mermaid scale factor (int)
    DIAGRAMVIEW_STALE_JOBS     - "discard" or "keep"
    DIAGRAMVIEW_KROKI_URL      - kroki instance used when a local tool is missing
    DIAGRAMVIEW_CACHE_DIR      - where rendered images are written
"""

import copy
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

STALE_JOB_POLICIES = ("discard", "keep")

DEFAULT_POLL_INTERVAL_MS = 100

DEFAULT_RENDERER_OPTIONS: Dict[str, Dict[str, Any]] = {
    "mermaid": {
        "background": None,
        "theme": None,
        "scale": None,
        "width": None,
        "height": None,
        "cli_args": None,
    },
    "plantuml": {
        "charset": None,
        "cli_args": None,
    },
    "d2": {
        "theme_id": None,
        "dark_theme_id": None,
        "scale": None,
        "layout": None,
        "sketch": None,
        "cli_args": None,
    },
    "gnuplot": {
        "size": None,
        "font": None,
        "theme": None,
        "cli_args": None,
    },
}

DEFAULT_OPTIONS: Dict[str, Any] = {
    "integrations": ["markdown"],
    "renderer_options": DEFAULT_RENDERER_OPTIONS,
    "events": {
        "clear_buffer": ["InsertEnter", "CursorMoved"],
    },
    "stale_jobs": "discard",
    "poll_interval_ms": DEFAULT_POLL_INTERVAL_MS,
    "kroki_url": None,
    "cache_dir": None,
}


@dataclass
class PluginOptions:
    """Resolved plugin configuration.

    Attributes:
        integrations: Integration names or integration objects, in
            priority order.
        renderer_options: Per-renderer option tables keyed by renderer id.
        clear_events: Buffer events that clear rendered diagrams. Empty
            disables automatic clearing.
        stale_jobs: What to do with render jobs that finish after their
            buffer was rendered again ("discard" or "keep"). Clearing a
            buffer never drops its pending jobs.
        poll_interval_ms: How often pending render jobs are checked.
        kroki_url: Remote renderer used when a local tool is missing.
        cache_dir: Directory renderers write images into.
    """
    integrations: List[Any] = field(default_factory=lambda: ["markdown"])
    renderer_options: Dict[str, Dict[str, Any]] = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_RENDERER_OPTIONS))
    clear_events: List[str] = field(
        default_factory=lambda: ["InsertEnter", "CursorMoved"])
    stale_jobs: str = "discard"
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    kroki_url: Optional[str] = None
    cache_dir: str = ""


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``.

    Nested dicts are merged key by key; any other value in ``override``
    replaces the one in ``base``. Neither input is modified.
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def get_cache_dir() -> str:
    """Return the directory renderers use for output and scratch files.

    ``DIAGRAMVIEW_CACHE_DIR`` wins; otherwise ``diagram-cache`` under
    ``$XDG_CACHE_HOME`` (default ``~/.cache``). The directory is not
    created here.
    """
    env_dir = os.environ.get("DIAGRAMVIEW_CACHE_DIR")
    if env_dir:
        return env_dir
    base = os.environ.get("XDG_CACHE_HOME") or os.path.join(
        os.path.expanduser("~"), ".cache")
    return os.path.join(base, "diagram-cache")


def load_options(opts: Optional[Dict[str, Any]] = None) -> PluginOptions:
    """Merge user options over the defaults and apply env overrides.

    Args:
        opts: User options, as passed to ``DiagramPlugin.setup``.

    Returns:
        Resolved PluginOptions.

    Raises:
        ConfigurationError: If an option has an unusable value.
    """
    # Integrations are objects, not tables; they replace rather than merge
    opts = dict(opts or {})
    integrations = opts.pop("integrations", None)
    merged = deep_merge(DEFAULT_OPTIONS, opts)
    if integrations is not None:
        merged["integrations"] = list(integrations)

    renderer_options = merged["renderer_options"] or {}

    env_theme = os.environ.get("DIAGRAMVIEW_MERMAID_THEME")
    if env_theme:
        renderer_options.setdefault("mermaid", {})["theme"] = env_theme

    env_scale = os.environ.get("DIAGRAMVIEW_MERMAID_SCALE")
    if env_scale:
        try:
            renderer_options.setdefault("mermaid", {})["scale"] = int(env_scale)
        except ValueError:
            logger.debug("Ignoring invalid DIAGRAMVIEW_MERMAID_SCALE: %s", env_scale)

    stale_jobs = os.environ.get("DIAGRAMVIEW_STALE_JOBS") or merged["stale_jobs"]
    if stale_jobs not in STALE_JOB_POLICIES:
        raise ConfigurationError(
            f"stale_jobs must be one of {', '.join(STALE_JOB_POLICIES)}, "
            f"got {stale_jobs!r}"
        )

    try:
        poll_interval_ms = int(merged["poll_interval_ms"])
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"poll_interval_ms must be an integer, got {merged['poll_interval_ms']!r}"
        )
    if poll_interval_ms <= 0:
        raise ConfigurationError("poll_interval_ms must be positive")

    events = merged.get("events") or {}
    clear_events = events.get("clear_buffer") or []
    if isinstance(clear_events, str):
        clear_events = [clear_events]

    kroki_url = os.environ.get("DIAGRAMVIEW_KROKI_URL") or merged["kroki_url"]
    if kroki_url:
        kroki_url = kroki_url.rstrip("/")

    cache_dir = merged["cache_dir"] or get_cache_dir()

    return PluginOptions(
        integrations=merged["integrations"],
        renderer_options=renderer_options,
        clear_events=list(clear_events),
        stale_jobs=stale_jobs,
        poll_interval_ms=poll_interval_ms,
        kroki_url=kroki_url or None,
        cache_dir=cache_dir,
    )


def load_config_file(path: str) -> Dict[str, Any]:
    """Read plugin options from a JSON or YAML file.

    Args:
        path: Path to a ``.json``, ``.yaml`` or ``.yml`` file.

    Returns:
        The options dict.

    Raises:
        ConfigurationError: If the file is missing, unreadable, of an
            unknown type, or does not contain a mapping.
    """
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {file_path}: {e}")

    if file_path.suffix in (".yaml", ".yml"):
        import yaml
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file {file_path}: {e}")
    elif file_path.suffix == ".json":
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in config file {file_path}: {e}")
    else:
        raise ConfigurationError(
            f"Unsupported config file type: {file_path.suffix or file_path.name}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {file_path}")

    logger.debug("Loaded config from %s", file_path)
    return data
