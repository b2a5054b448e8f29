# diagramview/renderers/mermaid.py
"""Mermaid rendering with mermaid-cli (mmdc).

mmdc is the official Mermaid CLI from @mermaid-js/mermaid-cli. It drives
a headless browser, so a render takes a second or more and always runs
as a background job.

Options (all optional):
    background - background color (e.g. "transparent", "white")
    theme      - default, dark, forest, neutral
    scale      - puppeteer scale factor
    width      - page width in pixels
    height     - page height in pixels
    cli_args   - extra arguments appended to the command
"""

import json
import os
from typing import Any, Dict, List

from .base import CommandRenderer


# Headless chromium refuses to start as root in containers without these
_PUPPETEER_CONFIG = {
    "args": ["--no-sandbox", "--disable-setuid-sandbox"],
}

_FLAGS = (
    ("background", "-b"),
    ("theme", "-t"),
    ("scale", "-s"),
    ("width", "-w"),
    ("height", "-H"),
)


class MermaidRenderer(CommandRenderer):
    """Renders ```mermaid blocks through mmdc."""

    id = "mermaid"
    executable = "mmdc"
    source_suffix = ".mmd"
    kroki_type = "mermaid"

    def _command(self, exe: str, input_path: str, output_path: str,
                 options: Dict[str, Any]) -> List[str]:
        cmd = [exe, "-i", input_path, "-o", output_path,
               "-p", self._puppeteer_config(), "--quiet"]
        for key, flag in _FLAGS:
            if key in options:
                cmd.extend([flag, str(options[key])])
        cmd.extend(self._extra_args(options))
        return cmd

    def _kroki_source(self, source: str, options: Dict[str, Any]) -> str:
        # Kroki has no theme parameter; use mermaid's init directive
        theme = options.get("theme")
        if theme and theme != "default" and not source.lstrip().startswith("%%{"):
            return f"%%{{init: {{'theme': '{theme}'}}}}%%\n{source}"
        return source

    def _puppeteer_config(self) -> str:
        path = os.path.join(self.cache_dir, "puppeteer-config.json")
        if not os.path.exists(path):
            with open(path, "w") as f:
                json.dump(_PUPPETEER_CONFIG, f)
        return path
