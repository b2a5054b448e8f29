# diagramview/renderers/d2.py
"""D2 rendering.

Options:
    theme_id      - d2 theme number
    dark_theme_id - theme used when the viewer prefers dark mode
    scale         - output scale
    layout        - layout engine (dagre, elk, ...)
    sketch        - hand-drawn look when true
    cli_args      - extra arguments appended to the command
"""

from typing import Any, Dict, List

from .base import CommandRenderer


class D2Renderer(CommandRenderer):
    """Renders ```d2 blocks."""

    id = "d2"
    executable = "d2"
    source_suffix = ".d2"
    kroki_type = "d2"

    def _command(self, exe: str, input_path: str, output_path: str,
                 options: Dict[str, Any]) -> List[str]:
        cmd = [exe]
        if "theme_id" in options:
            cmd.append(f"--theme={options['theme_id']}")
        if "dark_theme_id" in options:
            cmd.append(f"--dark-theme={options['dark_theme_id']}")
        if "scale" in options:
            cmd.append(f"--scale={options['scale']}")
        if "layout" in options:
            cmd.append(f"--layout={options['layout']}")
        if options.get("sketch"):
            cmd.append("--sketch")
        cmd.extend(self._extra_args(options))
        cmd.extend([input_path, output_path])
        return cmd
