# diagramview/renderers/gnuplot.py
"""gnuplot rendering.

The diagram source is wrapped in a script that selects the pngcairo
terminal and the output file, then run with ``gnuplot <script>``.
Kroki has no gnuplot support, so a local gnuplot is required.

Options:
    size     - "width,height" in pixels (e.g. "800,600")
    font     - font spec (e.g. "Arial,10")
    theme    - "dark" for light-on-dark colors
    cli_args - extra arguments placed before the script
"""

from typing import Any, Dict, List

from .base import CommandRenderer

_DARK_BACKGROUND = "#1e1e2e"
_DARK_FOREGROUND = "#cdd6f4"


class GnuplotRenderer(CommandRenderer):
    """Renders ```gnuplot blocks."""

    id = "gnuplot"
    executable = "gnuplot"
    source_suffix = ".gp"

    def _prepare_source(self, source: str, options: Dict[str, Any],
                        output_path: str) -> str:
        terminal = "set terminal pngcairo enhanced"
        if "size" in options:
            terminal += f" size {options['size']}"
        if "font" in options:
            terminal += f" font \"{options['font']}\""
        dark = options.get("theme") == "dark"
        if dark:
            terminal += f" background rgb \"{_DARK_BACKGROUND}\""

        lines: List[str] = [terminal, f"set output \"{output_path}\""]
        if dark:
            for element in ("border lc", "key textcolor", "xlabel textcolor",
                            "ylabel textcolor", "title textcolor",
                            "xtics textcolor", "ytics textcolor"):
                lines.append(f"set {element} rgb \"{_DARK_FOREGROUND}\"")
        lines.append(source)
        lines.append("unset output")
        return "\n".join(lines) + "\n"

    def _command(self, exe: str, input_path: str, output_path: str,
                 options: Dict[str, Any]) -> List[str]:
        return [exe] + self._extra_args(options) + [input_path]
