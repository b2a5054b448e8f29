# diagramview/renderers/plantuml.py
"""PlantUML rendering.

Runs ``plantuml -tpng -pipe`` with the source on stdin and the PNG on
stdout. Options: ``charset`` and ``cli_args``.
"""

from typing import Any, Dict, List

from .base import CommandRenderer


class PlantUMLRenderer(CommandRenderer):
    """Renders ```plantuml blocks."""

    id = "plantuml"
    executable = "plantuml"
    source_suffix = ".puml"
    kroki_type = "plantuml"
    uses_pipes = True

    def _command(self, exe: str, input_path: str, output_path: str,
                 options: Dict[str, Any]) -> List[str]:
        cmd = [exe, "-tpng", "-pipe"]
        if "charset" in options:
            cmd.extend(["-charset", str(options["charset"])])
        cmd.extend(self._extra_args(options))
        return cmd
