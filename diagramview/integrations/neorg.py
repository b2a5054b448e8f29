# diagramview/integrations/neorg.py
"""Diagram discovery in Neorg buffers.

A diagram is a ranged verbatim tag naming a renderer:

    @code mermaid
    graph TD
        A --> B
    @end

Ranges start at the first source line, one row below the ``@code`` tag.
Images belong on the tag row, so the orchestrator shifts the anchor for
the ``norg`` filetype.
"""

import re
from typing import List, Sequence

from ..models import Diagram, DiagramRange
from .base import BufferIntegration, dedent_block

_TAG_OPEN_RE = re.compile(r"^(\s*)@code\s+([\w+-]+)")
_TAG_END_RE = re.compile(r"^\s*@end\s*$")


class NeorgIntegration(BufferIntegration):
    """Finds ``@code <renderer>`` blocks in Neorg documents."""

    id = "neorg"
    filetypes = ("norg",)

    def find_diagrams(self, bufnr: int, lines: Sequence[str],
                      renderer_ids: Sequence[str]) -> List[Diagram]:
        diagrams: List[Diagram] = []
        row = 0
        while row < len(lines):
            match = _TAG_OPEN_RE.match(lines[row])
            if match is None:
                row += 1
                continue

            indent, language = match.groups()
            language = language.lower()
            end = row + 1
            while end < len(lines) and not _TAG_END_RE.match(lines[end]):
                end += 1

            if language in renderer_ids:
                last_row = min(end, len(lines) - 1)
                diagrams.append(Diagram(
                    bufnr=bufnr,
                    source=dedent_block(lines[row + 1:end], len(indent)),
                    renderer_id=language,
                    range=DiagramRange(
                        start_row=row + 1,
                        start_col=len(indent),
                        end_row=last_row,
                        end_col=len(lines[last_row]),
                    ),
                ))
            row = end + 1
        return diagrams
