# diagramview/integrations/base.py
"""Common behaviour of buffer integrations."""

import logging
from typing import List, Sequence

from ..host import EditorHost
from ..models import Diagram, Renderer

logger = logging.getLogger(__name__)


class BufferIntegration:
    """Finds diagrams by scanning a buffer's lines.

    Subclasses set ``id`` and ``filetypes`` and implement ``find_diagrams``.
    Only blocks whose language matches one of ``renderers`` are reported.
    """

    id = ""
    filetypes: Sequence[str] = ()

    def __init__(self, host: EditorHost, renderers: Sequence[Renderer]):
        self._host = host
        self._renderers = list(renderers)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(renderers={[r.id for r in self._renderers]})"

    @property
    def renderers(self) -> Sequence[Renderer]:
        return tuple(self._renderers)

    def query_buffer_diagrams(self, bufnr: int) -> List[Diagram]:
        lines = self._host.buffer_lines(bufnr)
        renderer_ids = {r.id for r in self._renderers}
        diagrams = self.find_diagrams(bufnr, lines, renderer_ids)
        logger.debug("%s found %d diagram(s) in buffer %d",
                     self.id, len(diagrams), bufnr)
        return diagrams

    def find_diagrams(self, bufnr: int, lines: Sequence[str],
                      renderer_ids: Sequence[str]) -> List[Diagram]:
        raise NotImplementedError


def dedent_block(lines: Sequence[str], indent: int) -> str:
    """Join block lines, removing up to ``indent`` leading spaces from each."""
    out = []
    for line in lines:
        strip = min(indent, len(line) - len(line.lstrip(" ")))
        out.append(line[strip:])
    return "\n".join(out)
