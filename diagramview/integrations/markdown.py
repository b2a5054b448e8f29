# diagramview/integrations/markdown.py
"""Diagram discovery in Markdown buffers.

A diagram is a fenced code block whose info string starts with a
renderer id:

    ```mermaid
    graph TD
        A --> B
    ```

Backtick and tilde fences are supported. The closing fence must use the
same character and be at least as long as the opening one; a block left
open runs to the end of the buffer.
"""

import re
from typing import List, Sequence

from ..models import Diagram, DiagramRange
from .base import BufferIntegration, dedent_block

# Quarto and R Markdown also write the language as {mermaid}
_FENCE_OPEN_RE = re.compile(r"^( {0,3})(`{3,}|~{3,})\s*\{?\.?([\w+-]*)")


def _is_closing_fence(line: str, char: str, length: int) -> bool:
    stripped = line.strip()
    return (len(stripped) >= length
            and stripped == char * len(stripped)
            and len(line) - len(line.lstrip(" ")) <= 3)


class MarkdownIntegration(BufferIntegration):
    """Finds fenced diagram blocks in Markdown and its dialects."""

    id = "markdown"
    filetypes = ("markdown", "md", "quarto", "rmd", "vimwiki")

    def find_diagrams(self, bufnr: int, lines: Sequence[str],
                      renderer_ids: Sequence[str]) -> List[Diagram]:
        diagrams: List[Diagram] = []
        row = 0
        while row < len(lines):
            match = _FENCE_OPEN_RE.match(lines[row])
            if match is None:
                row += 1
                continue

            indent, fence, language = match.groups()
            language = language.lower()
            start = row
            end = start + 1
            while end < len(lines) and not _is_closing_fence(lines[end], fence[0], len(fence)):
                end += 1

            if language in renderer_ids:
                closed = end < len(lines)
                last_row = end if closed else len(lines) - 1
                diagrams.append(Diagram(
                    bufnr=bufnr,
                    source=dedent_block(lines[start + 1:end], len(indent)),
                    renderer_id=language,
                    range=DiagramRange(
                        start_row=start,
                        start_col=len(indent),
                        end_row=last_row,
                        end_col=len(lines[last_row]),
                    ),
                ))
            row = end + 1
        return diagrams
