# diagramview/models.py
"""Data model and collaborator protocols for diagram rendering.

A Diagram is one located block of diagram source inside a buffer. It is
discovered by an Integration, turned into an image file by a Renderer,
and displayed through an ImageBackend.
"""

from dataclasses import dataclass
from typing import (
    Any, Dict, List, NamedTuple, Optional, Protocol, Sequence, Tuple,
    runtime_checkable,
)


@dataclass(frozen=True)
class DiagramRange:
    """Zero-based location of a diagram block within a buffer."""
    start_row: int
    start_col: int
    end_row: int
    end_col: int


@dataclass
class Diagram:
    """A diagram discovered in a buffer.

    Attributes:
        bufnr: Owning buffer.
        source: Raw diagram-language text.
        renderer_id: Identifier of the renderer that produces its image.
        range: Where the block lives in the buffer.
        image: Displayed image handle once materialized, else None.
    """
    bufnr: int
    source: str
    renderer_id: str
    range: DiagramRange
    image: Optional["ImageHandle"] = None

    @property
    def key(self) -> Tuple[int, DiagramRange]:
        return (self.bufnr, self.range)


class RenderResult(NamedTuple):
    """Result of dispatching a diagram to a renderer.

    ``file_path`` is where the image is (or will be) written. When
    ``job_id`` is set the file is produced by an external job that has
    not necessarily finished yet.
    """
    file_path: str
    job_id: Optional[int] = None

    @property
    def is_pending(self) -> bool:
        return self.job_id is not None


@runtime_checkable
class Renderer(Protocol):
    """Turns diagram source into an image file."""

    @property
    def id(self) -> str:
        ...

    def render(self, source: str, options: Dict[str, Any]) -> RenderResult:
        ...


@runtime_checkable
class Integration(Protocol):
    """Finds diagrams in buffers of the filetypes it declares."""

    @property
    def id(self) -> str:
        ...

    @property
    def filetypes(self) -> Sequence[str]:
        ...

    @property
    def renderers(self) -> Sequence[Renderer]:
        ...

    def query_buffer_diagrams(self, bufnr: int) -> List[Diagram]:
        ...


@runtime_checkable
class ImageHandle(Protocol):
    """A displayed image bound to a buffer and window."""

    def render(self) -> None:
        ...

    def clear(self) -> None:
        ...


class ImageBackend(Protocol):
    """Creates image handles from files on disk."""

    def from_file(
        self,
        path: str,
        *,
        buffer: int,
        window: int,
        x: int,
        y: int,
        with_virtual_padding: bool = True,
        inline: bool = True,
    ) -> ImageHandle:
        ...
