"""Collaborator interfaces the export pipeline depends on but does not implement."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Protocol, Union

from memeshot.image.buffer import PixelBuffer

from .presentation import PresentationNode


@dataclass(frozen=True)
class CaptureTarget:
    """Subtree root chosen for the primary capture."""

    node: PresentationNode
    kind: str  # "image" (image area only) or "wrapper" (with header/footer)

    @property
    def width(self) -> float:
        return self.node.width

    @property
    def height(self) -> float:
        return self.node.height


@dataclass(frozen=True)
class RenderOptions:
    background_color: str
    scale: int
    width: float
    height: float


class Rasterizer(Protocol):
    """Renders a presentation subtree to a pixel buffer, synchronously or not."""

    def render(self, target: CaptureTarget, options: RenderOptions) -> Union[PixelBuffer, Awaitable[PixelBuffer]]:
        ...


class OutputSink(Protocol):
    def emit(self, data: bytes, filename: str) -> None:
        ...


class Notifier(Protocol):
    def success(self, message: str) -> None:
        ...

    def failure(self, message: str) -> None:
        ...
