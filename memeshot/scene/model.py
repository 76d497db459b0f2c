"""Scene snapshot model: fields, image references and reported layout."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from memeshot.image.buffer import PixelBuffer, as_rgba, load_image

logger = logging.getLogger(__name__)

FieldId = Union[int, str]


class TextKind(str, Enum):
    HEADER = "header"
    FOOTER = "footer"
    REGULAR = "text"


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.left + self.width / 2, self.top + self.height / 2)

    def translated(self, dx: float, dy: float) -> "Rect":
        return Rect(self.left + dx, self.top + dy, self.width, self.height)

    @classmethod
    def centered_at(cls, cx: float, cy: float, width: float, height: float) -> "Rect":
        return cls(cx - width / 2, cy - height / 2, width, height)


class ImageRef:
    """Reference to a raster that may still be loading.

    Either wraps already decoded pixels or a file path decoded on first use.
    """

    def __init__(self, src: Optional[str] = None, pixels: Optional[np.ndarray] = None) -> None:
        if src is None and pixels is None:
            raise ValueError("ImageRef needs a source path or decoded pixels")
        self.src = src
        self._pixels: Optional[PixelBuffer] = as_rgba(pixels) if pixels is not None else None
        self.error: Optional[Exception] = None

    def __repr__(self) -> str:
        return f"ImageRef(src={self.src!r}, ready={self.is_ready})"

    @property
    def is_ready(self) -> bool:
        return self._pixels is not None

    @property
    def pixels(self) -> Optional[PixelBuffer]:
        return self._pixels

    @property
    def natural_size(self) -> Tuple[int, int]:
        if self._pixels is None:
            return (0, 0)
        return (int(self._pixels.shape[1]), int(self._pixels.shape[0]))

    def load(self) -> PixelBuffer:
        if self._pixels is None:
            self._pixels = load_image(str(self.src))
        return self._pixels

    async def wait_loaded(self, timeout: Optional[float] = None) -> bool:
        """Wait until the pixels are decoded; False when loading failed or timed out."""
        if self.is_ready:
            return True
        if self.error is not None:
            return False
        try:
            await asyncio.wait_for(asyncio.to_thread(self.load), timeout)
        except (FileNotFoundError, asyncio.TimeoutError) as exc:
            self.error = exc
            logger.warning("Image %s did not load: %s", self.src, exc)
            return False
        return True


@dataclass
class TextField:
    id: FieldId
    kind: TextKind = TextKind.REGULAR
    text: str = ""
    x: float = 50.0
    y: float = 50.0
    font_size: float = 40.0
    color: str = "#ffffff"
    font_family: str = "Arial"
    opacity: float = 100.0
    rotation: float = 0.0
    scale: float = 1.0

    @property
    def is_placeholder(self) -> bool:
        # the editor shows a prompt for empty fields; it is never exported
        return not self.text

    @property
    def has_visible_text(self) -> bool:
        return bool(self.text.strip())


@dataclass
class ImageField:
    id: FieldId
    src: ImageRef
    x: float = 50.0
    y: float = 50.0
    width: float = 100.0
    height: float = 100.0
    scale: float = 1.0
    opacity: float = 100.0
    rotation: float = 0.0


@dataclass
class Scene:
    background_image: Optional[ImageRef] = None
    image_style: str = ""
    text_fields: List[TextField] = field(default_factory=list)
    image_fields: List[ImageField] = field(default_factory=list)

    def __post_init__(self) -> None:
        ids = [f.id for f in self.text_fields] + [f.id for f in self.image_fields]
        if len(ids) != len(set(ids)):
            raise ValueError("Field ids must be unique within a scene")
        for kind in (TextKind.HEADER, TextKind.FOOTER):
            if sum(1 for f in self.text_fields if f.kind is kind) > 1:
                raise ValueError(f"A scene may hold at most one {kind.value} field")

    def _bar(self, kind: TextKind) -> Optional[TextField]:
        return next((f for f in self.text_fields if f.kind is kind), None)

    @property
    def header(self) -> Optional[TextField]:
        return self._bar(TextKind.HEADER)

    @property
    def footer(self) -> Optional[TextField]:
        return self._bar(TextKind.FOOTER)

    @property
    def regular_text_fields(self) -> List[TextField]:
        return [f for f in self.text_fields if f.kind is TextKind.REGULAR]

    def visible_text_fields(self) -> List[TextField]:
        return [f for f in self.text_fields if not f.is_placeholder and f.has_visible_text]


@dataclass(frozen=True)
class FieldLayout:
    """On-screen rectangle of a field plus its computed CSS font size, if any."""

    rect: Optional[Rect] = None
    font_size: Optional[float] = None


@dataclass
class LayoutMetrics:
    """Rendered rectangles reported by the layout collaborator, sharing one origin."""

    image_area: Rect
    header: Optional[Rect] = None
    footer: Optional[Rect] = None
    fields: Dict[FieldId, FieldLayout] = field(default_factory=dict)
