"""Border trimming for captured rasters.

Removes a uniform near-white or transparent margin around the content of a
pixel buffer. Edges are scanned in a fixed order (top, bottom, left, right)
and the horizontal scans only look at rows inside the vertical span already
found, so stray pixels above or below the content never block horizontal
trimming.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .buffer import PixelBuffer


@dataclass(frozen=True)
class BoundingBox:
    """Inclusive pixel box; ``top <= bottom`` and ``left <= right``."""

    top: int
    bottom: int
    left: int
    right: int

    @property
    def width(self) -> int:
        return self.right - self.left + 1

    @property
    def height(self) -> int:
        return self.bottom - self.top + 1

    def contains(self, other: "BoundingBox") -> bool:
        return (
            self.top <= other.top
            and self.bottom >= other.bottom
            and self.left <= other.left
            and self.right >= other.right
        )


def background_mask(buffer: PixelBuffer, tolerance: int = 8) -> np.ndarray:
    """Return a boolean (height, width) mask of background pixels.

    Doxygen:
    - @param buffer: RGBA (or RGB, treated as opaque) uint8 array.
    - @param tolerance: A pixel is background when R, G and B are all >= 255 - tolerance.
    - @return: Mask that is True for transparent or near-white pixels.
    """
    if buffer.ndim != 3 or buffer.shape[2] not in (3, 4):
        raise ValueError(f"Expected an RGB(A) buffer, got shape {buffer.shape}")
    threshold = 255 - max(0, min(255, int(tolerance)))
    near_white = (buffer[:, :, :3] >= threshold).all(axis=2)
    if buffer.shape[2] == 4:
        return near_white | (buffer[:, :, 3] == 0)
    return near_white


def find_content_box(buffer: PixelBuffer, tolerance: int = 8) -> BoundingBox:
    """Locate the minimal box that excludes the uniform background margin.

    A fully background buffer collapses to the 1x1 box at the origin.
    """
    height, width = buffer.shape[:2]
    mask = background_mask(buffer, tolerance)

    content_rows = np.flatnonzero(~mask.all(axis=1))
    if content_rows.size == 0:
        return BoundingBox(top=0, bottom=0, left=0, right=0)
    top = int(content_rows[0])
    bottom = int(content_rows[-1])

    # horizontal scans only consider rows within [top, bottom]
    content_cols = np.flatnonzero(~mask[top:bottom + 1].all(axis=0))
    left = int(content_cols[0])
    right = int(content_cols[-1])

    return BoundingBox(
        top=max(0, min(top, height - 1)),
        bottom=max(top, min(bottom, height - 1)),
        left=max(0, min(left, width - 1)),
        right=max(left, min(right, width - 1)),
    )


def trim_borders(buffer: PixelBuffer, tolerance: int = 8) -> PixelBuffer:
    """Crop away the uniform margin, returning ``buffer`` itself when nothing trims.

    Doxygen:
    - @param buffer: Captured RGBA buffer; never mutated.
    - @param tolerance: Near-white tolerance, 0..255.
    - @return: The original buffer, or a new array of exactly box.height x box.width.
    """
    height, width = buffer.shape[:2]
    box = find_content_box(buffer, tolerance)
    if box.width == width and box.height == height:
        return buffer
    return buffer[box.top:box.bottom + 1, box.left:box.right + 1].copy()
