"""File-based collaborators: output sink, pre-captured rasterizer, logging notifier."""

from __future__ import annotations

import logging
import os
from typing import Optional

from memeshot.image.buffer import PixelBuffer, load_image

from .interfaces import CaptureTarget, RenderOptions

logger = logging.getLogger(__name__)


class FileSink:
    """Write encoded images into a directory."""

    def __init__(self, out_dir: str) -> None:
        self.out_dir = out_dir
        self.last_path: Optional[str] = None

    def emit(self, data: bytes, filename: str) -> None:
        os.makedirs(self.out_dir, exist_ok=True)
        path = os.path.join(self.out_dir, os.path.basename(filename))
        with open(path, "wb") as f:
            f.write(data)
        self.last_path = path
        logger.info("Wrote %d bytes to %s", len(data), path)


class ImageFileRasterizer:
    """Primary capture backed by a screenshot the page already rendered to disk.

    The screenshot is expected at ``options.scale`` times the target size;
    a mismatch is logged but not rejected, since trimming follows.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    def render(self, target: CaptureTarget, options: RenderOptions) -> PixelBuffer:
        buf = load_image(self.path)
        expected = (round(options.width * options.scale), round(options.height * options.scale))
        actual = (buf.shape[1], buf.shape[0])
        if actual != expected:
            logger.debug("Capture %s is %dx%d, target %s expects %dx%d", self.path, *actual, target.kind, *expected)
        return buf


class LoggingNotifier:
    """Report export outcomes through logging."""

    def success(self, message: str) -> None:
        logger.info(message)

    def failure(self, message: str) -> None:
        logger.error(message)
