"""Pixel buffer helpers shared by every rendering stage.

A pixel buffer is a ``(height, width, 4)`` uint8 numpy array in RGBA order.
Conversions to and from PIL and OpenCV live here so the other stages only
ever pass plain arrays around.
"""

from __future__ import annotations

from typing import Tuple, Union

import cv2
import numpy as np
from PIL import Image, ImageColor

PixelBuffer = np.ndarray
Color = Union[str, Tuple[int, int, int], Tuple[int, int, int, int]]


def parse_color(color: Color) -> Tuple[int, int, int, int]:
    """Return an RGBA tuple for a CSS-like color string or an RGB(A) tuple.

    Doxygen:
    - @param color: '#fff', '#ffffff', 'white', 'rgb(0, 0, 0)' or an RGB/RGBA tuple.
    - @return: (r, g, b, a) with components in 0..255.
    - @throws ValueError: If the string is not a recognised color.
    """
    if isinstance(color, str):
        rgb = ImageColor.getrgb(color)
    else:
        rgb = tuple(int(c) for c in color)
    if len(rgb) == 3:
        return (rgb[0], rgb[1], rgb[2], 255)
    return (rgb[0], rgb[1], rgb[2], rgb[3])


def new_buffer(width: int, height: int, color: Color = (255, 255, 255, 255)) -> PixelBuffer:
    """Allocate a buffer of the given size filled with ``color``."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Buffer dimensions must be positive, got {width}x{height}")
    buf = np.empty((int(height), int(width), 4), dtype=np.uint8)
    buf[:, :] = parse_color(color)
    return buf


def as_rgba(img: np.ndarray) -> PixelBuffer:
    """Normalise a grayscale, RGB or RGBA uint8 array to an RGBA buffer."""
    arr = np.asarray(img)
    if arr.dtype != np.uint8:
        raise ValueError(f"Expected a uint8 image, got {arr.dtype}")
    if arr.ndim == 2:
        return cv2.cvtColor(arr, cv2.COLOR_GRAY2RGBA)
    if arr.ndim == 3 and arr.shape[2] == 3:
        return cv2.cvtColor(arr, cv2.COLOR_RGB2RGBA)
    if arr.ndim == 3 and arr.shape[2] == 4:
        return arr
    raise ValueError(f"Unsupported image shape {arr.shape}")


def buffer_size(buf: PixelBuffer) -> Tuple[int, int]:
    """Return (width, height) of a buffer."""
    return int(buf.shape[1]), int(buf.shape[0])


def is_empty(buf: PixelBuffer | None) -> bool:
    return buf is None or getattr(buf, "size", 0) == 0 or buf.ndim < 2


def to_pil(buf: PixelBuffer) -> Image.Image:
    return Image.fromarray(as_rgba(buf))


def from_pil(img: Image.Image) -> PixelBuffer:
    return np.array(img.convert("RGBA"), dtype=np.uint8)


def load_image(path: str) -> PixelBuffer:
    """Decode an image file into an RGBA buffer.

    - @throws FileNotFoundError: If the file is missing or cannot be decoded.
    """
    img = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise FileNotFoundError(f"Failed to load image: {path}")
    if img.dtype == np.uint16:
        # 16-bit PNGs keep their high byte
        img = (img >> 8).astype(np.uint8)
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    if img.shape[2] == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
    return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)


def encode_png(buf: PixelBuffer) -> bytes:
    """Serialize a buffer to PNG bytes.

    - @throws ValueError: If OpenCV refuses to encode the buffer.
    """
    ok, data = cv2.imencode(".png", cv2.cvtColor(as_rgba(buf), cv2.COLOR_RGBA2BGRA))
    if not ok:
        raise ValueError("OpenCV failed to encode buffer as PNG")
    return data.tobytes()
