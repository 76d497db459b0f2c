"""Font discovery for the fallback compositor.

Looks up bold sans-serif faces by file name in FONT_PATH, the project's
config/fonts directory, and the usual system font directories. Falls back
to Pillow's bundled scalable default font.
"""

from __future__ import annotations

import functools
import logging
import os
from typing import List, Optional, Sequence

from PIL import ImageFont

from memeshot.config import CONFIG_DIR, DEFAULT_FONT_CANDIDATES

logger = logging.getLogger(__name__)

_CONFIG_FONTS_DIR = os.path.join(CONFIG_DIR, "fonts")
_FONT_LIST_PATH = os.path.join(CONFIG_DIR, "font_list.txt")
SAFE_FONT_EXTS = (".ttf", ".otf", ".ttc")

_SYSTEM_FONT_DIRS = [
    "/usr/share/fonts",
    "/usr/local/share/fonts",
    os.path.expanduser("~/.fonts"),
    os.path.expanduser("~/.local/share/fonts"),
    "/Library/Fonts",
    "/System/Library/Fonts",
    os.path.expanduser("~/Library/Fonts"),
]


def _normalize_font_list(names: Sequence[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for name in names:
        key = name.strip()
        if not key or key.lower() in seen:
            continue
        if not key.lower().endswith(SAFE_FONT_EXTS):
            continue
        seen.add(key.lower())
        out.append(key)
    return out


def font_candidates(configured: Optional[Sequence[str]] = None) -> List[str]:
    """Return candidate font file names, preferring config/font_list.txt when present."""
    names: List[str] = []
    if os.path.isfile(_FONT_LIST_PATH):
        with open(_FONT_LIST_PATH, "r", encoding="utf-8", errors="ignore") as f:
            names.extend(line.strip() for line in f)
    names.extend(configured or DEFAULT_FONT_CANDIDATES)
    return _normalize_font_list(names)


def _search_dirs() -> List[str]:
    dirs = [p for p in os.environ.get("FONT_PATH", "").split(os.pathsep) if p.strip()]
    windir = os.environ.get("WINDIR") or os.environ.get("SystemRoot")
    if windir:
        dirs.append(os.path.join(windir, "Fonts"))
    dirs.append(_CONFIG_FONTS_DIR)
    dirs.extend(_SYSTEM_FONT_DIRS)
    return [d for d in dirs if os.path.isdir(d)]


@functools.lru_cache(maxsize=64)
def find_font_path(name: str) -> Optional[str]:
    """Locate a font file by case-insensitive file name."""
    if os.path.isabs(name) and os.path.exists(name):
        return name
    wanted = name.lower()
    for base in _search_dirs():
        for dirpath, _dirnames, filenames in os.walk(base):
            for fname in filenames:
                if fname.lower() == wanted:
                    return os.path.join(dirpath, fname)
    return None


@functools.lru_cache(maxsize=128)
def _load_cached(candidates: tuple, size: int) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    for name in candidates:
        path = find_font_path(name)
        if path is None:
            continue
        try:
            return ImageFont.truetype(path, size)
        except OSError as exc:
            logger.debug("Skipping unreadable font %s: %s", path, exc)
    logger.debug("No candidate font found, using Pillow's default at %dpx", size)
    return ImageFont.load_default(size)


def load_font(size: float, candidates: Optional[Sequence[str]] = None) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
    """Load the first available candidate font at ``size`` pixels."""
    return _load_cached(tuple(font_candidates(candidates)), max(1, int(round(size))))
