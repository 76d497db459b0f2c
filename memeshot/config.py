"""Export settings loaded from config/export.json."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
CONFIG_DIR = os.path.join(_ROOT_DIR, "config")
CONFIG_PATH = os.path.join(CONFIG_DIR, "export.json")

DEFAULT_FONT_CANDIDATES = [
    "arialbd.ttf",
    "Arial Bold.ttf",
    "Arial_Bold.ttf",
    "DejaVuSans-Bold.ttf",
    "LiberationSans-Bold.ttf",
    "FreeSansBold.ttf",
    "arial.ttf",
    "DejaVuSans.ttf",
]


@dataclass(frozen=True)
class ExportSettings:
    trim_tolerance: int = 8
    scale: int = 2
    min_canvas: int = 400
    default_font_size: float = 32.0
    min_font_size: float = 16.0
    line_height: float = 1.2
    bar_padding: float = 12.0
    background_color: str = "#ffffff"
    filename_prefix: str = "meme"
    font_candidates: List[str] = field(default_factory=lambda: list(DEFAULT_FONT_CANDIDATES))
    # None disables the timeout
    capture_timeout: Optional[float] = None
    image_load_timeout: Optional[float] = None


_NUMERIC_FIELDS = {
    "trim_tolerance": int,
    "scale": int,
    "min_canvas": int,
    "default_font_size": float,
    "min_font_size": float,
    "line_height": float,
    "bar_padding": float,
}
_OPTIONAL_FLOAT_FIELDS = ("capture_timeout", "image_load_timeout")
_STRING_FIELDS = ("background_color", "filename_prefix")


def _coerce(name: str, value: Any) -> Any:
    if name in _NUMERIC_FIELDS:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Setting '{name}' must be a number, got {value!r}.")
        return _NUMERIC_FIELDS[name](value)
    if name in _OPTIONAL_FLOAT_FIELDS:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Setting '{name}' must be a number or null, got {value!r}.")
        return None if value <= 0 else float(value)
    if name in _STRING_FIELDS:
        if not isinstance(value, str) or not value:
            raise ValueError(f"Setting '{name}' must be a non-empty string.")
        return value
    if name == "font_candidates":
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValueError("Setting 'font_candidates' must be a list of font file names.")
        return [v.strip() for v in value if v.strip()]
    return value


def settings_from_dict(data: Dict[str, Any], base: Optional[ExportSettings] = None) -> ExportSettings:
    """Build settings from a plain mapping, starting from ``base`` or the defaults.

    Doxygen:
    - @param data: Mapping with any subset of the ExportSettings field names.
    - @param base: Settings to override; defaults are used when omitted.
    - @return: New ExportSettings instance.
    - @throws ValueError: If a known key carries a value of the wrong type.
    """
    known = {f.name for f in fields(ExportSettings)}
    overrides: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown export setting %r", key)
            continue
        overrides[key] = _coerce(key, value)
    settings = replace(base or ExportSettings(), **overrides)
    if not 0 <= settings.trim_tolerance <= 255:
        raise ValueError("Setting 'trim_tolerance' must be within 0..255.")
    if settings.scale < 1:
        raise ValueError("Setting 'scale' must be at least 1.")
    return settings


def load_export_settings(path: Optional[str] = None) -> ExportSettings:
    """Load export settings from JSON; a missing file yields the defaults.

    The path resolves from the argument, then the MEMESHOT_CONFIG environment
    variable, then config/export.json next to the package.
    """
    config_path = path or os.environ.get("MEMESHOT_CONFIG") or CONFIG_PATH
    if not os.path.exists(config_path):
        logger.warning("Export settings not found at %s, using defaults", config_path)
        return ExportSettings()

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Export settings in {config_path} must be a JSON object.")
    logger.debug("Loaded export settings from %s", config_path)
    return settings_from_dict(data)
