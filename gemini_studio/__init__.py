"""Gemini Studio: image editing, image generation and image-to-video panels."""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - type checking helper
    from .config import StudioConfig, load_config
    from .encoding import EncodedImage
    from .studio import Studio, Tab

__all__ = ["EncodedImage", "Studio", "StudioConfig", "Tab", "load_config"]

_EXPORTS = {
    "StudioConfig": ".config",
    "load_config": ".config",
    "EncodedImage": ".encoding",
    "Studio": ".studio",
    "Tab": ".studio",
}


def __getattr__(name: str) -> Any:  # pragma: no cover - dispatch helper
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(name)
    value = getattr(import_module(module_name, __name__), name)
    globals()[name] = value
    return value
