from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

DEFAULT_INITIAL_IMAGE_URL = (
    "https://storage.googleapis.com/generative-ai-pro-isv-tools/"
    "e6a575a5-481b-4107-883a-493bb35081df.jpeg"
)


@dataclass
class ModelsConfig:
    edit: str = "gemini-2.5-flash-image"
    image: str = "imagen-4.0-generate-001"
    video: str = "veo-3.1-fast-generate-preview"

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "ModelsConfig":
        if not raw:
            return cls()
        return cls(
            edit=str(raw.get("edit", cls.edit)),
            image=str(raw.get("image", cls.image)),
            video=str(raw.get("video", cls.video)),
        )


@dataclass
class ImageConfig:
    number_of_images: int = 1
    aspect_ratio: str = "1:1"
    output_mime_type: str = "image/jpeg"

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "ImageConfig":
        if not raw:
            return cls()
        return cls(
            number_of_images=int(raw.get("number_of_images", 1)),
            aspect_ratio=str(raw.get("aspect_ratio", "1:1")),
            output_mime_type=str(raw.get("output_mime_type", "image/jpeg")),
        )


@dataclass
class VideoConfig:
    number_of_videos: int = 1
    resolution: str = "720p"
    aspect_ratio: str = "16:9"
    poll_interval_s: float = 10.0
    # None keeps polling until the operation reports done.
    max_polls: Optional[int] = None

    def __post_init__(self) -> None:
        if self.poll_interval_s < 0:
            raise ValueError("poll_interval_s must be non-negative")
        if self.max_polls is not None and self.max_polls < 1:
            raise ValueError("max_polls must be at least 1 when set")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "VideoConfig":
        if not raw:
            return cls()
        max_polls = raw.get("max_polls")
        return cls(
            number_of_videos=int(raw.get("number_of_videos", 1)),
            resolution=str(raw.get("resolution", "720p")),
            aspect_ratio=str(raw.get("aspect_ratio", "16:9")),
            poll_interval_s=float(raw.get("poll_interval_s", 10.0)),
            max_polls=None if max_polls is None or max_polls == "" else int(max_polls),
        )


@dataclass
class HttpConfig:
    timeout: float = 30.0
    download_timeout: float = 300.0

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "HttpConfig":
        if not raw:
            return cls()
        return cls(
            timeout=float(raw.get("timeout", 30.0)),
            download_timeout=float(raw.get("download_timeout", 300.0)),
        )


@dataclass
class StudioConfig:
    models: ModelsConfig = field(default_factory=ModelsConfig)
    image: ImageConfig = field(default_factory=ImageConfig)
    video: VideoConfig = field(default_factory=VideoConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    initial_image_url: str = DEFAULT_INITIAL_IMAGE_URL

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "StudioConfig":
        return cls(
            models=ModelsConfig.from_mapping(_section(raw, "models")),
            image=ImageConfig.from_mapping(_section(raw, "image")),
            video=VideoConfig.from_mapping(_section(raw, "video")),
            http=HttpConfig.from_mapping(_section(raw, "http")),
            initial_image_url=str(raw.get("initial_image_url") or DEFAULT_INITIAL_IMAGE_URL),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "models": {"edit": self.models.edit, "image": self.models.image, "video": self.models.video},
            "image": {
                "number_of_images": self.image.number_of_images,
                "aspect_ratio": self.image.aspect_ratio,
                "output_mime_type": self.image.output_mime_type,
            },
            "video": {
                "number_of_videos": self.video.number_of_videos,
                "resolution": self.video.resolution,
                "aspect_ratio": self.video.aspect_ratio,
                "poll_interval_s": self.video.poll_interval_s,
                "max_polls": self.video.max_polls,
            },
            "http": {"timeout": self.http.timeout, "download_timeout": self.http.download_timeout},
            "initial_image_url": self.initial_image_url,
        }


def load_config(path: Optional[Path] = None) -> StudioConfig:
    if path is None:
        return StudioConfig()
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in {".json", ".jsonc"}:
        data = json.loads(_strip_jsonc(text))
    else:
        data = yaml.safe_load(text)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Configuration file must contain a mapping at the top level")
    return StudioConfig.from_dict(data)


def _section(raw: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key, {})
    return dict(value) if isinstance(value, Mapping) else {}


def _strip_jsonc(payload: str) -> str:
    result: list[str] = []
    length = len(payload)
    i = 0
    in_string = False
    escape = False
    while i < length:
        ch = payload[i]
        if in_string:
            result.append(ch)
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            i += 1
            continue

        if ch == '"':
            in_string = True
        elif ch == "/" and i + 1 < length and payload[i + 1] in "/*":
            if payload[i + 1] == "/":
                end = payload.find("\n", i)
                i = length if end == -1 else end
            else:
                end = payload.find("*/", i + 2)
                i = length if end == -1 else end + 2
            continue

        result.append(ch)
        i += 1
    return "".join(result)


__all__ = [
    "DEFAULT_INITIAL_IMAGE_URL",
    "HttpConfig",
    "ImageConfig",
    "ModelsConfig",
    "StudioConfig",
    "VideoConfig",
    "load_config",
]
