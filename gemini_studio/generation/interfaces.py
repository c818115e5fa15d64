from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Union

from gemini_studio.encoding import EncodedImage

ProgressCallback = Callable[[str], None]


@dataclass(frozen=True)
class EditRequest:
    prompt: str
    image: EncodedImage


@dataclass(frozen=True)
class ImageGenRequest:
    prompt: str


@dataclass(frozen=True)
class VideoGenRequest:
    prompt: str
    image: EncodedImage


GenerationRequest = Union[EditRequest, ImageGenRequest, VideoGenRequest]


@dataclass(frozen=True)
class ImageResult:
    uri: str
    mime_type: str


@dataclass(frozen=True)
class VideoResult:
    uri: str
    mime_type: str


GenerationResult = Union[ImageResult, VideoResult]


class GenerationClientProtocol(Protocol):
    def edit_image(self, prompt: str, image: EncodedImage, *, api_key: Optional[str]) -> ImageResult:
        """Apply a text instruction to an image."""

    def generate_image(self, prompt: str, *, api_key: Optional[str]) -> ImageResult:
        """Create one image from text."""

    def generate_video(
        self,
        prompt: str,
        image: EncodedImage,
        *,
        api_key: Optional[str],
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> VideoResult:
        """Animate an image; blocks until the remote operation finishes."""

    def release(self, uri: str) -> None:
        """Drop session media behind a result URI."""
