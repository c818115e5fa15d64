from __future__ import annotations

import base64
import binascii
import logging
import threading
from typing import Any, Callable, Optional

from google import genai
from google.genai import types

from gemini_studio.config import StudioConfig
from gemini_studio.encoding import EncodedImage
from gemini_studio.errors import GenerationFailed, NoImageInResponse
from gemini_studio.media import SessionMediaStore

from .interfaces import (
    EditRequest,
    GenerationClientProtocol,
    GenerationRequest,
    GenerationResult,
    ImageGenRequest,
    ImageResult,
    ProgressCallback,
    VideoGenRequest,
    VideoResult,
)
from .poller import VideoOperationPoller

logger = logging.getLogger("gemini_studio.client")

ClientFactory = Callable[[Optional[str]], Any]


def default_client_factory(api_key: Optional[str]) -> genai.Client:
    return genai.Client(api_key=api_key)


def _coerce_bytes(blob: Any) -> bytes | None:
    if isinstance(blob, (bytes, bytearray)):
        return bytes(blob)
    if isinstance(blob, str):
        try:
            return base64.b64decode(blob, validate=True)
        except (ValueError, binascii.Error):
            return None
    return None


def _first_inline_image(response: Any) -> tuple[bytes, str] | None:
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is None:
                continue
            blob = _coerce_bytes(getattr(inline, "data", None))
            if blob:
                return blob, getattr(inline, "mime_type", None) or "image/png"
    return None


class GenerationClient(GenerationClientProtocol):
    """Facade over the three Gemini capabilities the studio exposes.

    Keeps no credential state: every call gets the key explicitly and builds
    its own SDK client through ``client_factory``.
    """

    def __init__(
        self,
        config: StudioConfig,
        media: SessionMediaStore,
        client_factory: ClientFactory = default_client_factory,
        wait: Optional[Callable[[float], bool]] = None,
    ) -> None:
        self.config = config
        self.media = media
        self._client_factory = client_factory
        self._wait = wait

    def edit_image(self, prompt: str, image: EncodedImage, *, api_key: Optional[str]) -> ImageResult:
        client = self._client_factory(api_key)
        logger.info("Editing image with %s", self.config.models.edit)
        response = client.models.generate_content(
            model=self.config.models.edit,
            contents=[
                types.Part.from_bytes(data=image.raw_bytes(), mime_type=image.mime_type),
                types.Part.from_text(text=prompt),
            ],
            config=types.GenerateContentConfig(response_modalities=[types.Modality.IMAGE]),
        )
        found = _first_inline_image(response)
        if found is None:
            raise NoImageInResponse("No image found in response")
        blob, mime_type = found
        return ImageResult(uri=EncodedImage.from_bytes(blob, mime_type).data_uri(), mime_type=mime_type)

    def generate_image(self, prompt: str, *, api_key: Optional[str]) -> ImageResult:
        client = self._client_factory(api_key)
        cfg = self.config.image
        logger.info("Generating image with %s", self.config.models.image)
        response = client.models.generate_images(
            model=self.config.models.image,
            prompt=prompt,
            config=types.GenerateImagesConfig(
                number_of_images=cfg.number_of_images,
                output_mime_type=cfg.output_mime_type,
                aspect_ratio=cfg.aspect_ratio,
            ),
        )
        for generated in getattr(response, "generated_images", None) or []:
            image = getattr(generated, "image", None)
            blob = _coerce_bytes(getattr(image, "image_bytes", None))
            if not blob:
                continue
            mime_type = getattr(image, "mime_type", None) or cfg.output_mime_type
            return ImageResult(uri=EncodedImage.from_bytes(blob, mime_type).data_uri(), mime_type=mime_type)
        raise GenerationFailed("Image generation failed")

    def generate_video(
        self,
        prompt: str,
        image: EncodedImage,
        *,
        api_key: Optional[str],
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> VideoResult:
        poller = VideoOperationPoller(
            self._client_factory(api_key),
            self.config.models.video,
            self.config.video,
            api_key=api_key,
            on_progress=on_progress,
            cancel=cancel,
            wait=self._wait,
            download_timeout=self.config.http.download_timeout,
        )
        data, mime_type = poller.run(VideoGenRequest(prompt=prompt, image=image))
        return VideoResult(uri=self.media.put(data, mime_type), mime_type=mime_type)

    def execute(
        self,
        request: GenerationRequest,
        *,
        api_key: Optional[str],
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> GenerationResult:
        if isinstance(request, EditRequest):
            return self.edit_image(request.prompt, request.image, api_key=api_key)
        if isinstance(request, ImageGenRequest):
            return self.generate_image(request.prompt, api_key=api_key)
        if isinstance(request, VideoGenRequest):
            return self.generate_video(
                request.prompt,
                request.image,
                api_key=api_key,
                on_progress=on_progress,
                cancel=cancel,
            )
        raise TypeError(f"Unsupported request type: {type(request).__name__}")

    def release(self, uri: str) -> None:
        self.media.release(uri)


__all__ = ["ClientFactory", "GenerationClient", "default_client_factory"]
