"""Submit a long-running video job and poll it until it finishes.

The service marks termination with ``operation.done`` alone. A finished
operation without a download link is a separate failure that
:meth:`VideoOperationPoller.complete` reports as :class:`NoDownloadLink`.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Optional

import requests
from google.genai import types

from gemini_studio.config import VideoConfig
from gemini_studio.errors import (
    GenerationCancelled,
    NoDownloadLink,
    PollTimeout,
    VideoDownloadFailed,
)

from .interfaces import ProgressCallback, VideoGenRequest

logger = logging.getLogger("gemini_studio.poller")

MSG_STARTING = "Starting video generation... This can take a few minutes."
MSG_SUBMITTED = "Your request is being processed. Hang tight!"
MSG_STILL_WORKING = "Still working on it... Great things take time!"
MSG_CHECKING = "Checking status... Please wait."
MSG_FINALIZING = "Finalizing video... Almost there!"

DEFAULT_VIDEO_MIME = "video/mp4"


class PollerState(str, Enum):
    IDLE = "idle"
    SUBMITTED = "submitted"
    POLLING = "polling"
    DONE = "done"


def _sleep(seconds: float) -> bool:
    time.sleep(seconds)
    return False


def extract_download_link(operation: Any) -> Optional[str]:
    response = getattr(operation, "response", None)
    videos = getattr(response, "generated_videos", None) or []
    if not videos:
        return None
    video = getattr(videos[0], "video", None)
    uri = getattr(video, "uri", None)
    return uri or None


class VideoOperationPoller:
    """Drives one video operation from submission to downloaded bytes.

    Built per request: it holds the SDK client and the key for that request
    only. Polling is strictly sequential, one status query per interval.
    """

    def __init__(
        self,
        client: Any,
        model: str,
        config: VideoConfig,
        *,
        api_key: Optional[str],
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
        wait: Optional[Callable[[float], bool]] = None,
        download_timeout: float = 300.0,
    ) -> None:
        self.client = client
        self.model = model
        self.config = config
        self.api_key = api_key
        self.cancel = cancel
        self.download_timeout = download_timeout
        self._on_progress = on_progress
        if wait is not None:
            self._wait = wait
        elif cancel is not None:
            self._wait = cancel.wait
        else:
            self._wait = _sleep
        self.state = PollerState.IDLE
        self.polls = 0
        self.failed_polls = 0

    def _emit(self, message: str) -> None:
        if self._on_progress is not None:
            self._on_progress(message)

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def submit(self, request: VideoGenRequest) -> Any:
        if self.state is not PollerState.IDLE:
            raise RuntimeError("Video operation already submitted")
        if self._cancelled():
            raise GenerationCancelled("Video generation was cancelled before submission")

        self._emit(MSG_STARTING)
        operation = self.client.models.generate_videos(
            model=self.model,
            prompt=request.prompt,
            image=types.Image(
                image_bytes=request.image.raw_bytes(),
                mime_type=request.image.mime_type,
            ),
            config=types.GenerateVideosConfig(
                number_of_videos=self.config.number_of_videos,
                resolution=self.config.resolution,
                aspect_ratio=self.config.aspect_ratio,
            ),
        )
        self.state = PollerState.SUBMITTED
        logger.info("Submitted video operation %s", getattr(operation, "name", "<unnamed>"))
        self._emit(MSG_SUBMITTED)
        return operation

    def poll(self, operation: Any) -> Any:
        if self.state is PollerState.IDLE:
            raise RuntimeError("Submit the operation before polling it")
        self.state = PollerState.POLLING
        max_polls = self.config.max_polls
        while not getattr(operation, "done", False):
            if max_polls is not None and self.polls >= max_polls:
                raise PollTimeout(f"Video operation still running after {self.polls} status checks")
            if self._wait(self.config.poll_interval_s) or self._cancelled():
                raise GenerationCancelled("Video generation was cancelled")
            self.polls += 1
            try:
                operation = self.client.operations.get(operation)
            except Exception as exc:
                # The service can briefly report a fresh operation as missing.
                self.failed_polls += 1
                logger.warning("Polling error (attempt %d): %s", self.polls, exc)
                self._emit(MSG_CHECKING)
                continue
            self._emit(MSG_STILL_WORKING)
        self.state = PollerState.DONE
        logger.info("Video operation finished after %d status checks", self.polls)
        return operation

    def complete(self, operation: Any) -> tuple[bytes, str]:
        self._emit(MSG_FINALIZING)
        link = extract_download_link(operation)
        if not link:
            error = getattr(operation, "error", None)
            detail = f" ({error})" if error else ""
            raise NoDownloadLink(
                "Video generation completed, but no download link was found." + detail
            )
        try:
            response = requests.get(
                link,
                params={"key": self.api_key} if self.api_key else None,
                timeout=self.download_timeout,
            )
        except requests.RequestException as exc:
            raise VideoDownloadFailed("Failed to download the generated video.") from exc
        if not response.ok:
            raise VideoDownloadFailed(
                "Failed to download the generated video.",
                status_code=response.status_code,
            )
        content_type = (response.headers.get("Content-Type") or "").split(";", 1)[0].strip()
        if not content_type.startswith("video/"):
            content_type = DEFAULT_VIDEO_MIME
        return response.content, content_type

    def run(self, request: VideoGenRequest) -> tuple[bytes, str]:
        operation = self.submit(request)
        operation = self.poll(operation)
        return self.complete(operation)


__all__ = [
    "DEFAULT_VIDEO_MIME",
    "MSG_CHECKING",
    "MSG_FINALIZING",
    "MSG_STARTING",
    "MSG_STILL_WORKING",
    "MSG_SUBMITTED",
    "PollerState",
    "VideoOperationPoller",
    "extract_download_link",
]
