"""Per-capability UI state holders.

Each panel owns its prompt, image, result, loading flag and error message.
Failures never escape a panel: they are logged and turned into the text the
rendering surface shows.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional

from . import encoding
from .credentials import CredentialProvider
from .encoding import EncodedImage
from .errors import CapabilityUnavailable, ErrorKind, PanelBusy, classify_error
from .generation.interfaces import GenerationClientProtocol, ProgressCallback

logger = logging.getLogger("gemini_studio.panels")

MSG_BUSY = "A request is already in progress."
MSG_LOAD_FILE_FAILED = "Failed to process image file."

MSG_EDIT_INPUT = "Please enter a prompt and make sure an image is loaded."
MSG_EDIT_FAILED = "Failed to edit image. Please try again."
MSG_EDIT_LOAD_FAILED = "Failed to load initial image. Please try uploading one."

MSG_GENERATE_INPUT = "Please enter a prompt to generate an image."
MSG_GENERATE_FAILED = "Failed to generate image. Please try again."

MSG_VIDEO_INPUT = "Please enter a prompt and select an image."
MSG_VIDEO_FAILED = "Failed to generate video. Please try again."
MSG_VIDEO_LOAD_FAILED = "Failed to load initial image."
MSG_VIDEO_CANCELLED = "Video generation was cancelled."
MSG_KEY_REQUIRED = "Please select an API key to generate videos."
MSG_KEY_INVALID = "Your API Key is invalid. Please select a valid key and try again."
MSG_KEY_UNAVAILABLE = "API key selection is not available in this environment."
MSG_KEY_DIALOG_FAILED = "Could not open the API key selection dialog."


@dataclass
class PanelState:
    prompt: str = ""
    image: Optional[EncodedImage] = None
    source_uri: Optional[str] = None
    result: Optional[str] = None
    is_loading: bool = False
    error: Optional[str] = None
    progress_message: str = ""


class Panel:
    """Shared plumbing: the in-flight guard and the failure boundary."""

    def __init__(
        self,
        client: GenerationClientProtocol,
        credentials: CredentialProvider,
        *,
        fetch_timeout: float = 30.0,
    ) -> None:
        self.client = client
        self.credentials = credentials
        self.fetch_timeout = fetch_timeout
        self.state = PanelState()
        self._busy = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def set_prompt(self, prompt: str) -> None:
        self.state.prompt = prompt

    def _has_prompt(self) -> bool:
        return bool(self.state.prompt and self.state.prompt.strip())

    @contextmanager
    def _in_flight(self) -> Iterator[None]:
        if not self._busy.acquire(blocking=False):
            raise PanelBusy(MSG_BUSY)
        self.state.is_loading = True
        try:
            yield
        finally:
            self.state.is_loading = False
            self._busy.release()

    def _guarded(
        self,
        action: Callable[[], None],
        on_error: Callable[[Exception], str],
        *,
        prompt: Optional[str] = None,
        input_error: Optional[Callable[[], Optional[str]]] = None,
    ) -> bool:
        """Run ``action`` unless another request owns the panel.

        A refused request leaves the state of the one in flight untouched.
        The prompt is only replaced and validated once the guard is held.
        """
        try:
            with self._in_flight():
                if prompt is not None:
                    self.set_prompt(prompt)
                message = input_error() if input_error is not None else None
                if message is not None:
                    self.state.error = message
                    return False
                self.state.error = None
                action()
        except PanelBusy as exc:
            logger.info("%s refused a request: %s", type(self).__name__, exc)
            return False
        except Exception as exc:
            logger.error("%s failed: %s", type(self).__name__, exc, exc_info=True)
            self.state.error = on_error(exc)
            return False
        return True


class ImageSourcePanel(Panel):
    """A panel that works on a loaded source image."""

    load_failed_message = MSG_LOAD_FILE_FAILED

    def _replace_image(self, image: EncodedImage, source_uri: str) -> None:
        self.state.image = image
        self.state.source_uri = source_uri

    def mount(self, initial_image_url: str) -> bool:
        def _load() -> None:
            image = encoding.from_url(initial_image_url, timeout=self.fetch_timeout)
            self._replace_image(image, initial_image_url)

        return self._guarded(_load, lambda exc: self.load_failed_message)

    def load_file(self, path: Path | str) -> bool:
        path = Path(path)

        def _load() -> None:
            image = encoding.from_file(path)
            self._replace_image(image, path.resolve().as_uri())

        return self._guarded(_load, lambda exc: MSG_LOAD_FILE_FAILED)


class ImageEditorPanel(ImageSourcePanel):
    load_failed_message = MSG_EDIT_LOAD_FAILED

    def _replace_image(self, image: EncodedImage, source_uri: str) -> None:
        super()._replace_image(image, source_uri)
        self.state.result = None

    def _input_error(self) -> Optional[str]:
        if not self._has_prompt() or self.state.image is None:
            return MSG_EDIT_INPUT
        return None

    def submit(self, prompt: Optional[str] = None) -> bool:
        def _edit() -> None:
            self.state.result = None
            result = self.client.edit_image(
                self.state.prompt,
                self.state.image,
                api_key=self.credentials.current_key(),
            )
            self.state.result = result.uri

        return self._guarded(
            _edit,
            lambda exc: MSG_EDIT_FAILED,
            prompt=prompt,
            input_error=self._input_error,
        )


class ImageGeneratorPanel(Panel):
    def _input_error(self) -> Optional[str]:
        return None if self._has_prompt() else MSG_GENERATE_INPUT

    def submit(self, prompt: Optional[str] = None) -> bool:
        def _generate() -> None:
            self.state.result = None
            result = self.client.generate_image(self.state.prompt, api_key=self.credentials.current_key())
            self.state.result = result.uri

        return self._guarded(
            _generate,
            lambda exc: MSG_GENERATE_FAILED,
            prompt=prompt,
            input_error=self._input_error,
        )


class VideoGeneratorPanel(ImageSourcePanel):
    load_failed_message = MSG_VIDEO_LOAD_FAILED

    def __init__(
        self,
        client: GenerationClientProtocol,
        credentials: CredentialProvider,
        *,
        fetch_timeout: float = 30.0,
    ) -> None:
        super().__init__(client, credentials, fetch_timeout=fetch_timeout)
        self.credential_selected = False
        self.progress_listener: Optional[ProgressCallback] = None
        self._cancel: Optional[threading.Event] = None

    def check_credential(self) -> bool:
        try:
            self.credential_selected = bool(self.credentials.has_credential())
        except Exception as exc:
            logger.error("Error checking for API key: %s", exc)
            self.credential_selected = False
        return self.credential_selected

    def select_credential(self) -> bool:
        try:
            self.credentials.select_credential()
        except CapabilityUnavailable:
            self.state.error = MSG_KEY_UNAVAILABLE
            return False
        except Exception as exc:
            logger.error("Error opening API key selection: %s", exc)
            self.state.error = MSG_KEY_DIALOG_FAILED
            return False
        # The selection prompt gives no confirmation; assume it worked.
        self.credential_selected = True
        self.state.error = None
        return True

    def mount(self, initial_image_url: str) -> bool:
        self.check_credential()
        return super().mount(initial_image_url)

    def _on_progress(self, message: str) -> None:
        self.state.progress_message = message
        if self.progress_listener is not None:
            self.progress_listener(message)

    def _failure_message(self, exc: Exception) -> str:
        kind = classify_error(exc)
        if kind is ErrorKind.INVALID_CREDENTIAL:
            self.credential_selected = False
            return MSG_KEY_INVALID
        if kind is ErrorKind.CANCELLED:
            return MSG_VIDEO_CANCELLED
        return MSG_VIDEO_FAILED

    def _input_error(self) -> Optional[str]:
        # A fresh query may confirm a key but never revoke an optimistic selection.
        if not self.credential_selected and not self.check_credential():
            return MSG_KEY_REQUIRED
        if not self._has_prompt() or self.state.image is None:
            return MSG_VIDEO_INPUT
        return None

    def submit(self, prompt: Optional[str] = None) -> bool:
        def _generate() -> None:
            previous, self.state.result = self.state.result, None
            if previous:
                self.client.release(previous)
            self._cancel = threading.Event()
            try:
                result = self.client.generate_video(
                    self.state.prompt,
                    self.state.image,
                    api_key=self.credentials.current_key(),
                    on_progress=self._on_progress,
                    cancel=self._cancel,
                )
            finally:
                self._cancel = None
                self.state.progress_message = ""
            self.state.result = result.uri

        return self._guarded(
            _generate,
            self._failure_message,
            prompt=prompt,
            input_error=self._input_error,
        )

    def cancel(self) -> bool:
        """Stop an in-flight video job at its next poll wake-up."""

        event = self._cancel
        if event is None:
            return False
        event.set()
        return True


__all__ = [
    "ImageEditorPanel",
    "ImageGeneratorPanel",
    "ImageSourcePanel",
    "Panel",
    "PanelState",
    "VideoGeneratorPanel",
]
