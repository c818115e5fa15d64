from __future__ import annotations

import threading
from pathlib import Path
from unittest.mock import patch

import pytest
from google.genai import errors as genai_errors

from gemini_studio.credentials import EnvironmentCredentialProvider
from gemini_studio.encoding import EncodedImage
from gemini_studio.errors import GenerationCancelled, GenerationFailed
from gemini_studio.generation.interfaces import ImageResult, VideoResult
from gemini_studio.panels import (
    MSG_EDIT_INPUT,
    MSG_EDIT_LOAD_FAILED,
    MSG_GENERATE_FAILED,
    MSG_GENERATE_INPUT,
    MSG_KEY_DIALOG_FAILED,
    MSG_KEY_INVALID,
    MSG_KEY_REQUIRED,
    MSG_KEY_UNAVAILABLE,
    MSG_LOAD_FILE_FAILED,
    MSG_VIDEO_CANCELLED,
    MSG_VIDEO_FAILED,
    MSG_VIDEO_INPUT,
    ImageEditorPanel,
    ImageGeneratorPanel,
    VideoGeneratorPanel,
)


class _Credentials:
    def __init__(self, key: str | None = "test-key", select_error: Exception | None = None) -> None:
        self.key = key
        self.select_error = select_error
        self.selected = 0

    def has_credential(self) -> bool:
        return self.key is not None

    def select_credential(self) -> None:
        self.selected += 1
        if self.select_error is not None:
            raise self.select_error
        self.key = self.key or "picked-key"

    def current_key(self) -> str | None:
        return self.key


class _StubClient:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str | None]] = []
        self.error: Exception | None = None
        self.released: list[str] = []
        self.video_progress: list[str] = []
        self.block: threading.Event | None = None
        self.started = threading.Event()

    def _enter(self, name: str, prompt: str, api_key: str | None) -> None:
        self.calls.append((name, prompt, api_key))
        self.started.set()
        if self.block is not None:
            self.block.wait(5)
        if self.error is not None:
            raise self.error

    def edit_image(self, prompt, image, *, api_key):
        self._enter("edit", prompt, api_key)
        return ImageResult(uri=EncodedImage.from_bytes(b"edited", "image/png").data_uri(), mime_type="image/png")

    def generate_image(self, prompt, *, api_key):
        self._enter("generate", prompt, api_key)
        return ImageResult(uri=EncodedImage.from_bytes(b"new", "image/jpeg").data_uri(), mime_type="image/jpeg")

    def generate_video(self, prompt, image, *, api_key, on_progress=None, cancel=None):
        for message in self.video_progress:
            on_progress(message)
        self.calls.append(("video", prompt, api_key))
        self.started.set()
        if self.block is not None:
            cancel.wait(5)
            if cancel.is_set():
                raise GenerationCancelled("cancelled")
        if self.error is not None:
            raise self.error
        return VideoResult(uri=f"file:///tmp/video-{len(self.calls)}.mp4", mime_type="video/mp4")

    def release(self, uri: str) -> None:
        self.released.append(uri)


def _not_found_error() -> genai_errors.ClientError:
    return genai_errors.ClientError(
        404,
        {"error": {"code": 404, "message": "Requested entity was not found.", "status": "NOT_FOUND"}},
    )


@pytest.fixture()
def stub() -> _StubClient:
    return _StubClient()


def test_edit_scenario_add_a_hat(stub, png_file: Path) -> None:
    panel = ImageEditorPanel(stub, _Credentials())
    assert panel.load_file(png_file)

    assert panel.submit("add a hat") is True

    assert panel.state.result.startswith("data:image/")
    assert panel.state.error is None
    assert panel.state.is_loading is False
    assert stub.calls == [("edit", "add a hat", "test-key")]


def test_edit_requires_prompt_and_image(stub) -> None:
    panel = ImageEditorPanel(stub, _Credentials())

    assert panel.submit("add a hat") is False
    assert panel.state.error == MSG_EDIT_INPUT
    assert stub.calls == []


def test_edit_mount_failure_sets_message(stub, http_response) -> None:
    panel = ImageEditorPanel(stub, _Credentials())

    with patch("requests.get", return_value=http_response(status_code=500, reason="Server Error")):
        assert panel.mount("https://example.test/cat.jpeg") is False

    assert panel.state.error == MSG_EDIT_LOAD_FAILED
    assert panel.state.image is None
    assert panel.state.is_loading is False


def test_edit_mount_loads_initial_image(stub, http_response, png_bytes) -> None:
    panel = ImageEditorPanel(stub, _Credentials())

    with patch("requests.get", return_value=http_response(content=png_bytes, content_type="image/png")):
        assert panel.mount("https://example.test/cat.png")

    assert panel.state.image.mime_type == "image/png"
    assert panel.state.source_uri == "https://example.test/cat.png"


def test_loading_a_new_image_clears_previous_edit(stub, png_file: Path) -> None:
    panel = ImageEditorPanel(stub, _Credentials())
    panel.load_file(png_file)
    panel.submit("add a hat")

    panel.load_file(png_file)

    assert panel.state.result is None


def test_unreadable_file_sets_message(stub, tmp_path: Path) -> None:
    panel = ImageEditorPanel(stub, _Credentials())

    assert panel.load_file(tmp_path / "missing.png") is False
    assert panel.state.error == MSG_LOAD_FILE_FAILED


def test_generate_with_empty_prompt_never_calls_service(stub) -> None:
    panel = ImageGeneratorPanel(stub, _Credentials())

    assert panel.submit("") is False

    assert panel.state.error == MSG_GENERATE_INPUT
    assert panel.state.error.startswith("Please enter a prompt")
    assert stub.calls == []


def test_generate_failure_is_reported_not_raised(stub) -> None:
    stub.error = GenerationFailed("Image generation failed")
    panel = ImageGeneratorPanel(stub, _Credentials())

    assert panel.submit("a futuristic city") is False

    assert panel.state.error == MSG_GENERATE_FAILED
    assert panel.state.result is None
    assert panel.state.is_loading is False


def test_second_submit_while_busy_is_refused(stub) -> None:
    stub.block = threading.Event()
    panel = ImageGeneratorPanel(stub, _Credentials())
    worker = threading.Thread(target=panel.submit, args=("first",))
    worker.start()
    assert stub.started.wait(5)

    assert panel.busy
    assert panel.submit("second") is False
    assert panel.state.error is None
    assert panel.state.prompt == "first"

    stub.block.set()
    worker.join(5)
    assert [prompt for _, prompt, _ in stub.calls] == ["first"]
    assert not panel.busy
    assert panel.state.result is not None
    assert panel.state.error is None
    assert panel.state.prompt == "first"


def test_file_load_while_busy_keeps_current_image(stub, png_file: Path, tmp_path: Path, jpeg_bytes: bytes) -> None:
    stub.block = threading.Event()
    panel = ImageEditorPanel(stub, _Credentials())
    panel.load_file(png_file)
    worker = threading.Thread(target=panel.submit, args=("add a hat",))
    worker.start()
    assert stub.started.wait(5)
    other = tmp_path / "other.jpg"
    other.write_bytes(jpeg_bytes)

    assert panel.load_file(other) is False

    stub.block.set()
    worker.join(5)
    assert panel.state.image.mime_type == "image/png"
    assert panel.state.result is not None
    assert panel.state.error is None


def test_video_requires_selected_credential(stub, png_file: Path) -> None:
    panel = VideoGeneratorPanel(stub, _Credentials(key=None))
    panel.load_file(png_file)

    assert panel.submit("wave") is False

    assert panel.state.error == MSG_KEY_REQUIRED
    assert stub.calls == []


def test_video_requires_prompt_and_image(stub) -> None:
    panel = VideoGeneratorPanel(stub, _Credentials())

    assert panel.submit("wave") is False
    assert panel.state.error == MSG_VIDEO_INPUT


def test_video_invalid_credential_resets_selection(stub, png_file: Path) -> None:
    stub.error = _not_found_error()
    panel = VideoGeneratorPanel(stub, _Credentials())
    panel.load_file(png_file)

    assert panel.submit("wave") is False

    assert panel.credential_selected is False
    assert panel.state.error == MSG_KEY_INVALID


def test_video_generic_failure_keeps_credential(stub, png_file: Path) -> None:
    stub.error = RuntimeError("boom")
    panel = VideoGeneratorPanel(stub, _Credentials())
    panel.load_file(png_file)

    assert panel.submit("wave") is False

    assert panel.credential_selected is True
    assert panel.state.error == MSG_VIDEO_FAILED


def test_video_progress_is_mirrored_then_cleared(stub, png_file: Path) -> None:
    stub.video_progress = ["Starting", "Finalizing"]
    seen: list[str] = []
    panel = VideoGeneratorPanel(stub, _Credentials())
    panel.progress_listener = seen.append
    panel.load_file(png_file)

    assert panel.submit("wave")

    assert seen == ["Starting", "Finalizing"]
    assert panel.state.progress_message == ""
    assert panel.state.result == "file:///tmp/video-1.mp4"


def test_new_video_releases_previous_result(stub, png_file: Path) -> None:
    panel = VideoGeneratorPanel(stub, _Credentials())
    panel.load_file(png_file)
    panel.submit("wave")
    first = panel.state.result

    panel.submit("wave again")

    assert stub.released == [first]
    assert panel.state.result != first


def test_video_cancel_stops_in_flight_job(stub, png_file: Path) -> None:
    stub.block = threading.Event()
    panel = VideoGeneratorPanel(stub, _Credentials())
    panel.load_file(png_file)
    assert panel.cancel() is False

    worker = threading.Thread(target=panel.submit, args=("wave",))
    worker.start()
    assert stub.started.wait(5)
    assert panel.cancel() is True
    worker.join(5)

    assert panel.state.error == MSG_VIDEO_CANCELLED
    assert panel.state.result is None
    assert not panel.busy


def test_select_credential_without_capability(stub) -> None:
    panel = VideoGeneratorPanel(stub, EnvironmentCredentialProvider(env_vars=("STUDIO_TEST_UNSET_KEY",)))

    assert panel.select_credential() is False
    assert panel.state.error == MSG_KEY_UNAVAILABLE


def test_select_credential_dialog_failure(stub) -> None:
    panel = VideoGeneratorPanel(stub, _Credentials(key=None, select_error=RuntimeError("closed")))

    assert panel.select_credential() is False
    assert panel.state.error == MSG_KEY_DIALOG_FAILED


def test_select_credential_assumes_success(stub) -> None:
    credentials = _Credentials(key=None)
    panel = VideoGeneratorPanel(stub, credentials)
    panel.state.error = MSG_KEY_REQUIRED

    assert panel.select_credential() is True

    assert panel.credential_selected is True
    assert panel.state.error is None
    assert credentials.selected == 1


def test_selection_stands_when_host_flag_lags(stub, png_file: Path) -> None:
    class _LaggingCredentials(_Credentials):
        def has_credential(self) -> bool:
            return False

        def select_credential(self) -> None:
            self.selected += 1

    credentials = _LaggingCredentials(key="picked-key")
    panel = VideoGeneratorPanel(stub, credentials)
    panel.load_file(png_file)

    assert panel.select_credential() is True
    assert panel.submit("wave") is True

    assert panel.credential_selected is True
    assert panel.state.error is None
    assert stub.calls == [("video", "wave", "picked-key")]


def test_invalid_key_after_selection_requires_new_selection(stub, png_file: Path) -> None:
    class _LaggingCredentials(_Credentials):
        def has_credential(self) -> bool:
            return False

    panel = VideoGeneratorPanel(stub, _LaggingCredentials())
    panel.load_file(png_file)
    panel.select_credential()
    stub.error = _not_found_error()
    panel.submit("wave")

    assert panel.submit("wave") is False

    assert panel.state.error == MSG_KEY_REQUIRED
    assert len(stub.calls) == 1


def test_panels_keep_independent_state(stub, png_file: Path) -> None:
    editor = ImageEditorPanel(stub, _Credentials())
    generator = ImageGeneratorPanel(stub, _Credentials())
    editor.load_file(png_file)

    generator.submit("")

    assert generator.state.error == MSG_GENERATE_INPUT
    assert editor.state.error is None
    assert generator.state.image is None
