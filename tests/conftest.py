from __future__ import annotations

import io
from pathlib import Path
import sys
from types import SimpleNamespace
from typing import Any

import pytest
import requests
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class FakeHttpResponse:
    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"",
        content_type: str | None = None,
        reason: str = "OK",
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.reason = reason
        self.headers = {"Content-Type": content_type} if content_type else {}

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(response=self)


class _FakeModels:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.content_response: Any = None
        self.images_response: Any = None
        self.video_operation: Any = None
        self.error: Exception | None = None

    def _record(self, name: str, kwargs: dict[str, Any]) -> None:
        self.calls.append((name, kwargs))
        if self.error is not None:
            raise self.error

    def generate_content(self, **kwargs: Any) -> Any:
        self._record("generate_content", kwargs)
        return self.content_response

    def generate_images(self, **kwargs: Any) -> Any:
        self._record("generate_images", kwargs)
        return self.images_response

    def generate_videos(self, **kwargs: Any) -> Any:
        self._record("generate_videos", kwargs)
        return self.video_operation


class _FakeOperations:
    def __init__(self) -> None:
        self.results: list[Any] = []
        self.calls = 0

    def get(self, operation: Any) -> Any:
        self.calls += 1
        item = self.results.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeGenaiClient:
    def __init__(self) -> None:
        self.models = _FakeModels()
        self.operations = _FakeOperations()


def pending_operation(name: str = "operations/veo-1") -> SimpleNamespace:
    return SimpleNamespace(name=name, done=False, response=None, error=None)


def finished_operation(uri: str | None = "https://example.test/v1/files/abc:download?alt=media") -> SimpleNamespace:
    videos = [SimpleNamespace(video=SimpleNamespace(uri=uri))] if uri else []
    return SimpleNamespace(
        name="operations/veo-1",
        done=True,
        response=SimpleNamespace(generated_videos=videos),
        error=None,
    )


def _image_bytes(fmt: str) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), (200, 40, 40)).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture()
def png_bytes() -> bytes:
    return _image_bytes("PNG")


@pytest.fixture()
def jpeg_bytes() -> bytes:
    return _image_bytes("JPEG")


@pytest.fixture()
def png_file(tmp_path: Path, png_bytes: bytes) -> Path:
    path = tmp_path / "source.png"
    path.write_bytes(png_bytes)
    return path


@pytest.fixture()
def fake_genai() -> FakeGenaiClient:
    return FakeGenaiClient()


@pytest.fixture()
def http_response():
    return FakeHttpResponse


@pytest.fixture()
def operations() -> SimpleNamespace:
    return SimpleNamespace(pending=pending_operation, finished=finished_operation)
