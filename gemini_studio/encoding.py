"""Turn user-supplied files and remote URLs into transmittable image payloads."""

from __future__ import annotations

import base64
import binascii
import io
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

import requests
from PIL import Image, UnidentifiedImageError

from .errors import DecodeError, FetchError

__all__ = ["EncodedImage", "from_file", "from_url", "decode_data_uri"]

logger = logging.getLogger("gemini_studio.encoding")

_DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class EncodedImage:
    """Base64 image payload plus its MIME type."""

    payload: str
    mime_type: str

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> "EncodedImage":
        return cls(payload=base64.b64encode(data).decode("ascii"), mime_type=mime_type)

    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.payload)

    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.payload}"


def _sniff_mime(data: bytes) -> str | None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return None
    if not fmt:
        return None
    return Image.MIME.get(fmt.upper())


def _content_type(response: requests.Response) -> str | None:
    raw = response.headers.get("Content-Type") or ""
    value = raw.split(";", 1)[0].strip().lower()
    return value or None


def from_file(path: Path | str) -> EncodedImage:
    """Read a local image file.

    The MIME type is guessed from the file name first and sniffed from the
    bytes when the name says nothing useful.
    """

    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise DecodeError(f"Could not read image file {path}") from exc

    mime_type, _ = mimetypes.guess_type(path.name)
    if not mime_type or not mime_type.startswith("image/"):
        mime_type = _sniff_mime(data)
    if not mime_type:
        raise DecodeError(f"{path.name} is not a recognised image file")
    return EncodedImage.from_bytes(data, mime_type)


def from_url(url: str, *, timeout: float = _DEFAULT_TIMEOUT) -> EncodedImage:
    """Fetch a remote image once and encode its body."""

    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise FetchError(f"Failed to fetch image: {exc}") from exc

    if not response.ok:
        raise FetchError(
            f"Failed to fetch image: {response.status_code} {response.reason}",
            status_code=response.status_code,
        )

    data = response.content
    if not data:
        raise DecodeError(f"Empty response body from {url}")

    sniffed = _sniff_mime(data)
    if sniffed is None:
        raise DecodeError(f"Response from {url} is not image data")
    mime_type = _content_type(response)
    if not mime_type or not mime_type.startswith("image/"):
        logger.debug("Content-Type %r for %s, using sniffed %s", mime_type, url, sniffed)
        mime_type = sniffed
    return EncodedImage.from_bytes(data, mime_type)


def decode_data_uri(uri: str) -> tuple[bytes, str]:
    """Split a ``data:<mime>;base64,<payload>`` URI back into bytes and MIME type."""

    if not uri.startswith("data:"):
        raise DecodeError("Not a data URI")
    header, sep, payload = uri[5:].partition(",")
    if not sep:
        raise DecodeError("Malformed data URI")
    mime_type, _, encoding = header.partition(";")
    if encoding != "base64":
        raise DecodeError("Only base64 data URIs are supported")
    try:
        data = base64.b64decode(payload, validate=True)
    except (ValueError, binascii.Error) as exc:
        raise DecodeError("Invalid base64 payload in data URI") from exc
    return data, mime_type
