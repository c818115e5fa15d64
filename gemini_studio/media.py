from __future__ import annotations

import logging
import mimetypes
import shutil
import tempfile
import uuid
from pathlib import Path

__all__ = ["SessionMediaStore"]

logger = logging.getLogger("gemini_studio.media")


class SessionMediaStore:
    """Session-scoped home for generated media, addressed by ``file://`` URIs.

    Nothing outlives :meth:`close`; the backing directory is a temporary one.
    """

    def __init__(self, prefix: str = "gemini-studio-") -> None:
        self._root = Path(tempfile.mkdtemp(prefix=prefix))
        self._entries: dict[str, Path] = {}

    @property
    def root(self) -> Path:
        return self._root

    @property
    def closed(self) -> bool:
        return not self._root.exists()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, uri: object) -> bool:
        return uri in self._entries

    def put(self, data: bytes, mime_type: str) -> str:
        if self.closed:
            raise RuntimeError("Media store is closed")
        suffix = mimetypes.guess_extension(mime_type) or ".bin"
        path = self._root / f"{uuid.uuid4().hex}{suffix}"
        path.write_bytes(data)
        uri = path.as_uri()
        self._entries[uri] = path
        logger.debug("Stored %d bytes as %s", len(data), uri)
        return uri

    def path_for(self, uri: str) -> Path:
        path = self._entries.get(uri)
        if path is None:
            raise KeyError(uri)
        return path

    def read(self, uri: str) -> bytes:
        return self.path_for(uri).read_bytes()

    def release(self, uri: str) -> bool:
        """Drop one entry; returns False when the URI is unknown."""

        path = self._entries.pop(uri, None)
        if path is None:
            return False
        path.unlink(missing_ok=True)
        return True

    def close(self) -> None:
        self._entries.clear()
        shutil.rmtree(self._root, ignore_errors=True)

    def __enter__(self) -> "SessionMediaStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

