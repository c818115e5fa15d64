"""Gemini-backed image editing, image generation and video generation."""

from .client import GenerationClient, default_client_factory
from .interfaces import (
    EditRequest,
    GenerationClientProtocol,
    ImageGenRequest,
    ImageResult,
    VideoGenRequest,
    VideoResult,
)
from .poller import PollerState, VideoOperationPoller

__all__ = [
    "EditRequest",
    "GenerationClient",
    "GenerationClientProtocol",
    "ImageGenRequest",
    "ImageResult",
    "PollerState",
    "VideoGenRequest",
    "VideoOperationPoller",
    "VideoResult",
    "default_client_factory",
]
