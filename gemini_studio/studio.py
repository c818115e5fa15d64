from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Optional, Union

from .config import StudioConfig
from .credentials import CredentialProvider, EnvironmentCredentialProvider
from .generation.client import ClientFactory, GenerationClient, default_client_factory
from .media import SessionMediaStore
from .panels import ImageEditorPanel, ImageGeneratorPanel, ImageSourcePanel, VideoGeneratorPanel

logger = logging.getLogger("gemini_studio.studio")

AnyPanel = Union[ImageEditorPanel, ImageGeneratorPanel, VideoGeneratorPanel]


class Tab(str, Enum):
    EDIT = "edit"
    GENERATE = "generate"
    VIDEO = "video"


class Studio:
    """Shell that owns the session resources and mounts one panel per tab."""

    def __init__(
        self,
        config: Optional[StudioConfig] = None,
        credentials: Optional[CredentialProvider] = None,
        *,
        client_factory: ClientFactory = default_client_factory,
        media: Optional[SessionMediaStore] = None,
    ) -> None:
        self.config = config or StudioConfig()
        self.credentials = credentials or EnvironmentCredentialProvider()
        self.media = media or SessionMediaStore()
        self.client = GenerationClient(self.config, self.media, client_factory=client_factory)
        timeout = self.config.http.timeout
        self.panels: Dict[Tab, AnyPanel] = {
            Tab.EDIT: ImageEditorPanel(self.client, self.credentials, fetch_timeout=timeout),
            Tab.GENERATE: ImageGeneratorPanel(self.client, self.credentials, fetch_timeout=timeout),
            Tab.VIDEO: VideoGeneratorPanel(self.client, self.credentials, fetch_timeout=timeout),
        }
        self.active_tab = Tab.EDIT
        self._mounted: set[Tab] = set()

    def open(self, tab: Union[Tab, str], *, load_initial_image: bool = True) -> AnyPanel:
        tab = Tab(tab)
        self.active_tab = tab
        panel = self.panels[tab]
        if tab not in self._mounted:
            self._mounted.add(tab)
            if load_initial_image and isinstance(panel, ImageSourcePanel):
                logger.info("Loading initial image for %s panel", tab.value)
                panel.mount(self.config.initial_image_url)
            elif isinstance(panel, VideoGeneratorPanel):
                panel.check_credential()
        return panel

    @property
    def active_panel(self) -> AnyPanel:
        return self.panels[self.active_tab]

    def close(self) -> None:
        video = self.panels[Tab.VIDEO]
        if isinstance(video, VideoGeneratorPanel):
            video.cancel()
        self.media.close()

    def __enter__(self) -> "Studio":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


__all__ = ["Studio", "Tab"]
