"""API key capabilities injected into panels that need a credential."""

from __future__ import annotations

import os
from typing import Callable, Optional, Protocol, Sequence

from rich.console import Console
from rich.prompt import Prompt

from .errors import CapabilityUnavailable

__all__ = [
    "API_KEY_ENV_VARS",
    "CredentialProvider",
    "EnvironmentCredentialProvider",
    "PromptCredentialProvider",
]

API_KEY_ENV_VARS: tuple[str, ...] = ("GEMINI_API_KEY", "API_KEY")


class CredentialProvider(Protocol):
    def has_credential(self) -> bool:
        """Return True when a key has been selected."""

    def select_credential(self) -> None:
        """Ask the user to pick a key; returns once the prompt is dismissed."""

    def current_key(self) -> Optional[str]:
        """Return the key to use for the next request, read fresh every call."""


def _read_env(names: Sequence[str]) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value and value.strip():
            return value.strip()
    return None


class EnvironmentCredentialProvider:
    """Reads the key from the environment; cannot prompt for one."""

    def __init__(self, env_vars: Sequence[str] = API_KEY_ENV_VARS) -> None:
        self.env_vars = tuple(env_vars)

    def has_credential(self) -> bool:
        return self.current_key() is not None

    def select_credential(self) -> None:
        raise CapabilityUnavailable("API key selection is not available in this environment.")

    def current_key(self) -> Optional[str]:
        return _read_env(self.env_vars)


class PromptCredentialProvider:
    """Asks for a key on the console and keeps it in memory for the session.

    Falls back to the environment until a key has been entered.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        env_vars: Sequence[str] = API_KEY_ENV_VARS,
        ask: Optional[Callable[[str], str]] = None,
    ) -> None:
        self.console = console or Console()
        self.env_vars = tuple(env_vars)
        self._ask = ask or self._rich_ask
        self._key: Optional[str] = None

    def _rich_ask(self, message: str) -> str:
        return Prompt.ask(message, password=True, console=self.console)

    def has_credential(self) -> bool:
        return self.current_key() is not None

    def select_credential(self) -> None:
        entered = (self._ask("Gemini API key") or "").strip()
        if entered:
            self._key = entered

    def current_key(self) -> Optional[str]:
        return self._key or _read_env(self.env_vars)
