from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Optional, TextIO

from rich.console import Console
from rich.theme import Theme

_LOG_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}
_STYLES = {"DEBUG": "dim", "INFO": "white", "WARN": "yellow", "ERROR": "red"}

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def _normalize_level(level: str) -> str:
    level = level.upper().strip()
    return "WARN" if level == "WARNING" else level


def _should_emit(configured: str, requested: str) -> bool:
    return _LOG_LEVELS.get(requested, 100) >= _LOG_LEVELS.get(configured, 20)


@dataclass
class StageOutcome:
    """Filled in by the caller of :meth:`RunLogger.stage` before it exits."""

    ok: bool = True
    detail: str = ""


@dataclass(slots=True)
class RunLogger:
    """Console-facing log for one studio session.

    Lines carry the time since the session started rather than wall-clock
    time, so a long video job reads as a timeline::

        [+  42.1s] VIDEO   Still working on it... Great things take time! (x3)
    """

    console: Console
    level: str = "INFO"
    logfile: Optional[Path] = None
    _plain_file: Optional[TextIO] = field(init=False, repr=False, default=None)
    _started: float = field(init=False, repr=False, default_factory=time.monotonic)

    def __post_init__(self) -> None:
        self.level = _normalize_level(self.level)
        if self.logfile:
            self.logfile.parent.mkdir(parents=True, exist_ok=True)
            self._plain_file = self.logfile.open("a", encoding="utf-8")

    def close(self) -> None:
        if self._plain_file:
            self._plain_file.close()
            self._plain_file = None

    def log(self, step: str, message: str, level: str = "INFO") -> None:
        level = _normalize_level(level)
        if not _should_emit(self.level, level):
            return
        offset = time.monotonic() - self._started
        line = f"[+{offset:6.1f}s] {step.upper():<7} {message}"
        if level != "INFO":
            line = f"{line} [{level}]"
        self.console.print(line, style=_STYLES.get(level, "white"), highlight=False, markup=False, soft_wrap=True)
        if self._plain_file:
            self._plain_file.write(line + "\n")
            self._plain_file.flush()

    def progress(self, step: str) -> Callable[[str], None]:
        """Return an ``on_progress`` callback for a generation job.

        Consecutive identical messages are counted instead of repeated, so
        a video job that polls for minutes shows how many checks it took.
        """

        last_message: Optional[str] = None
        repeats = 0

        def _emit(message: str) -> None:
            nonlocal last_message, repeats
            if message == last_message:
                repeats += 1
                self.log(step, f"{message} (x{repeats})")
                return
            last_message, repeats = message, 1
            self.log(step, message)

        return _emit

    @contextmanager
    def stage(self, step: str, label: str) -> Iterator[StageOutcome]:
        """Log how long ``label`` took and whether the caller marked it ok."""

        outcome = StageOutcome()
        start = time.perf_counter()
        try:
            yield outcome
        except Exception as exc:
            elapsed = time.perf_counter() - start
            self.log(step, f"{label} raised after {elapsed:.1f}s: {exc}", level="ERROR")
            raise
        elapsed = time.perf_counter() - start
        status = "done" if outcome.ok else "failed"
        detail = f" ({outcome.detail})" if outcome.detail else ""
        self.log(step, f"{label} {status} in {elapsed:.1f}s{detail}", level="INFO" if outcome.ok else "WARN")


def configure_logging(level: str = "WARNING") -> None:
    logging.basicConfig(level=getattr(logging, level.upper().strip(), logging.WARNING), format=LOG_FORMAT)


def create_logger(level: str, logfile: Optional[Path] = None, console: Optional[Console] = None) -> RunLogger:
    if console is None:
        console = Console(theme=Theme({"repr.number": "cyan"}))
    return RunLogger(console=console, level=level, logfile=logfile)


__all__ = ["LOG_FORMAT", "RunLogger", "StageOutcome", "configure_logging", "create_logger"]
