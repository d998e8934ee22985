"""Console and log file sinks for per-record outcomes."""
from __future__ import annotations

import itertools
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

import typer

from .models import Classification, Phase, RecordOutcome, Step

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
RUN_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

OutcomeSink = Callable[[RecordOutcome], None]

_run_counter = itertools.count(1)


def setup_logging(level: str = "WARNING") -> logging.Logger:
    """Configure diagnostic logging to stderr for a command invocation."""

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)

    for noisy in ("urllib3", "requests", "msal"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return root


def severity(outcome: RecordOutcome) -> str:
    if outcome.is_error:
        return "error"
    if outcome.step is Step.ATTEMPT:
        return "warning"
    if outcome.step is Step.CLASSIFIED and outcome.classification is Classification.CHANGE:
        return "warning"
    return "success"


_COLORS = {
    "success": typer.colors.GREEN,
    "warning": typer.colors.YELLOW,
    "error": typer.colors.RED,
}

_MARKERS = {
    "success": "[ OK ]",
    "warning": "[WARN]",
    "error": "[FAIL]",
}


class ConsoleReporter:
    """Print one color-coded line per outcome."""

    def __init__(self, echo: Callable[..., None] = typer.secho) -> None:
        self._echo = echo

    def __call__(self, outcome: RecordOutcome) -> None:
        level = severity(outcome)
        self._echo(f"{_MARKERS[level]} {outcome.detail}", fg=_COLORS[level])

    def banner(self, text: str) -> None:
        self._echo(text, bold=True)


class RunLog:
    """Append-only, timestamped log for a single run of a tool.

    The file is created on the first write, so a run that never reaches the
    action pass leaves nothing on disk.
    """

    def __init__(
        self,
        tool_name: str,
        log_dir: Path,
        started_at: Optional[datetime] = None,
        phases: Iterable[Phase] = (Phase.ACTION,),
    ) -> None:
        started = started_at or datetime.now()
        self.path = Path(log_dir) / f"{tool_name}_{started:%Y%m%d-%H%M%S}.log"
        self._phases = frozenset(phases)
        self._logger = logging.getLogger(f"o365_admin.run.{tool_name}.{next(_run_counter)}")
        self._logger.propagate = False
        self._logger.setLevel(logging.INFO)
        self._handler: Optional[logging.FileHandler] = None

    @property
    def created(self) -> bool:
        return self._handler is not None

    def _ensure_handler(self) -> None:
        if self._handler is not None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        handler.setFormatter(logging.Formatter(fmt=RUN_LOG_FORMAT, datefmt=DATE_FORMAT))
        self._logger.addHandler(handler)
        self._handler = handler

    def write(self, message: str, level: int = logging.INFO) -> None:
        self._ensure_handler()
        self._logger.log(level, message)

    def __call__(self, outcome: RecordOutcome) -> None:
        if outcome.phase not in self._phases:
            return
        level = logging.ERROR if outcome.is_error else logging.INFO
        self.write(outcome.detail, level)

    def close(self) -> None:
        if self._handler is None:
            return
        self._logger.removeHandler(self._handler)
        self._handler.close()
        self._handler = None

    def __enter__(self) -> "RunLog":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def broadcast(sinks: Iterable[OutcomeSink]) -> OutcomeSink:
    """Fan a single outcome out to every sink in order."""

    targets = list(sinks)

    def _emit(outcome: RecordOutcome) -> None:
        for sink in targets:
            sink(outcome)

    return _emit


__all__ = [
    "ConsoleReporter",
    "OutcomeSink",
    "RunLog",
    "broadcast",
    "setup_logging",
    "severity",
]
