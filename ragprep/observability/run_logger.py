"""Per-run audit log: every record emitted during a batch, sealed with its summary."""

from __future__ import annotations

import json
import logging
import traceback
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

if TYPE_CHECKING:
    from collections.abc import Callable

SEPARATOR = "=" * 37


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


class RunLoggerState(str, Enum):
    INIT = "init"
    ACTIVE = "active"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class RunLogEntry:
    timestamp: str
    level: str
    message: str

    def format(self) -> str:
        return f"[{self.timestamp}] {self.level}: {self.message}"


class _RunLogHandler(logging.Handler):
    def __init__(self, run_logger: RunLogger):
        super().__init__(level=logging.DEBUG)
        self._run_logger = run_logger

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
            if record.exc_info:
                message = f"{message}\n{''.join(traceback.format_exception(*record.exc_info))}"
            self._run_logger.append(record.levelname, message)
        except Exception:
            self.handleError(record)


class RunLogger:
    """Captures the records of one run into ``<log_dir>/run-<timestamp>-<suffix>.log``.

    The handler is attached to the ``ragprep`` logger on ``open()`` and
    detached on ``finalize()``; propagation is left untouched so console
    output keeps flowing.
    """

    def __init__(
        self,
        log_dir: str | Path,
        *,
        logger_name: str = "ragprep",
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.log_dir = Path(log_dir)
        self.logger_name = logger_name
        self._clock = clock
        self.state = RunLoggerState.INIT
        self.entries: list[RunLogEntry] = []
        self.path: Path | None = None
        self._handler: _RunLogHandler | None = None
        self._stream: TextIO | None = None
        self._previous_level: int | None = None

    @property
    def _logger(self) -> logging.Logger:
        return logging.getLogger(self.logger_name)

    def open(self) -> Path:
        """Create the run log file and start capturing records.

        Raises:
            RuntimeError: If already opened, or another run log is attached.
        """
        if self.state is not RunLoggerState.INIT:
            msg = f"Run logger already {self.state.value}"
            raise RuntimeError(msg)
        target = self._logger
        if any(isinstance(handler, _RunLogHandler) for handler in target.handlers):
            msg = f"A run log is already attached to logger '{self.logger_name}'"
            raise RuntimeError(msg)

        started = self._clock()
        self.log_dir.mkdir(parents=True, exist_ok=True)
        stamp = started.strftime("%Y%m%dT%H%M%S%fZ")
        self.path = self.log_dir / f"run-{stamp}-{uuid.uuid4().hex[:6]}.log"
        self._stream = self.path.open("a", encoding="utf-8")

        self._handler = _RunLogHandler(self)
        target.addHandler(self._handler)
        if target.getEffectiveLevel() > logging.INFO:
            self._previous_level = target.level
            target.setLevel(logging.INFO)
        self.state = RunLoggerState.ACTIVE

        self.append("INFO", f"RAG enhancement run started, logging to {self.path}")
        return self.path

    def append(self, level: str, message: str) -> None:
        if self.state is not RunLoggerState.ACTIVE:
            return
        entry = RunLogEntry(timestamp=_iso(self._clock()), level=level, message=message)
        self.entries.append(entry)
        self._write(entry.format() + "\n")

    def log_fatal(self, exc: BaseException) -> None:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip()
        self.append("FATAL", f"FATAL ERROR: {exc}\nStack: {stack}")

    def finalize(self, summary: dict[str, Any]) -> None:
        """Write the closing block and stop capturing. Safe to call twice."""
        if self.state is not RunLoggerState.ACTIVE:
            return
        closing = "\n".join(
            [
                "",
                SEPARATOR,
                f"RUN COMPLETED: {_iso(self._clock())}",
                SEPARATOR,
                f"Summary: {json.dumps(summary, indent=2, default=str)}",
                f"Total Log Entries: {len(self.entries)}",
                SEPARATOR,
                "",
            ]
        )
        self._write(closing)
        self.detach()
        self.state = RunLoggerState.FINALIZED

    def detach(self) -> None:
        """Stop capturing without writing a closing block."""
        if self._handler is not None:
            target = self._logger
            target.removeHandler(self._handler)
            if self._previous_level is not None:
                target.setLevel(self._previous_level)
                self._previous_level = None
            self._handler = None
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        if self.state is RunLoggerState.ACTIVE:
            self.state = RunLoggerState.FINALIZED

    def _write(self, text: str) -> None:
        if self._stream is None:
            return
        self._stream.write(text)
        self._stream.flush()
