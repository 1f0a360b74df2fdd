"""Durable, category-partitioned log files with rotation and retention.

Layout of the log directory::

    application-YYYY-MM-DD.log
    application-YYYY-MM-DD-<rotation-stamp>.log
    error-YYYY-MM-DD.log

Key features:
- Daily partitioning per category (``application``, ``error``)
- Size ceiling checked before every write; a full file is renamed with a
  rotation stamp and a fresh file is started under the original name
- Age-based retention at startup and on every date rollover
- Fail-soft: I/O failures divert the line to the fallback console channel
- One ``RotatingFileHandler`` per category, so the handler lock serializes
  writes and rotation for that category
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

from reqtrail.utils.time_provider import (
    DefaultTimeProvider,
    TimeProvider,
    format_date,
    format_timestamp,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from reqtrail.observability.metrics import ObservabilityMetrics

DEFAULT_MAX_FILE_SIZE = 20 * 1024 * 1024  # 20 MiB
DEFAULT_RETENTION_DAYS = 30
SECONDS_PER_DAY = 24 * 60 * 60

FALLBACK_LOGGER_NAME = "reqtrail.fallback"


class LogCategory(str, Enum):
    """Log file categories."""

    APPLICATION = "application"
    ERROR = "error"


def get_fallback_logger() -> logging.Logger:
    """Return the console channel used when log files cannot be written.

    The logger does not propagate, so a failing sink can never feed back into
    itself through handlers attached to parent loggers.
    """
    fallback = logging.getLogger(FALLBACK_LOGGER_NAME)
    if not fallback.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        fallback.addHandler(handler)
        fallback.setLevel(logging.INFO)
        fallback.propagate = False
    return fallback


def _single_line(line: str) -> str:
    return line.replace("\r", "\\r").replace("\n", "\\n")


class DailyRotatingFileHandler(RotatingFileHandler):
    """Rotating file handler keyed by calendar date.

    The active file is ``<category>-<date>.log``. A write that would push a
    non-empty file past ``maxBytes`` first renames it to
    ``<category>-<date>-<stamp>.log``.
    """

    def __init__(
        self,
        log_dir: Path | str,
        category: str,
        max_bytes: int,
        time_provider: TimeProvider,
        offset_hours: int | None = None,
        on_written: Callable[[str], None] | None = None,
        on_rollover: Callable[[str, str], None] | None = None,
        on_failure: Callable[[str, str, BaseException | None], None] | None = None,
    ) -> None:
        if max_bytes < 1:
            raise ValueError("max_bytes must be positive")
        self.log_dir = Path(log_dir)
        self.category = category
        self._time = time_provider
        self._offset_hours = offset_hours
        self._on_written = on_written
        self._on_rollover = on_rollover
        self._on_failure = on_failure
        self._failed = False
        self.current_date = self._today()
        super().__init__(
            self._path_for(self.current_date),
            mode="a",
            maxBytes=max_bytes,
            backupCount=0,
            encoding="utf-8",
            delay=True,
        )
        self.setFormatter(logging.Formatter("%(message)s"))

    def _today(self) -> str:
        return format_date(self._time.now(), self._offset_hours)

    def _path_for(self, date: str) -> str:
        return str(self.log_dir / f"{self.category}-{date}.log")

    def _switch_date(self, date: str) -> None:
        if self.stream is not None:
            self.stream.close()
            self.stream = None
        self.current_date = date
        self.baseFilename = os.path.abspath(self._path_for(date))

    def _rotated_path(self) -> str:
        now = self._time.now()
        micros = int(round(now * 1_000_000)) % 1_000_000
        wall = format_timestamp(now, self._offset_hours)
        stamp = wall.replace("-", "").replace(":", "") + f"{micros:06d}"
        candidate = self.log_dir / f"{self.category}-{self.current_date}-{stamp}.log"
        counter = 1
        while candidate.exists():
            candidate = self.log_dir / f"{self.category}-{self.current_date}-{stamp}-{counter}.log"
            counter += 1
        return str(candidate)

    def shouldRollover(self, record: logging.LogRecord) -> bool:
        today = self._today()
        if today != self.current_date:
            self._switch_date(today)
        if self.stream is None:
            self.stream = self._open()
        size = os.fstat(self.stream.fileno()).st_size
        pending = len((self.format(record) + self.terminator).encode(self.encoding or "utf-8"))
        return size > 0 and size + pending > self.maxBytes

    def doRollover(self) -> None:
        if self.stream is not None:
            self.stream.close()
            self.stream = None
        target = self.rotation_filename(self._rotated_path())
        self.rotate(self.baseFilename, target)
        if self._on_rollover is not None:
            self._on_rollover(self.category, target)

    def emit(self, record: logging.LogRecord) -> None:
        self._failed = False
        super().emit(record)
        if not self._failed and self._on_written is not None:
            self._on_written(self.category)

    def handleError(self, record: logging.LogRecord) -> None:
        self._failed = True
        # A broken stream must not be reused for the next record.
        if self.stream is not None:
            try:
                self.stream.close()
            except OSError:
                pass
            self.stream = None
        exc = sys.exc_info()[1]
        if self._on_failure is not None:
            self._on_failure(self.category, record.getMessage(), exc)


class LogSink:
    """Writer for the ``application`` and ``error`` log files.

    Example:
        >>> sink = LogSink("logs", max_file_size=1024 * 1024, retention_days=7)
        >>> sink.write(LogCategory.APPLICATION, "2024-01-01T00:00:00,abc,GET,/posts,-,-")
    """

    def __init__(
        self,
        log_dir: Path | str,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        *,
        time_provider: TimeProvider | None = None,
        offset_hours: int | None = None,
        metrics: ObservabilityMetrics | None = None,
        fallback_logger: logging.Logger | None = None,
        prune_on_start: bool = True,
    ) -> None:
        """Initialize the sink and, by default, run a retention pass.

        Args:
            log_dir: Directory holding the log files (created if missing)
            max_file_size: Size ceiling of a single file in bytes
            retention_days: Files last modified longer ago than this are deleted
            time_provider: Clock used for dates, rotation stamps and retention
            offset_hours: UTC offset used to render dates (None for local time)
            metrics: Optional metrics collector
            fallback_logger: Console channel for lines that cannot be written
            prune_on_start: Delete expired files before returning
        """
        if retention_days < 0:
            raise ValueError("retention_days must be non-negative")
        self.log_dir = Path(log_dir)
        self.max_file_size = max_file_size
        self.retention_days = retention_days
        self._time = time_provider or DefaultTimeProvider()
        self._offset_hours = offset_hours
        self._metrics = metrics
        self._fallback = fallback_logger or get_fallback_logger()
        self._prune_lock = threading.Lock()

        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self._fallback.error("Failed to create log directory %s: %s", self.log_dir, exc)

        self._handlers: dict[LogCategory, DailyRotatingFileHandler] = {
            category: DailyRotatingFileHandler(
                self.log_dir,
                category.value,
                max_bytes=max_file_size,
                time_provider=self._time,
                offset_hours=offset_hours,
                on_written=self._line_written,
                on_rollover=self._file_rotated,
                on_failure=self._write_failed,
            )
            for category in LogCategory
        }
        self._last_prune_date = self._today()
        if prune_on_start:
            self.cleanup_expired()

    def _today(self) -> str:
        return format_date(self._time.now(), self._offset_hours)

    def _line_written(self, category: str) -> None:
        if self._metrics is not None:
            self._metrics.log_lines.labels(category=category).inc()

    def _file_rotated(self, category: str, target: str) -> None:
        if self._metrics is not None:
            self._metrics.log_rotations.labels(category=category).inc()

    def _write_failed(self, category: str, line: str, exc: BaseException | None) -> None:
        if self._metrics is not None:
            self._metrics.log_fallbacks.labels(category=category).inc()
        self._fallback.error("Failed to write %s log: %s", category, exc)
        self._fallback.error("Log line: %s", line)

    def _maybe_prune(self) -> None:
        today = self._today()
        if today == self._last_prune_date:
            return
        with self._prune_lock:
            if today == self._last_prune_date:
                return
            self._last_prune_date = today
        self.cleanup_expired()

    def write(self, category: LogCategory | str, line: str) -> None:
        """Append ``line`` to today's file for ``category``. Never raises."""
        category = LogCategory(category)
        self._maybe_prune()
        record = logging.makeLogRecord(
            {
                "name": f"reqtrail.sink.{category.value}",
                "msg": _single_line(line),
                "levelno": logging.INFO,
                "levelname": "INFO",
            }
        )
        self._handlers[category].handle(record)

    def current_file(self, category: LogCategory | str) -> Path:
        """Path of the file the next write to ``category`` would target."""
        return self.log_dir / f"{LogCategory(category).value}-{self._today()}.log"

    def files(self, category: LogCategory | str | None = None) -> list[Path]:
        """List existing log files, optionally restricted to one category."""
        prefixes = (
            (LogCategory(category).value,)
            if category is not None
            else tuple(c.value for c in LogCategory)
        )
        try:
            entries = sorted(self.log_dir.iterdir())
        except OSError:
            return []
        return [
            path
            for path in entries
            if path.is_file()
            and path.suffix == ".log"
            and any(path.name.startswith(f"{prefix}-") for prefix in prefixes)
        ]

    def cleanup_expired(self) -> list[str]:
        """Delete log files whose mtime is older than the retention window.

        Returns:
            Names of the deleted files
        """
        cutoff = self._time.now() - self.retention_days * SECONDS_PER_DAY
        deleted: list[str] = []
        for path in self.files():
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    deleted.append(path.name)
            except OSError as exc:
                self._fallback.error("Failed to clean old log file %s: %s", path.name, exc)
        for name in deleted:
            self._fallback.info("Deleted old log file: %s", name)
        if deleted and self._metrics is not None:
            self._metrics.files_pruned.inc(len(deleted))
        return deleted

    def close(self) -> None:
        for handler in self._handlers.values():
            handler.close()
