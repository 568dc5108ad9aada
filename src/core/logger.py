"""Logging setup: Rich console output plus queued, run-delimited file logs.

``console_logger`` prints through a ``RichHandler`` on the shared console.
``console_logger``, ``error_logger`` and ``config`` records are also pushed
through a ``QueueHandler`` to a listener thread that writes
``<logs_base_dir>/<logging.main_log_file>``, so file I/O never runs on the
event loop. Each process run is framed by NEW RUN / END RUN markers and the
file keeps only the last ``logging.max_runs`` runs.

``get_loggers`` does not raise; if file logging cannot be set up it prints
the error and returns plain stream loggers.
"""

from __future__ import annotations

import logging
import queue
import sys
import time
import traceback
from datetime import UTC, datetime
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from core.models.app_config import AppConfig

__all__ = [
    "CompactFormatter",
    "LogFormat",
    "LoggerFilter",
    "RunHandler",
    "RunTrackingHandler",
    "SafeQueueListener",
    "create_console_logger",
    "create_fallback_loggers",
    "get_full_log_path",
    "get_loggers",
    "get_shared_console",
    "setup_queue_logging",
]

_console_holder: dict[str, Console] = {}

# Loggers mirrored into the main log file
FILE_LOGGERS: tuple[str, ...] = ("console_logger", "error_logger", "config")

RUN_SEPARATOR = "=" * 80
RUN_HEADER_PREFIX = "NEW RUN:"
RUN_FOOTER_PREFIX = "END RUN:"
APP_NAME = "stagecache"

LOG_LEVELS: dict[str, int] = logging.getLevelNamesMapping()


def get_shared_console() -> Console:
    """Get or create the shared Rich console instance.

    Logging and CLI tables share one Console so their output does not interleave.
    """
    if "console" not in _console_holder:
        _console_holder["console"] = Console()
    return _console_holder["console"]


class SafeQueueListener(QueueListener):
    """A QueueListener whose stop() tolerates a listener that never started."""

    def stop(self) -> None:
        """Stop the listener thread if it is running."""
        if getattr(self, "_thread", None) is None:
            return
        try:
            super().stop()
        except (AttributeError, RuntimeError, TypeError) as e:
            print(f"Warning: Error stopping QueueListener: {e}", file=sys.stderr)


class LogFormat:
    """Rich markup helpers for consistent log formatting.

    Usage:
        logger.info("Cached %s (%s)", LogFormat.entity(content_id), LogFormat.size(size_bytes))
    """

    @staticmethod
    def entity(name: str) -> str:
        """Highlight a content id, setlist id or service name."""
        return f"[cyan]{name}[/cyan]"

    @staticmethod
    def file(name: str) -> str:
        """Highlight a file or directory name."""
        return f"[magenta]{name}[/magenta]"

    @staticmethod
    def number(value: float) -> str:
        """Highlight a count."""
        return f"[bold]{value}[/bold]"

    @staticmethod
    def size(size_bytes: int) -> str:
        """Human-readable byte count."""
        if size_bytes < 1024:
            return f"[bold]{size_bytes} B[/bold]"
        if size_bytes < 1024 * 1024:
            return f"[bold]{size_bytes / 1024:.1f} KiB[/bold]"
        return f"[bold]{size_bytes / (1024 * 1024):.1f} MiB[/bold]"

    @staticmethod
    def success(text: str) -> str:
        """Green text for completed operations."""
        return f"[green]{text}[/green]"

    @staticmethod
    def error(text: str) -> str:
        """Red text for failures."""
        return f"[red]{text}[/red]"

    @staticmethod
    def duration(seconds: float) -> str:
        """Format a duration in seconds."""
        return f"[yellow]{seconds:.2f}s[/yellow]"


class LoggerFilter:
    """Filter that only allows records from specific logger names."""

    def __init__(self, allowed_loggers: list[str] | tuple[str, ...]) -> None:
        """Initialize filter with allowed logger names (children pass too)."""
        self.allowed_loggers = frozenset(allowed_loggers)

    def filter(self, record: logging.LogRecord) -> bool:
        """Return True if the record comes from an allowed logger or one of its children."""
        root_name = record.name.split(".", 1)[0]
        return record.name in self.allowed_loggers or root_name in self.allowed_loggers


class RunHandler:
    """Formats run markers and keeps a log file to its last N runs."""

    def __init__(self, max_runs: int = 3) -> None:
        """Initialize run tracking.

        Args:
            max_runs: Runs to keep in the log file; 0 keeps everything

        """
        self.max_runs = max_runs
        self.run_start_time = time.monotonic()

    @staticmethod
    def format_run_header(logger_name: str) -> str:
        """Marker written before the first record of a run."""
        started = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
        return f"\n{RUN_SEPARATOR}\n{RUN_HEADER_PREFIX} {logger_name} - {started}\n{RUN_SEPARATOR}\n"

    def format_run_footer(self, logger_name: str) -> str:
        """Marker written when the file handler closes."""
        elapsed = time.monotonic() - self.run_start_time
        return f"\n{RUN_SEPARATOR}\n{RUN_FOOTER_PREFIX} {logger_name} - Total time: {elapsed:.2f}s\n{RUN_SEPARATOR}\n"

    def trim_log_to_max_runs(self, log_file: str) -> None:
        """Drop everything before the ``max_runs``-th most recent run header."""
        path = Path(log_file)
        if self.max_runs <= 0 or not path.is_file():
            return

        try:
            lines = path.read_text(encoding="utf-8", errors="ignore").splitlines(keepends=True)
            run_starts = [
                index
                for index, (line, following) in enumerate(zip(lines, lines[1:], strict=False))
                if line.strip() == RUN_SEPARATOR and following.startswith(RUN_HEADER_PREFIX)
            ]
            if len(run_starts) <= self.max_runs:
                return

            kept = lines[run_starts[-self.max_runs] :]
            scratch = path.with_suffix(path.suffix + ".tmp")
            scratch.write_text("".join(kept), encoding="utf-8")
            scratch.replace(path)
        except OSError as e:
            # Logging may already be shut down
            print(f"Error trimming log file {log_file}: {e}", file=sys.stderr)


def get_full_log_path(config: AppConfig | None, relative_path: str, error_logger: logging.Logger | None = None) -> str:
    """Join ``logs_base_dir`` with a relative log path, creating parent directories."""
    base = Path(config.logs_base_dir) if config is not None else Path()
    full_path = base / relative_path
    try:
        full_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        if error_logger is not None:
            error_logger.exception("Could not create log directory %s", full_path.parent)
        else:
            print(f"ERROR: Could not create log directory {full_path.parent}: {e}", file=sys.stderr)
    return str(full_path)


class CompactFormatter(logging.Formatter):
    """File formatter printing levels as one letter (``W`` for WARNING)."""

    DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(module)s:%(lineno)d - %(message)s"

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str = "%H:%M:%S",
        style: Literal["%", "{", "$"] = "%",
    ) -> None:
        """Initialize the formatter with the compact default layout."""
        super().__init__(fmt or self.DEFAULT_FORMAT, datefmt, style)

    def format(self, record: logging.LogRecord) -> str:
        """Format on a shallow copy so other handlers still see the full level name."""
        compact = logging.makeLogRecord(record.__dict__)
        compact.levelname = record.levelname[:1]
        return super().format(compact)


class RunTrackingHandler(logging.FileHandler):
    """File handler framing each run with markers and trimming old runs on close."""

    def __init__(self, filename: str, *, run_handler: RunHandler | None = None, encoding: str = "utf-8") -> None:
        """Open ``filename`` for appending, creating its directory."""
        Path(filename).parent.mkdir(parents=True, exist_ok=True)
        super().__init__(filename, mode="a", encoding=encoding)
        self.run_handler = run_handler
        self._header_written = False
        self._closed = False

    def _write_marker(self, text: str) -> None:
        if self.stream:
            self.stream.write(text)
            self.flush()

    def emit(self, record: logging.LogRecord) -> None:
        """Write the run header before the first record, then the record."""
        if self.run_handler is not None and not self._header_written:
            self._header_written = True
            try:
                self._write_marker(self.run_handler.format_run_header(record.name))
            except OSError:
                self.handleError(record)
        super().emit(record)

    def close(self) -> None:
        """Write the run footer, close the file and trim old runs."""
        if self._closed:
            return
        self._closed = True

        if self.run_handler is not None and self._header_written:
            try:
                self._write_marker(self.run_handler.format_run_footer(APP_NAME))
            except OSError as e:
                print(f"ERROR: Failed to write log footer for {self.baseFilename}: {e}", file=sys.stderr)
        super().close()
        if self.run_handler is not None:
            self.run_handler.trim_log_to_max_runs(self.baseFilename)


def _levels(config: AppConfig) -> tuple[int, int]:
    """(console, main_file) levels from ``logging.levels``."""
    configured = config.logging.levels
    console = LOG_LEVELS.get(str(configured.console), logging.INFO)
    main_file = LOG_LEVELS.get(str(configured.main_file), logging.INFO)
    return console, main_file


def create_console_logger(console_level: int, file_level: int) -> logging.Logger:
    """Return ``console_logger`` with a RichHandler attached once."""
    console_logger = logging.getLogger("console_logger")
    if not any(isinstance(handler, RichHandler) for handler in console_logger.handlers):
        console_logger.addHandler(
            RichHandler(
                level=console_level,
                console=get_shared_console(),
                show_path=False,
                enable_link_path=False,
                log_time_format="%H:%M:%S",
                markup=True,
            ),
        )
    # The logger passes the lower of both levels; each handler filters further
    console_logger.setLevel(min(console_level, file_level))
    console_logger.propagate = False
    return console_logger


def setup_queue_logging(config: AppConfig, file_level: int) -> tuple[logging.Logger, SafeQueueListener]:
    """Route the file loggers through a queue to the main log file.

    Returns:
        Tuple of (error_logger, started listener)

    """
    file_handler = RunTrackingHandler(
        get_full_log_path(config, config.logging.main_log_file),
        run_handler=RunHandler(config.logging.max_runs),
    )
    file_handler.setFormatter(CompactFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    file_handler.setLevel(file_level)
    file_handler.addFilter(LoggerFilter(FILE_LOGGERS))

    records: queue.Queue[logging.LogRecord] = queue.Queue(-1)
    listener = SafeQueueListener(records, file_handler, respect_handler_level=True)
    listener.start()

    queue_handler = QueueHandler(records)
    for name in FILE_LOGGERS:
        target = logging.getLogger(name)
        # Replace a queue handler left over from an earlier setup in this process
        for stale in [handler for handler in target.handlers if isinstance(handler, QueueHandler)]:
            target.removeHandler(stale)
        target.addHandler(queue_handler)
        if name != "console_logger":
            target.setLevel(file_level)
            target.propagate = False

    return logging.getLogger("error_logger"), listener


def get_loggers(config: AppConfig) -> tuple[logging.Logger, logging.Logger, SafeQueueListener | None]:
    """Create the console and error loggers.

    Returns:
        Tuple of (console_logger, error_logger, listener); the listener is
        None when the fallback loggers had to be used

    """
    try:
        console_level, file_level = _levels(config)
        console_logger = create_console_logger(console_level, file_level)
        error_logger, listener = setup_queue_logging(config, file_level)
    except (OSError, ValueError, AttributeError, TypeError) as e:
        return create_fallback_loggers(e)

    console_logger.debug("Logging ready: console via Rich, files via queue listener")
    return console_logger, error_logger, listener


def create_fallback_loggers(e: Exception) -> tuple[logging.Logger, logging.Logger, None]:
    """Plain stdout/stderr loggers used when file logging cannot be configured."""
    print(f"FATAL ERROR: Failed to configure logging: {e}", file=sys.stderr)
    traceback.print_exc(file=sys.stderr)

    fallbacks: list[logging.Logger] = []
    for name, stream in (("console_fallback", sys.stdout), ("error_fallback", sys.stderr)):
        fallback = logging.getLogger(name)
        if not fallback.handlers:
            handler = logging.StreamHandler(stream)
            handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
            fallback.addHandler(handler)
        fallback.setLevel(logging.INFO)
        fallbacks.append(fallback)

    fallbacks[1].critical("Fallback logging configured due to error: %s", e)
    return fallbacks[0], fallbacks[1], None
