"""Diagnostic sink for gateway sessions.

CommunicationLogger records the conversation a session has with the
gateway. Entries below the configured level are dropped; the rest go to
stderr, an optional rotating log file and a bounded in-memory history
that tests and callers can inspect.
"""

from collections import deque
from datetime import datetime
from threading import Lock
from typing import Any, Deque, Dict, List, Optional, Union
import sys

from mv370.config.config_models import LogLevel
from mv370.logging.file_handler import FileHandler
from mv370.logging.log_models import LogEntry, SENT, RECEIVED

# Lowest to highest; an entry passes when it ranks at or above the current level.
LEVEL_ORDER = [level.value for level in LogLevel]


class CommunicationLogger:
    """Level-filtered logger for gateway conversations.

    Attributes:
        log_level: Current level name
        enable_console: Whether entries are printed to stderr
        enable_file: Whether entries are written to ``log_file_path``
        log_file_path: Path of the log file, if any

    Example:
        >>> logger = CommunicationLogger(log_level=LogLevel.DEBUG)
        >>> logger.log_sent(host="192.168.100.251:23", operation="sendln", data="info")
        >>> logger.log_received(host="192.168.100.251:23", operation="expect", data="info",
        ...                     status="SUCCESS", elapsed=0.05)
        >>> logger.close()
    """

    def __init__(
        self,
        log_level: Union[LogLevel, str] = LogLevel.INFO,
        enable_file: bool = False,
        enable_console: bool = True,
        log_file_path: Optional[str] = None,
        max_file_size_mb: int = 10,
        backup_count: int = 5,
        buffer_size: int = 1000
    ):
        """Set up destinations.

        Args:
            log_level: Minimum level recorded (default: INFO)
            enable_file: Write to ``log_file_path`` (default: False)
            enable_console: Print to stderr (default: True)
            log_file_path: Log file, required with ``enable_file``
            max_file_size_mb: Size that triggers file rotation (default: 10)
            backup_count: Rotated files kept (default: 5)
            buffer_size: Entries kept in the in-memory history (default: 1000)

        Raises:
            ValueError: ``enable_file`` without ``log_file_path``
        """
        if enable_file and not log_file_path:
            raise ValueError("log_file_path required when enable_file=True")

        self.log_level = self._level_name(log_level)
        self.enable_console = enable_console
        self.enable_file = enable_file
        self.log_file_path = log_file_path

        self._lock = Lock()
        self._history: Deque[LogEntry] = deque(maxlen=buffer_size)
        self._file_handler: Optional[FileHandler] = None

        if enable_file:
            try:
                self._file_handler = FileHandler(log_file_path, max_size_mb=max_file_size_mb,
                                                 backup_count=backup_count)
            except OSError as e:
                print(f"WARNING: File logging disabled, cannot use {log_file_path}: {e}",
                      file=sys.stderr)

    @staticmethod
    def _level_name(level: Union[LogLevel, str]) -> str:
        return level.value if isinstance(level, LogLevel) else str(level).upper()

    def is_enabled_for(self, level: str) -> bool:
        """Check whether an entry at ``level`` would be recorded."""
        rank = LEVEL_ORDER.index(level) if level in LEVEL_ORDER else 0
        return rank >= LEVEL_ORDER.index(self.log_level)

    def log(self, entry: LogEntry) -> None:
        """Record an entry on every destination if its level passes."""
        if not self.is_enabled_for(entry.level):
            return

        with self._lock:
            self._history.append(entry)
            if self._file_handler is not None:
                self._file_handler.write(entry)
            if self.enable_console:
                print(entry.to_string(), file=sys.stderr)

    def _entry(self, level: str, source: str, message: str, **kwargs) -> LogEntry:
        return LogEntry(timestamp=datetime.now(), level=level, source=source,
                        message=message, **kwargs)

    def log_sent(self, host: Optional[str], operation: str, data: str,
                 source: str = "Session") -> None:
        """Record text or bytes written to the gateway (INFO)."""
        self.log(self._entry("INFO", source, "Sent", host=host, operation=operation,
                             direction=SENT, data=data))

    def log_received(
        self,
        host: Optional[str],
        operation: str,
        data: str,
        status: str,
        elapsed: float,
        source: str = "Session"
    ) -> None:
        """Record the outcome of a read step.

        Successful steps are DEBUG; failed ones are WARNING so they show up
        at the default level.

        Args:
            host: Gateway address
            operation: expect, expect_line_contains, wait_line_contains or read_lines
            data: Token(s) waited for, or a summary of what was read
            status: SUCCESS or ERROR
            elapsed: Step duration in seconds
            source: Component name (default: Session)
        """
        ok = status == "SUCCESS"
        self.log(self._entry("DEBUG" if ok else "WARNING", source,
                             "Received" if ok else "Receive failed",
                             host=host, operation=operation, direction=RECEIVED,
                             data=data, status=status, elapsed=elapsed))

    def log_event(
        self,
        event: str,
        host: Optional[str],
        details: Optional[Dict[str, Any]] = None,
        level: str = "INFO",
        source: str = "TelnetHandler"
    ) -> None:
        """Record a lifecycle event (connection opened, session closed, ...)."""
        self.log(self._entry(level, source, event, host=host, details=details))

    def log_error(self, source: str, error: str,
                  details: Optional[Dict[str, Any]] = None) -> None:
        """Record an error (ERROR)."""
        self.log(self._entry("ERROR", source, "Error", error=error, details=details))

    def set_level(self, level: Union[LogLevel, str]) -> None:
        self.log_level = self._level_name(level)

    def get_entries(self, limit: Optional[int] = None) -> List[LogEntry]:
        """Recorded entries, oldest first; only the newest ``limit`` if given."""
        with self._lock:
            entries = list(self._history)
        return entries[-limit:] if limit else entries

    def clear_buffer(self) -> None:
        """Forget the in-memory history; the log file is untouched."""
        with self._lock:
            self._history.clear()

    def flush(self) -> None:
        if self._file_handler is not None:
            self._file_handler.flush()

    def close(self) -> None:
        """Close the log file. Safe to call more than once."""
        if self._file_handler is not None:
            self._file_handler.close()
            self._file_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
