"""Rotating log file for session diagnostics.

FileHandler appends one formatted line per LogEntry. When the file has
reached its size limit it is renamed to ``<name>.1`` (older backups move
up to ``.2``, ``.3`` ...) and a new file is started.
"""

from pathlib import Path
from threading import Lock
from typing import Optional, TextIO
import os
import sys

from mv370.logging.log_models import LogEntry


class FileHandler:
    """Thread-safe appender with size-based rotation.

    Write failures are reported on stderr and never raised: a broken log
    file must not abort a gateway session.

    Attributes:
        log_file_path: Resolved path of the active log file
        max_size_bytes: Size at which the next write rotates first
        backup_count: Rotated files kept; 0 discards the full file instead

    Example:
        >>> with FileHandler("~/.mv370/logs/session.log", max_size_mb=1) as handler:
        ...     handler.write(entry)
        True
    """

    def __init__(self, log_file_path: str, max_size_mb: int = 10, backup_count: int = 5):
        """Open ``log_file_path`` for appending, creating its directory.

        Raises:
            OSError: Directory cannot be created
        """
        self.log_file_path = Path(log_file_path).expanduser().resolve()
        self.max_size_bytes = max_size_mb * 1024 * 1024
        self.backup_count = backup_count
        self._lock = Lock()
        self._stream: Optional[TextIO] = None
        self._closed = False

        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        self._stream = self._open()

    def _open(self) -> Optional[TextIO]:
        try:
            return open(self.log_file_path, mode='a', encoding='utf-8')
        except OSError as e:
            print(f"ERROR: Cannot open log file {self.log_file_path}: {e}", file=sys.stderr)
            return None

    def _backup(self, index: int) -> Path:
        return self.log_file_path.with_name(f"{self.log_file_path.name}.{index}")

    def write(self, entry: LogEntry) -> bool:
        """Append ``entry``; returns False if it could not be written."""
        with self._lock:
            if self._closed:
                return False
            if self._needs_rotation():
                self._rotate()
            if self._stream is None:
                return False
            try:
                self._stream.write(entry.to_string() + '\n')
                self._stream.flush()
            except OSError as e:
                print(f"ERROR: Cannot write to log file {self.log_file_path}: {e}",
                      file=sys.stderr)
                return False
            return True

    def _needs_rotation(self) -> bool:
        try:
            return self.log_file_path.stat().st_size >= self.max_size_bytes
        except OSError:
            return False

    def _rotate(self) -> None:
        """Shift backups up by one and reopen. Caller holds the lock."""
        if self._stream is not None:
            self._stream.close()
            self._stream = None

        try:
            if self.backup_count > 0:
                for index in range(self.backup_count - 1, 0, -1):
                    if self._backup(index).exists():
                        self._backup(index).replace(self._backup(index + 1))
                self.log_file_path.replace(self._backup(1))
            else:
                self.log_file_path.unlink()
        except OSError as e:
            print(f"WARNING: Log rotation failed for {self.log_file_path}: {e}", file=sys.stderr)

        self._stream = self._open()

    def flush(self) -> None:
        """Push written entries to disk."""
        with self._lock:
            if self._stream is None:
                return
            try:
                self._stream.flush()
                os.fsync(self._stream.fileno())
            except OSError as e:
                print(f"ERROR: Cannot flush log file {self.log_file_path}: {e}", file=sys.stderr)

    def close(self) -> None:
        """Close the file; later writes return False. Safe to call twice."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._stream is not None:
                try:
                    self._stream.close()
                except OSError as e:
                    print(f"ERROR: Cannot close log file {self.log_file_path}: {e}",
                          file=sys.stderr)
                self._stream = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
