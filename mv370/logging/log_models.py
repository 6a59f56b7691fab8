"""Log data models for session diagnostics.

A gateway session is a conversation: lines go out, tokens and lines come
back. LogEntry records one step of it, or one connection event, as an
immutable value that CommunicationLogger fans out to its destinations.
"""

from dataclasses import dataclass, asdict, fields
from datetime import datetime
from typing import Any, Dict, Optional
import json

SENT = ">>"
RECEIVED = "<<"


@dataclass(frozen=True)
class LogEntry:
    """Immutable diagnostic record.

    Attributes:
        timestamp: When the event occurred
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        source: Component name (TelnetHandler, Session, Mv370Gateway)
        message: Short description ("Sent", "Received", "Connection opened")
        host: Gateway address
        operation: Session operation (sendln, send, expect, read_lines, ...)
        direction: SENT or RECEIVED for conversation steps, None for events
        data: Text written, or token/line/summary waited for
        status: Step outcome, SUCCESS or ERROR
        elapsed: Step duration in seconds
        error: Error message
        details: Additional structured data

    Example:
        >>> entry = LogEntry(
        ...     timestamp=datetime(2025, 1, 12, 10, 30, 15, 234000),
        ...     level="INFO",
        ...     source="Session",
        ...     message="Sent",
        ...     host="192.168.100.251:23",
        ...     operation="sendln",
        ...     direction=SENT,
        ...     data="at+cmgf=1"
        ... )
        >>> entry.to_string()
        "2025-01-12 10:30:15.234 [INFO] Session@192.168.100.251:23: Sent >> sendln 'at+cmgf=1'"
    """

    timestamp: datetime
    level: str
    source: str
    message: str
    host: Optional[str] = None
    operation: Optional[str] = None
    direction: Optional[str] = None
    data: Optional[str] = None
    status: Optional[str] = None
    elapsed: Optional[float] = None
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """All fields as a dictionary, timestamp in ISO 8601."""
        result = asdict(self)
        result['timestamp'] = self.timestamp.isoformat()
        return result

    def to_string(self) -> str:
        """One log line.

        Format: ``TIMESTAMP [LEVEL] SOURCE[@HOST]: MESSAGE`` followed by the
        conversation step, outcome, error and details when present.
        """
        origin = f"{self.source}@{self.host}" if self.host else self.source
        line = (f"{self.timestamp.strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]} "
                f"[{self.level}] {origin}: {self.message}")

        if self.operation:
            step = f"{self.direction} {self.operation}" if self.direction else self.operation
            line += f" {step}"
            if self.data is not None:
                line += f" {self.data!r}"
        if self.status:
            line += f" ({self.status}"
            line += f", {self.elapsed:.3f}s)" if self.elapsed is not None else ")"
        if self.error:
            line += f" error={self.error}"
        if self.details:
            line += " {" + ", ".join(f"{k}={v}" for k, v in self.details.items()) + "}"

        return line

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LogEntry':
        """Inverse of to_dict(); unknown keys are ignored."""
        values = {f.name: data.get(f.name) for f in fields(cls)}
        if isinstance(values['timestamp'], str):
            values['timestamp'] = datetime.fromisoformat(values['timestamp'])
        return cls(**values)
