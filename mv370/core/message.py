"""SMS message data model.

This module defines the immutable Message dataclass and the SmsReadResult
returned by the list workflow, providing a structured representation of
the messages stored on the gateway.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import json

from mv370.core.exceptions import GatewayError


@dataclass(frozen=True)
class Message:
    """Immutable SMS record.

    Attributes:
        tel: Sender/recipient number as reported by the gateway
        text: Message body; multi-line bodies are newline-joined
        time: Timestamp reported by the gateway (UTC)

    Example:
        >>> msg = Message(tel="+447700900123", text="Hello",
        ...               time=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
        >>> msg.to_dict()
        {'tel': '+447700900123', 'text': 'Hello', 'time': '2024-01-02T03:04:05+00:00'}
    """

    tel: str
    text: str = ""
    time: Optional[datetime] = None

    def with_line(self, line: str) -> 'Message':
        """Return a copy with one more body line appended.

        The first line is taken as-is, later lines are joined with a newline.
        """
        if self.text:
            return Message(tel=self.tel, text=f"{self.text}\n{line}", time=self.time)
        return Message(tel=self.tel, text=line, time=self.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert message to dictionary for JSON serialization.

        Returns:
            Dictionary with tel, text and ISO 8601 time
        """
        return {
            'tel': self.tel,
            'text': self.text,
            'time': self.time.isoformat() if self.time else None
        }

    def to_json(self) -> str:
        """Convert message to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        """Create Message from dictionary.

        Accepts either ``text`` or ``message`` for the body.

        Args:
            data: Dictionary with message fields

        Returns:
            Message instance

        Raises:
            ValueError: Not an object, no tel field, a non-string tel or
                text, or a time that is not an ISO 8601 string
        """
        if not isinstance(data, dict):
            raise ValueError("message must be a JSON object")
        if 'tel' not in data:
            raise ValueError("message has no 'tel' field")

        tel = data['tel']
        if not isinstance(tel, str):
            raise ValueError(f"'tel' must be a string, got {tel!r}")

        text = data.get('text')
        if text is None:
            text = data.get('message', "")
        if not isinstance(text, str):
            raise ValueError(f"'text' must be a string, got {text!r}")

        timestamp = data.get('time')
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        elif timestamp is not None:
            raise ValueError(f"'time' must be an ISO 8601 string, got {timestamp!r}")

        return cls(tel=tel, text=text, time=timestamp)

    @classmethod
    def from_json(cls, json_str: str) -> 'Message':
        """Create Message from JSON string.

        Raises:
            json.JSONDecodeError: Malformed JSON
            ValueError: JSON is not a message object
        """
        return cls.from_dict(json.loads(json_str))

    def __str__(self) -> str:
        when = self.time.strftime("%Y-%m-%d %H:%M:%S") if self.time else "?"
        return f"[{when}] {self.tel}: {self.text}"


@dataclass(frozen=True)
class SmsReadResult:
    """Outcome of reading the gateway's message store.

    Messages parsed before a failure are kept alongside the error, so the
    caller decides whether partial results can be trusted.

    Attributes:
        messages: Messages in the order the gateway listed them
        error: Sticky error of the session, None on success
    """

    messages: List[Message] = field(default_factory=list)
    error: Optional[GatewayError] = None

    def is_successful(self) -> bool:
        """Check if the whole list operation succeeded."""
        return self.error is None

    def raise_for_error(self) -> List[Message]:
        """Return the messages, raising the stored error if there is one."""
        if self.error is not None:
            raise self.error
        return self.messages

    def to_list(self) -> List[Dict[str, Any]]:
        """Messages as a list of dictionaries."""
        return [msg.to_dict() for msg in self.messages]


def utc(value: datetime) -> datetime:
    """Attach UTC to a naive gateway timestamp."""
    return value.replace(tzinfo=timezone.utc)
