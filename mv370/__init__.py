"""MV-370 SMS gateway client.

Drives an MV-370 GSM gateway over its telnet console to send SMS messages
and to read and clear the messages it has received.
"""

from mv370.core import (
    Message,
    SmsReadResult,
    TelnetHandler,
    Session,
    Mv370Gateway,
    GatewayError,
    DialError,
    TransportError,
    DeadlineExceededError,
    ExpectError,
    MessageParseError,
)
from mv370.parsers import parse_csv_line, SmsListParser, parse_sms_list
from mv370.logging import CommunicationLogger

__version__ = "0.1.0"

__all__ = [
    # Core
    "Message",
    "SmsReadResult",
    "TelnetHandler",
    "Session",
    "Mv370Gateway",
    # Parsers
    "parse_csv_line",
    "SmsListParser",
    "parse_sms_list",
    # Logging
    "CommunicationLogger",
    # Exceptions
    "GatewayError",
    "DialError",
    "TransportError",
    "DeadlineExceededError",
    "ExpectError",
    "MessageParseError",
]
