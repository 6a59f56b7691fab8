"""Core gateway engine components.

This package provides the telnet connection, the chainable Session and
the gateway workflows built on it.
"""

from mv370.core.exceptions import (
    GatewayError,
    DialError,
    TransportError,
    DeadlineExceededError,
    ConnectionClosedError,
    SendError,
    ExpectError,
    UnexpectedLineError,
    MessageParseError
)
from mv370.core.message import Message, SmsReadResult
from mv370.core.telnet_handler import TelnetHandler
from mv370.core.session import Session
from mv370.core.gateway import Mv370Gateway

__all__ = [
    'Message',
    'SmsReadResult',
    'TelnetHandler',
    'Session',
    'Mv370Gateway',
    'GatewayError',
    'DialError',
    'TransportError',
    'DeadlineExceededError',
    'ConnectionClosedError',
    'SendError',
    'ExpectError',
    'UnexpectedLineError',
    'MessageParseError',
]
