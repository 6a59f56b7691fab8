"""Custom exception hierarchy for the MV-370 gateway client.

Every failure that can poison a session is represented by one of these
exceptions. A Session stores the first one as its sticky error; the
workflows raise it to their caller unchanged.
"""

from typing import Optional, Sequence


class GatewayError(Exception):
    """Base exception for all gateway errors.

    All custom exceptions inherit from this base class to allow
    catching all client errors with a single except clause.
    """
    pass


class DialError(GatewayError):
    """Connection to the gateway could not be established.

    Attributes:
        host: Gateway address that was dialled (host:port)
        cause: Original exception from pyserial or the OS (if available)
    """

    def __init__(self, message: str, host: str, cause: Optional[Exception] = None):
        """Initialize DialError.

        Args:
            message: Human-readable error description
            host: Gateway address
            cause: Original exception
        """
        super().__init__(message)
        self.host = host
        self.cause = cause

    def __str__(self) -> str:
        """Format error message with host context."""
        base_msg = super().__str__()
        if self.cause:
            return f"{base_msg} (host: {self.host}, cause: {self.cause})"
        return f"{base_msg} (host: {self.host})"


class TransportError(GatewayError):
    """Read or write on an open connection failed."""
    pass


class DeadlineExceededError(TransportError):
    """A read or write did not complete before its deadline."""
    pass


class ConnectionClosedError(TransportError):
    """The gateway closed the connection (EOF)."""
    pass


class SendError(GatewayError):
    """A write step of a session failed.

    Attributes:
        operation: Session operation name (sendln, send)
        data: Text that could not be written (hex for raw bytes, masked for secrets)
        cause: Underlying transport error
    """

    def __init__(self, operation: str, data, cause: Exception):
        super().__init__(f"{operation} {data!r} failed")
        self.operation = operation
        self.data = data
        self.cause = cause

    def __str__(self) -> str:
        return f"{super().__str__()}: {self.cause}"


class ExpectError(GatewayError):
    """Expected token or line was not received.

    Raised when an expect or wait step runs into a deadline or a read
    failure before a match. Wraps the transport error as its cause.

    Attributes:
        operation: Session operation name (expect, wait_line_contains, read_lines)
        expected: Token(s) that were waited for
        cause: Underlying transport error
    """

    def __init__(self, operation: str, expected: Sequence[str], cause: Exception):
        self.operation = operation
        self.expected = list(expected)
        self.cause = cause
        if self.expected:
            super().__init__(f"{operation} '{'/'.join(self.expected)}'")
        else:
            super().__init__(operation)

    def __str__(self) -> str:
        return f"{super().__str__()}: {self.cause}"


class UnexpectedLineError(GatewayError):
    """The next line did not contain the expected text.

    Attributes:
        expected: Substring that was required
        line: Line actually received
    """

    def __init__(self, expected: str, line: str):
        super().__init__(f"expected '{expected}' in '{line}'")
        self.expected = expected
        self.line = line


class MessageParseError(GatewayError):
    """A message header line could not be decoded.

    Attributes:
        field: Name of the offending header field
        value: Raw field value
        cause: Underlying parse exception (if any)
    """

    def __init__(self, message: str, field: str, value: str,
                 cause: Optional[Exception] = None):
        super().__init__(message)
        self.field = field
        self.value = value
        self.cause = cause

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.cause:
            return f"{base_msg} (field: {self.field}, cause: {self.cause})"
        return f"{base_msg} (field: {self.field})"
