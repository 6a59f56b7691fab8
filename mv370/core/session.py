"""Chainable command/response session over a gateway connection.

A Session carries a connection and a sticky error. Every operation returns
the session itself so a whole conversation reads as one chain:

    error = (session
             .sendln("at+cmgf=1")
             .expect("0")
             .close())

The first failing operation stores its error; every later operation is a
no-op that leaves both the connection and the error untouched. close()
still logs out and closes the connection, and hands back the error.
"""

from typing import Callable, Optional, TYPE_CHECKING
import time

from mv370.core.exceptions import (
    GatewayError,
    TransportError,
    SendError,
    ExpectError,
    UnexpectedLineError
)

if TYPE_CHECKING:
    from mv370.core.telnet_handler import TelnetHandler
    from mv370.logging.communication_logger import CommunicationLogger

# Callback for read_lines(): receives one line without CR/LF and returns
# True when reading is done. Raising a GatewayError stops reading and
# becomes the session's error.
ReadLinesFn = Callable[[str], bool]

LOGOUT = "logout"


class Session:
    """One authenticated, single-use conversation with the gateway.

    Attributes:
        conn: Connection (TelnetHandler or compatible); None if dialling failed
        error: Sticky error, None while every operation has succeeded
        timeout: Deadline in seconds applied before each read or write step
        logger: Optional CommunicationLogger
        lines_read: Lines consumed by read_lines()

    Example:
        >>> session = Session(conn, timeout=10.0)
        >>> error = session.sendln("info").expect("info").close()
        >>> error is None
        True
    """

    def __init__(self,
                 conn: Optional['TelnetHandler'],
                 timeout: float = 10.0,
                 logger: Optional['CommunicationLogger'] = None,
                 error: Optional[GatewayError] = None):
        """Initialize session.

        Args:
            conn: Open connection, or None together with ``error``
            timeout: Per-operation deadline in seconds
            logger: Optional CommunicationLogger
            error: Initial sticky error (e.g. the dial error)

        Raises:
            ValueError: Neither a connection nor an error was given
        """
        if conn is None and error is None:
            raise ValueError("Session needs a connection or an error")
        self.conn = conn
        self.timeout = timeout
        self.logger = logger
        self.error: Optional[GatewayError] = None
        self.lines_read = 0
        self._closed = False
        if error is not None:
            self._fail(error)

    @property
    def host(self) -> Optional[str]:
        return getattr(self.conn, 'host', None)

    @property
    def ok(self) -> bool:
        """True while no operation has failed."""
        return self.error is None

    def _fail(self, error: GatewayError) -> None:
        if self.error is not None:
            return
        self.error = error
        if self.logger:
            self.logger.log_error(source="Session", error=str(error),
                                  details={"error_type": type(error).__name__})

    def _log_step(self, operation: str, data: str, started: float) -> None:
        if self.logger:
            self.logger.log_received(
                host=self.host,
                operation=operation,
                data=data,
                status="SUCCESS" if self.error is None else "ERROR",
                elapsed=time.time() - started
            )

    def sendln(self, text: str, secret: bool = False) -> 'Session':
        """Send ``text`` followed by a newline.

        Args:
            text: Line to send
            secret: Mask the text in diagnostics and errors (passwords)
        """
        if self.error is not None:
            return self
        self._write("sendln", (text + "\n").encode('utf-8'), "********" if secret else text)
        return self

    def send(self, data: bytes) -> 'Session':
        """Send raw bytes exactly as given (e.g. Ctrl-Z)."""
        if self.error is not None:
            return self
        self._write("send", bytes(data), data.hex().upper())
        return self

    def _write(self, operation: str, payload: bytes, shown: str) -> None:
        try:
            self.conn.set_write_deadline(self.timeout)
            self.conn.write(payload)
        except TransportError as e:
            self._fail(SendError(operation, shown, e))
            return
        if self.logger:
            self.logger.log_sent(host=self.host, operation=operation, data=shown)

    def expect(self, *tokens: str) -> 'Session':
        """Discard input until one of ``tokens`` appears."""
        if self.error is not None:
            return self
        started = time.time()
        try:
            self.conn.set_read_deadline(self.timeout)
            self.conn.skip_until(*tokens)
        except TransportError as e:
            self._fail(ExpectError("expect", tokens, e))
        self._log_step("expect", "/".join(tokens), started)
        return self

    def expect_line_contains(self, text: str) -> 'Session':
        """Read the next line and require it to contain ``text``."""
        if self.error is not None:
            return self
        started = time.time()
        try:
            self.conn.set_read_deadline(self.timeout)
            line = self.conn.read_line()
        except TransportError as e:
            self._fail(ExpectError("expect_line_contains", [text], e))
        else:
            if text not in line:
                self._fail(UnexpectedLineError(text, line.rstrip("\r\n")))
        self._log_step("expect_line_contains", text, started)
        return self

    def wait_line_contains(self, text: str) -> 'Session':
        """Read lines until one contains ``text``.

        The read deadline is armed once for the whole wait, not per line.
        """
        if self.error is not None:
            return self
        started = time.time()
        try:
            self.conn.set_read_deadline(self.timeout)
            while text not in self.conn.read_line():
                pass
        except TransportError as e:
            self._fail(ExpectError("wait_line_contains", [text], e))
        self._log_step("wait_line_contains", text, started)
        return self

    def read_lines(self, fn: ReadLinesFn) -> 'Session':
        """Feed lines to ``fn`` until it reports done or fails.

        A fresh read deadline is armed before every line. Each line is
        passed without its trailing CR/LF.
        """
        if self.error is not None:
            return self
        started = time.time()
        count = 0
        try:
            while True:
                self.conn.set_read_deadline(self.timeout)
                line = self.conn.read_line().rstrip("\r\n")
                count += 1
                if fn(line):
                    break
        except TransportError as e:
            self._fail(ExpectError("read_lines", [], e))
        except GatewayError as e:
            self._fail(e)
        self.lines_read += count
        self._log_step("read_lines", f"{count} lines", started)
        return self

    def close(self) -> Optional[GatewayError]:
        """Log out, close the connection and return the sticky error.

        Logout and close are best-effort and run even after an error;
        their own failures are not reported. Later calls only return
        the error.
        """
        if not self._closed:
            self._closed = True
            if self.conn is not None:
                self._logout()
            if self.logger:
                self.logger.log_event(
                    event="Session closed",
                    host=self.host,
                    details={"error": str(self.error)} if self.error else None,
                    source="Session"
                )
        return self.error

    def _logout(self) -> None:
        try:
            self.conn.set_write_deadline(self.timeout)
            self.conn.write((LOGOUT + "\n").encode('utf-8'))
        except GatewayError as e:
            if self.logger:
                self.logger.log_event(
                    event="Logout failed", host=self.host,
                    details={"error": str(e)}, level="DEBUG", source="Session"
                )
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Session(host={self.host!r}, {state}, error={self.error!r})"
