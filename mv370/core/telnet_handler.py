"""Telnet I/O handler for the gateway console.

This module provides the byte-stream connection a Session drives: a TCP
pipe opened through pyserial's ``socket://`` URL handler, with telnet
option negotiation refused and absolute read/write deadlines.
"""

from typing import Optional, Tuple, TYPE_CHECKING
import socket
import time

import serial
from serial.serialutil import Timeout
from serial.urlhandler import protocol_socket

from mv370.core.exceptions import (
    DialError,
    TransportError,
    DeadlineExceededError,
    ConnectionClosedError
)

if TYPE_CHECKING:
    from mv370.logging.communication_logger import CommunicationLogger

DEFAULT_PORT = 23

# Telnet commands (RFC 854)
IAC = 0xFF
DONT = 0xFE
DO = 0xFD
WONT = 0xFC
WILL = 0xFB
SB = 0xFA
SE = 0xF0

LF = b"\n"


def split_host_port(address: str) -> Tuple[str, int]:
    """Split "host:port" (or "[v6]:port", or a bare host) into its parts.

    Raises:
        ValueError: Port is not a number
    """
    if address.startswith('['):
        host, _, rest = address[1:].partition(']')
        port = rest[1:] if rest.startswith(':') else ''
    elif address.count(':') == 1:
        host, port = address.split(':')
    else:
        host, port = address, ''
    return host, int(port) if port else DEFAULT_PORT


class SocketPort(protocol_socket.Serial):
    """pyserial ``socket://`` port whose TCP connect uses ``connect_timeout``.

    The stock handler dials with a fixed five second timeout; everything
    after the connect is left to pyserial.
    """

    def __init__(self, *args, connect_timeout: Optional[float] = None, **kwargs):
        # set before SerialBase.__init__, which opens the port
        self.connect_timeout = connect_timeout
        super().__init__(*args, **kwargs)

    def open(self) -> None:
        """Connect, then switch the socket to non-blocking like pyserial.

        Raises:
            serial.SerialException: Bad URL or the connection failed
        """
        self.logger = None
        if self._port is None:
            raise serial.SerialException("Port must be configured before it can be used.")
        if self.is_open:
            raise serial.SerialException("Port is already open.")

        timeout = self.connect_timeout
        if timeout is None:
            timeout = protocol_socket.POLL_TIMEOUT
        try:
            self._socket = socket.create_connection(self.from_url(self.portstr), timeout=timeout)
        except OSError as e:
            self._socket = None
            raise serial.SerialException(f"Could not open port {self.portstr}: {e}") from e

        self._socket.setblocking(False)
        self._reconfigure_port()
        self.is_open = True
        if not self._dsrdtr:
            self._update_dtr_state()
        if not self._rtscts:
            self._update_rts_state()
        self.reset_input_buffer()
        self.reset_output_buffer()


class TelnetHandler:
    """Manages one telnet connection to the gateway.

    Incoming IAC sequences are stripped and answered with a refusal
    (WILL -> DONT, DO -> WONT). Outgoing data is sent verbatim apart from
    doubling 0xFF; "\\n" is not expanded to "\\r\\n".

    Deadlines are absolute: set_read_deadline(10) bounds every read made
    during the next ten seconds, however many there are.

    Example:
        >>> conn = TelnetHandler('192.168.100.251:23', timeout=10.0)
        >>> conn.open()
        >>> conn.set_read_deadline(10.0)
        >>> conn.skip_until('username:')
        'username:'
        >>> conn.close()
    """

    def __init__(self,
                 host: str,
                 timeout: float = 10.0,
                 logger: Optional['CommunicationLogger'] = None):
        """Initialize handler with the gateway address.

        Args:
            host: Gateway address, "host:port" or "host" (port 23)
            timeout: Default deadline in seconds for open, reads and writes
            logger: Optional CommunicationLogger for connection events
        """
        self.host = host
        self.timeout = timeout
        self.logger = logger
        self._serial: Optional[serial.SerialBase] = None
        self._buffer = bytearray()
        self._iac_carry = bytearray()
        self._read_deadline: Optional[Timeout] = None
        self._write_deadline: Optional[Timeout] = None
        self._open_time: Optional[float] = None

    @property
    def url(self) -> str:
        """pyserial URL of the gateway."""
        host, port = split_host_port(self.host)
        if ':' in host:
            host = f"[{host}]"
        return f"socket://{host}:{port}"

    def open(self) -> None:
        """Connect to the gateway.

        Raises:
            DialError: Address is invalid or the connection failed
        """
        if self._serial is not None and self._serial.is_open:
            return

        try:
            self._serial = SocketPort(
                self.url,
                timeout=self.timeout,
                write_timeout=self.timeout,
                connect_timeout=self.timeout
            )
        except (serial.SerialException, ValueError) as e:
            self._serial = None
            if self.logger:
                self.logger.log_error(
                    source="TelnetHandler",
                    error=f"Failed to connect: {e}",
                    details={"host": self.host, "error_type": type(e).__name__}
                )
            raise DialError(f"Failed to connect to {self.host}", self.host, e) from e

        self._buffer.clear()
        self._iac_carry.clear()
        self._open_time = time.time()
        if self.logger:
            self.logger.log_event(
                event="Connection opened",
                host=self.host,
                details={"timeout": self.timeout}
            )

    def close(self) -> None:
        """Close the connection. Safe to call multiple times."""
        if self._serial is None:
            return

        try:
            self._serial.close()
        except serial.SerialException as e:
            if self.logger:
                self.logger.log_error(
                    source="TelnetHandler",
                    error=f"Error closing connection: {e}",
                    details={"host": self.host}
                )
        finally:
            self._serial = None
            if self.logger:
                duration = time.time() - self._open_time if self._open_time else None
                self.logger.log_event(
                    event="Connection closed",
                    host=self.host,
                    details={"session_duration_seconds": duration} if duration else None
                )
            self._open_time = None

    def is_connected(self) -> bool:
        """Check if the connection is open."""
        return self._serial is not None and self._serial.is_open

    def set_read_deadline(self, seconds: float) -> None:
        """Arm the deadline for all following reads.

        Raises:
            TransportError: Connection not open
        """
        self._require_open()
        self._read_deadline = Timeout(seconds)

    def set_write_deadline(self, seconds: float) -> None:
        """Arm the deadline for all following writes.

        Raises:
            TransportError: Connection not open
        """
        self._require_open()
        self._write_deadline = Timeout(seconds)

    def write(self, data: bytes) -> int:
        """Write bytes to the gateway.

        Returns:
            Number of bytes of ``data`` written

        Raises:
            DeadlineExceededError: Write deadline passed
            TransportError: Connection not open or write failed
        """
        port = self._require_open()
        deadline = self._write_deadline
        if deadline is not None and deadline.expired():
            raise DeadlineExceededError(f"write to {self.host}: deadline exceeded")

        port.write_timeout = deadline.time_left() if deadline is not None else None
        try:
            port.write(bytes(data).replace(b"\xff", b"\xff\xff"))
        except serial.SerialTimeoutException as e:
            raise DeadlineExceededError(f"write to {self.host}: deadline exceeded") from e
        except serial.SerialException as e:
            raise TransportError(f"write to {self.host} failed: {e}") from e
        return len(data)

    def read_line(self) -> str:
        """Read up to and including the next "\\n".

        Returns:
            Decoded line with its terminator

        Raises:
            DeadlineExceededError: Read deadline passed before a full line
            ConnectionClosedError: Gateway closed the connection
            TransportError: Read failed
        """
        while True:
            index = self._buffer.find(LF)
            if index >= 0:
                line = bytes(self._buffer[:index + 1])
                del self._buffer[:index + 1]
                return line.decode('utf-8', errors='replace')
            self._fill()

    def skip_until(self, *tokens: str) -> str:
        """Discard input until one of ``tokens`` has been read.

        Input up to and including the matched token is consumed.

        Returns:
            The token that matched first

        Raises:
            ValueError: No tokens given
            DeadlineExceededError: Read deadline passed before a match
            ConnectionClosedError: Gateway closed the connection
            TransportError: Read failed
        """
        if not tokens:
            raise ValueError("skip_until needs at least one token")
        encoded = [(token, token.encode('utf-8')) for token in tokens]
        keep = max(len(raw) for _, raw in encoded) - 1

        while True:
            best = None
            for token, raw in encoded:
                index = self._buffer.find(raw)
                if index >= 0 and (best is None or index + len(raw) < best[1]):
                    best = (token, index + len(raw))
            if best is not None:
                del self._buffer[:best[1]]
                return best[0]

            if len(self._buffer) > keep:
                del self._buffer[:len(self._buffer) - keep]
            self._fill()

    def _fill(self) -> None:
        """Read at least one byte into the buffer, honouring the read deadline."""
        port = self._require_open()
        deadline = self._read_deadline

        while True:
            if deadline is not None and deadline.expired():
                raise DeadlineExceededError(f"read from {self.host}: deadline exceeded")
            port.timeout = deadline.time_left() if deadline is not None else None

            try:
                data = port.read(max(1, port.in_waiting))
            except serial.SerialException as e:
                if 'disconnected' in str(e).lower():
                    raise ConnectionClosedError(f"{self.host} closed the connection") from e
                raise TransportError(f"read from {self.host} failed: {e}") from e

            if not data:
                raise DeadlineExceededError(f"read from {self.host}: deadline exceeded")

            clean = self._strip_iac(data)
            if clean:
                self._buffer.extend(clean)
                return

    def _strip_iac(self, data: bytes) -> bytes:
        """Remove telnet commands from ``data``, refusing every option offered.

        Incomplete sequences at the end of ``data`` are kept for the next call.
        """
        buf = self._iac_carry + data
        self._iac_carry = bytearray()
        clean = bytearray()

        i = 0
        while i < len(buf):
            if buf[i] != IAC:
                clean.append(buf[i])
                i += 1
                continue

            if i + 1 >= len(buf):
                self._iac_carry = buf[i:]
                break

            cmd = buf[i + 1]
            if cmd == IAC:
                clean.append(IAC)
                i += 2
            elif cmd in (WILL, WONT, DO, DONT):
                if i + 2 >= len(buf):
                    self._iac_carry = buf[i:]
                    break
                self._refuse(cmd, buf[i + 2])
                i += 3
            elif cmd == SB:
                end = buf.find(bytes([IAC, SE]), i + 2)
                if end < 0:
                    self._iac_carry = buf[i:]
                    break
                i = end + 2
            else:
                i += 2

        return bytes(clean)

    def _refuse(self, cmd: int, option: int) -> None:
        if cmd == WILL:
            reply = bytes([IAC, DONT, option])
        elif cmd == DO:
            reply = bytes([IAC, WONT, option])
        else:
            return

        try:
            self._serial.write(reply)
        except serial.SerialException as e:
            # the next data write reports the broken connection
            if self.logger:
                self.logger.log_error(
                    source="TelnetHandler",
                    error=f"Failed to refuse telnet option {option}: {e}",
                    details={"host": self.host}
                )

    def _require_open(self) -> serial.SerialBase:
        if self._serial is None or not self._serial.is_open:
            raise TransportError(f"connection to {self.host} is not open")
        return self._serial

    def __enter__(self):
        """Context manager entry: connect."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit: close."""
        self.close()
        return False

    def __repr__(self) -> str:
        status = "open" if self.is_connected() else "closed"
        return f"TelnetHandler(host='{self.host}', timeout={self.timeout}, status={status})"
