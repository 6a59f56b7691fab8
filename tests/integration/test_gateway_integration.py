"""Integration tests against an in-process fake MV-370 over TCP.

The fake gateway speaks just enough of the console to run every
workflow: it offers telnet echo, prompts for credentials, answers the
module/AT commands and keeps a small message store.
"""

from datetime import datetime, timezone
from typing import List, Tuple
import re
import socketserver
import threading
import time

import pytest

from mv370.core.exceptions import DialError, ExpectError, DeadlineExceededError
from mv370.core.gateway import Mv370Gateway
from mv370.core.telnet_handler import TelnetHandler
from mv370.logging import CommunicationLogger
from mv370.config.config_models import LogLevel


pytestmark = pytest.mark.integration

TELNET_COMMAND = re.compile(rb"\xff[\xfb-\xfe].")


class FakeGatewayState:
    """Shared between the server thread and the test."""

    def __init__(self):
        self.lock = threading.Lock()
        self.store: List[Tuple[str, str, str]] = []
        self.sent: List[Tuple[str, str]] = []
        self.negotiation: bytes = b""
        self.logouts = 0
        self.silent_after_login = False


class FakeGatewayHandler(socketserver.StreamRequestHandler):
    """One console session."""

    def setup(self):
        super().setup()
        self.state: FakeGatewayState = self.server.state

    def send(self, data: bytes) -> None:
        self.wfile.write(data)
        self.wfile.flush()

    def readline(self) -> str:
        raw = self.rfile.readline()
        if not raw:
            raise EOFError
        with self.state.lock:
            self.state.negotiation += b"".join(TELNET_COMMAND.findall(raw))
        return TELNET_COMMAND.sub(b"", raw).decode().rstrip("\r\n")

    def handle(self):
        # WILL ECHO, then the login banner
        self.send(b"\xff\xfb\x01MV-370 Telnet Console\r\nusername:")
        try:
            self.readline()
            self.send(b" password:")
            if self.readline() != "1234":
                self.send(b"\r\nLogin incorrect\r\n")
                return
            self.send(b"\r\nWelcome\r\ncommand:\r\n")
            if self.state.silent_after_login:
                while True:
                    self.readline()
            self.serve_commands()
        except EOFError:
            return

    def serve_commands(self):
        while True:
            line = self.readline()
            if line == "info":
                self.send(b"info\r\nMV-370 firmware 1.0\r\ncommand:\r\n")
            elif line == "module1":
                self.send(b"module1\r\nConnected to module1, press ctrl-x to release\r\n")
            elif line.lower() == "at+cmgf=1":
                self.send(b"at+cmgf=1\r\n0\r\n")
            elif line.startswith("at+cmgs="):
                self.send(line.encode() + b"\r\n> ")
                text = self.readline()
                if self.rfile.read(1) != b"\x1a":
                    return
                with self.state.lock:
                    self.state.sent.append((line[len('at+cmgs="'):-1], text))
                self.send(b"\r\n+CMGS: 7\r\n0\r\n")
            elif line == 'AT+CMGL="ALL"':
                self.send(line.encode() + b"\r\n" + self.listing() + b"0\r\n")
            elif line == "AT+CMGD=0,1":
                with self.state.lock:
                    self.state.store.clear()
                self.send(b"AT+CMGD=0,1\r\n0\r\n")
            elif line == "logout":
                with self.state.lock:
                    self.state.logouts += 1
                return

    def listing(self) -> bytes:
        out = b""
        with self.state.lock:
            for index, (tel, when, text) in enumerate(self.state.store, start=1):
                out += (f'+CMGL: {index},"REC READ","{tel}","","{when}+00"\r\n'
                        f'{text}\r\n').encode()
        return out


@pytest.fixture
def fake_gateway():
    """Running fake gateway; yields (address, state)."""
    server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), FakeGatewayHandler)
    server.daemon_threads = True
    server.state = FakeGatewayState()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    host, port = server.server_address
    yield f"{host}:{port}", server.state

    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


def make_gateway(address, password="1234", timeout=3.0, logger=None):
    return Mv370Gateway(address, "voip", password, timeout=timeout, logger=logger)


def wait_for(predicate, timeout=3.0):
    """Poll until the server thread has caught up with the client."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestGatewayIntegration:
    """End-to-end workflows through the real TelnetHandler."""

    def test_check(self, fake_gateway):
        """Test the liveness check logs in, runs info and logs out."""
        address, state = fake_gateway

        make_gateway(address).check()

        assert wait_for(lambda: state.logouts == 1)

    def test_echo_offer_refused(self, fake_gateway):
        """Test the client answers WILL ECHO with DONT ECHO."""
        address, state = fake_gateway

        make_gateway(address).check()

        assert state.negotiation == b"\xff\xfe\x01"

    def test_send_sms(self, fake_gateway):
        """Test a message reaches the gateway with its number and body."""
        address, state = fake_gateway

        make_gateway(address).send_sms("012345678", "Hello from the test")

        assert wait_for(lambda: state.logouts == 1)
        assert state.sent == [("012345678", "Hello from the test")]

    def test_read_sms_then_store_cleared(self, fake_gateway):
        """Test stored messages are returned and read ones deleted."""
        address, state = fake_gateway
        state.store.extend([
            ("+447700900123", "24/03/15,09:41:27", "Hello"),
            ("012345678", "24/03/16,18:00:01", "two\r\nlines"),
        ])
        gateway = make_gateway(address)

        result = gateway.read_sms()

        assert result.is_successful()
        assert [(m.tel, m.text) for m in result.messages] == [
            ("+447700900123", "Hello"),
            ("012345678", "two\nlines"),
        ]
        assert result.messages[0].time == datetime(2024, 3, 15, 9, 41, 27, tzinfo=timezone.utc)
        assert gateway.read_sms().messages == []

    def test_wrong_password(self, fake_gateway):
        """Test a rejected login fails waiting for the command prompt."""
        address, _ = fake_gateway

        with pytest.raises(ExpectError) as exc_info:
            make_gateway(address, password="wrong", timeout=1.0).check()

        assert exc_info.value.operation == "wait_line_contains"

    def test_silent_gateway_times_out(self, fake_gateway):
        """Test a gateway that stops answering fails on the read deadline."""
        address, state = fake_gateway
        state.silent_after_login = True

        with pytest.raises(ExpectError) as exc_info:
            make_gateway(address, timeout=0.5).check()

        assert isinstance(exc_info.value.cause, DeadlineExceededError)

    def test_dial_failure(self):
        """Test a closed port fails with DialError."""
        server = socketserver.TCPServer(("127.0.0.1", 0), socketserver.BaseRequestHandler)
        host, port = server.server_address
        server.server_close()

        with pytest.raises(DialError):
            make_gateway(f"{host}:{port}", timeout=1.0).check()

    def test_session_logging(self, fake_gateway, tmp_path):
        """Test a logged session writes its conversation without the password."""
        address, _ = fake_gateway
        log_file = tmp_path / "session.log"
        logger = CommunicationLogger(log_level=LogLevel.DEBUG, enable_file=True,
                                     enable_console=False, log_file_path=str(log_file))

        make_gateway(address, logger=logger).check()
        logger.close()

        content = log_file.read_text(encoding='utf-8')
        assert "Connection opened" in content
        assert "Sent >> sendln 'info'" in content
        assert "'1234'" not in content
        assert "'********'" in content
        assert "Session closed" in content


def test_handler_reads_lines_directly(fake_gateway):
    """Test TelnetHandler on its own against the banner."""
    address, _ = fake_gateway

    with TelnetHandler(address, timeout=2.0) as conn:
        conn.set_read_deadline(2.0)
        assert conn.read_line() == "MV-370 Telnet Console\r\n"
        assert conn.skip_until("username:") == "username:"
