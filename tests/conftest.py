"""Shared fixtures: an in-memory stand-in for TelnetHandler."""

from typing import Dict, List, Optional
import os

import pytest

from mv370.config import ConfigManager
from mv370.core.exceptions import DeadlineExceededError


LOGIN_BANNER = b"MV-370 Telnet Console\r\nusername:"
LOGIN_REPLIES = {
    b"voip\n": b" password:",
    b"1234\n": b"\r\nWelcome\r\ncommand:\r\n",
}


class FakeConnection:
    """Scripted gateway connection.

    ``incoming`` is what the gateway has sent so far. Each write is looked
    up in ``replies`` and the matching bytes are appended to ``incoming``.
    Reads that cannot be satisfied from ``incoming`` fail like an expired
    deadline.
    """

    def __init__(self, host: str = "fake-gateway:23", timeout: float = 10.0, logger=None,
                 incoming: bytes = b"", replies: Optional[Dict[bytes, bytes]] = None):
        self.host = host
        self.timeout = timeout
        self.logger = logger
        self.incoming = bytearray(incoming)
        self.replies = dict(replies or {})
        self.writes: List[bytes] = []
        self.calls: List[str] = []
        self.read_deadlines: List[float] = []
        self.write_deadlines: List[float] = []
        self.close_count = 0
        self.open_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None

    def open(self):
        self.calls.append("open")
        if self.open_error is not None:
            raise self.open_error

    def close(self):
        self.calls.append("close")
        self.close_count += 1

    def set_read_deadline(self, seconds):
        self.calls.append("set_read_deadline")
        self.read_deadlines.append(seconds)

    def set_write_deadline(self, seconds):
        self.calls.append("set_write_deadline")
        self.write_deadlines.append(seconds)

    def write(self, data: bytes) -> int:
        self.calls.append("write")
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(bytes(data))
        self.incoming.extend(self.replies.get(bytes(data), b""))
        return len(data)

    def read_line(self) -> str:
        self.calls.append("read_line")
        index = self.incoming.find(b"\n")
        if index < 0:
            self.incoming.clear()
            raise DeadlineExceededError("read: deadline exceeded")
        line = bytes(self.incoming[:index + 1])
        del self.incoming[:index + 1]
        return line.decode()

    def skip_until(self, *tokens: str) -> str:
        self.calls.append("skip_until")
        matches = [(self.incoming.find(t.encode()) + len(t), t)
                   for t in tokens if self.incoming.find(t.encode()) >= 0]
        if not matches:
            self.incoming.clear()
            raise DeadlineExceededError("read: deadline exceeded")
        end, token = min(matches)
        del self.incoming[:end]
        return token

    @property
    def written(self) -> bytes:
        return b"".join(self.writes)


@pytest.fixture
def fake_conn():
    """A connection with nothing to read."""
    return FakeConnection()


@pytest.fixture
def make_conn():
    """The FakeConnection class, for tests that script their own gateway."""
    return FakeConnection


@pytest.fixture
def gateway_factory():
    """Connection factory producing one logged-in-capable FakeConnection.

    Returns (factory, connections); extra replies are merged over the login
    script, and every connection the factory built is appended to the list.
    """
    def make(replies: Optional[Dict[bytes, bytes]] = None,
             open_error: Optional[Exception] = None):
        connections: List[FakeConnection] = []

        def factory(host, timeout=10.0, logger=None):
            conn = FakeConnection(host=host, timeout=timeout, logger=logger,
                                  incoming=LOGIN_BANNER,
                                  replies={**LOGIN_REPLIES, **(replies or {})})
            conn.open_error = open_error
            connections.append(conn)
            return conn

        return factory, connections

    return make


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """No config files, no MV370_ variables and a fresh ConfigManager.

    The working directory is tmp_path and HOME is tmp_path/home.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for name in list(os.environ):
        if name.startswith("MV370_"):
            monkeypatch.delenv(name)
    ConfigManager.reset()
    yield tmp_path
    ConfigManager.reset()

