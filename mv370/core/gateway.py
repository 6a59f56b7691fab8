"""MV-370 GSM gateway client.

This module provides the login handshake and the three fixed command
scripts run against the gateway: a liveness check, sending an SMS and
reading (then deleting) the stored messages. Each call opens its own
Session and closes it before returning.
"""

from typing import Callable, Optional, TYPE_CHECKING

from mv370.core.exceptions import DialError
from mv370.core.message import SmsReadResult
from mv370.core.session import Session
from mv370.core.telnet_handler import TelnetHandler
from mv370.parsers.sms_list import SmsListParser

if TYPE_CHECKING:
    from mv370.logging.communication_logger import CommunicationLogger

USERNAME_PROMPT = "username:"
PASSWORD_PROMPT = "password"
COMMAND_PROMPT = "command:"

INFO = "info"
MODEM_MODULE = "module1"
RELEASE_MARKER = "to release"
TEXT_MODE = "at+cmgf=1"
OK = "0"  # numeric result code (ATV0)
SMS_PROMPT = ">"
LIST_ALL = 'AT+CMGL="ALL"'
DELETE_READ = "AT+CMGD=0,1"
CTRL_Z = b"\x1a"

ConnectionFactory = Callable[..., TelnetHandler]


class Mv370Gateway:
    """Client for one MV-370 gateway.

    Example:
        >>> gateway = Mv370Gateway('192.168.100.251:23', 'voip', '1234')
        >>> gateway.send_sms('012345678', 'Hello')
        >>> result = gateway.read_sms()
        >>> for message in result.raise_for_error():
        ...     print(message)
    """

    def __init__(self,
                 host: str,
                 username: str,
                 password: str,
                 timeout: float = 10.0,
                 logger: Optional['CommunicationLogger'] = None,
                 connection_factory: ConnectionFactory = TelnetHandler):
        """Initialize gateway client.

        Args:
            host: Gateway address, "host:port" or "host"
            username: Telnet login username
            password: Telnet login password
            timeout: Deadline in seconds for connect and every read/write step
            logger: Optional CommunicationLogger for session diagnostics
            connection_factory: Builds the connection, called as
                ``connection_factory(host, timeout=..., logger=...)``
        """
        self.host = host
        self.username = username
        self.password = password
        self.timeout = timeout
        self.logger = logger
        self.connection_factory = connection_factory

        if self.logger:
            self.logger.log_event(
                event="New gateway", host=host, source="Mv370Gateway"
            )

    @classmethod
    def connect(cls, host: str, username: str, password: str, **kwargs) -> 'Mv370Gateway':
        """Create a client and verify the gateway answers.

        Raises:
            GatewayError: Liveness check failed
        """
        gateway = cls(host, username, password, **kwargs)
        gateway.check()
        return gateway

    def session(self) -> Session:
        """Open a connection and log in.

        Returns:
            Session ready at the command prompt, or carrying the error of
            the step that failed (dial, prompts or login)
        """
        conn = self.connection_factory(self.host, timeout=self.timeout, logger=self.logger)
        try:
            conn.open()
        except DialError as e:
            return Session(None, timeout=self.timeout, logger=self.logger, error=e)

        if self.logger:
            self.logger.log_event(
                event="New session", host=self.host, source="Mv370Gateway"
            )

        session = Session(conn, timeout=self.timeout, logger=self.logger)
        try:
            return (session
                    .expect(USERNAME_PROMPT)
                    .sendln(self.username)
                    .expect(PASSWORD_PROMPT)
                    .sendln(self.password, secret=True)
                    .wait_line_contains(COMMAND_PROMPT))
        except Exception:
            session.close()
            raise

    def check(self) -> None:
        """Log in and run the info command.

        Raises:
            GatewayError: Any step failed
        """
        with self.session() as session:
            error = (session
                     .sendln(INFO)
                     .expect(INFO)
                     .close())
        if error is not None:
            raise error

    def send_sms(self, tel: str, text: str) -> None:
        """Send one text-mode SMS.

        Args:
            tel: Destination number
            text: Message body (sent as a single line)

        Raises:
            GatewayError: Any step failed
        """
        with self.session() as session:
            error = (session
                     .sendln(MODEM_MODULE)
                     .expect(RELEASE_MARKER)
                     .sendln(TEXT_MODE)
                     .expect(OK)
                     .sendln(f'at+cmgs="{tel}"')
                     .expect(SMS_PROMPT)
                     .sendln(text)
                     .send(CTRL_Z)
                     .close())
        if error is not None:
            raise error

    def read_sms(self) -> SmsReadResult:
        """List all stored messages, then delete the read ones.

        Messages parsed before a failure are returned with the error.

        Returns:
            SmsReadResult with the messages and the session's error
        """
        parser = SmsListParser()

        with self.session() as session:
            error = (session
                     .sendln(MODEM_MODULE)
                     .wait_line_contains(RELEASE_MARKER)
                     .sendln(TEXT_MODE)
                     .expect(OK)
                     .sendln(LIST_ALL)
                     .read_lines(parser)
                     .sendln(DELETE_READ)
                     .expect(OK)
                     .close())

        return SmsReadResult(messages=list(parser.messages), error=error)

    def __repr__(self) -> str:
        return f"Mv370Gateway(host='{self.host}', user='{self.username}', timeout={self.timeout}s)"
