"""Parser for the gateway's reply to AT+CMGL (list messages).

The reply is a sequence of lines: a ``+CMGL:`` header per message, followed
by its body lines, and finally a line holding just the terminator ``0``.
SmsListParser reassembles those lines into Message records one line at a
time, so it can be driven directly by Session.read_lines() or folded over
any iterable of lines with parse_sms_list().
"""

from datetime import datetime
from typing import Iterable, List
import logging

from mv370.core.exceptions import MessageParseError
from mv370.core.message import Message, utc
from mv370.parsers.csv_line import parse_csv_line, clean_field

logger = logging.getLogger(__name__)

HEADER_PREFIX = "+CMGL:"
TERMINATOR = "0"

# Header fields: index, box, telephone, unknown, date-time
TEL_FIELD = 2
TIME_FIELD = 4

# "YY/MM/DD,HH:MM:SS" followed by a timezone suffix that is ignored
DATE_FORMAT = "%y/%m/%d,%H:%M:%S"
DATE_LENGTH = 17


class SmsListParser:
    """Line-by-line state machine for a message list reply.

    State is the list of messages built so far; only the last one is ever
    extended. Every message is an immutable Message; appending a body line
    replaces the last entry with an extended copy.

    Example:
        >>> parser = SmsListParser()
        >>> parser.feed('+CMGL: 1,"REC READ","+447700900123","","24/01/02,03:04:05+00"')
        False
        >>> parser.feed('Hello')
        False
        >>> parser.feed('0')
        True
        >>> parser.messages[0].text
        'Hello'
    """

    def __init__(self):
        self.messages: List[Message] = []
        self.done = False

    def feed(self, line: str) -> bool:
        """Consume one reply line.

        Args:
            line: Line with its CR/LF terminator removed

        Returns:
            True once the terminator line has been seen

        Raises:
            MessageParseError: Header line with a missing or malformed date
        """
        if line.startswith(HEADER_PREFIX):
            self.messages.append(parse_header(line[len(HEADER_PREFIX):]))
        elif line == TERMINATOR:
            self.done = True
        elif self.messages:
            self.messages[-1] = self.messages[-1].with_line(line)
        else:
            logger.debug("Ignoring line before first header: %r", line)
        return self.done

    def __call__(self, line: str) -> bool:
        """Callback form for Session.read_lines()."""
        return self.feed(line)


def parse_header(fields_text: str) -> Message:
    """Build an empty-bodied Message from the text after ``+CMGL:``.

    Raises:
        MessageParseError: Date field missing, shorter than 17 characters
            or not in YY/MM/DD,HH:MM:SS form
    """
    fields = [clean_field(f) for f in parse_csv_line(fields_text)]

    tel = fields[TEL_FIELD] if len(fields) > TEL_FIELD else ""

    if len(fields) <= TIME_FIELD:
        raise MessageParseError("missing date", field="time", value="")
    raw_time = fields[TIME_FIELD]
    if len(raw_time) < DATE_LENGTH:
        raise MessageParseError(f"invalid date '{raw_time}'", field="time", value=raw_time)
    try:
        timestamp = datetime.strptime(raw_time[:DATE_LENGTH], DATE_FORMAT)
    except ValueError as e:
        raise MessageParseError(
            f"invalid date '{raw_time}'", field="time", value=raw_time, cause=e
        ) from e

    return Message(tel=tel, text="", time=utc(timestamp))


def parse_sms_list(lines: Iterable[str]) -> List[Message]:
    """Fold a complete list reply into messages.

    Stops at the terminator; lines after it are not consumed.

    Raises:
        MessageParseError: A header line could not be decoded
    """
    parser = SmsListParser()
    for line in lines:
        if parser.feed(line.rstrip("\r\n")):
            break
    return parser.messages
