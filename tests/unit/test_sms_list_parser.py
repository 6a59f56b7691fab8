"""Unit tests for the AT+CMGL reply parser."""

from datetime import datetime, timezone

import pytest

from mv370.core.exceptions import MessageParseError
from mv370.core.message import Message
from mv370.parsers.sms_list import SmsListParser, parse_header, parse_sms_list


HEADER_1 = '+CMGL: 1,"REC READ","+447700900123","","24/03/15,09:41:27+00"'
HEADER_2 = '+CMGL: 2,"REC UNREAD","012345678","","24/03/16,18:00:01+04"'


class TestParseHeader:
    """Test parse_header()."""

    def test_tel_and_time(self):
        """Test telephone and date fields are decoded."""
        msg = parse_header(HEADER_1[len("+CMGL:"):])

        assert msg.tel == "+447700900123"
        assert msg.text == ""
        assert msg.time == datetime(2024, 3, 15, 9, 41, 27, tzinfo=timezone.utc)

    def test_timezone_suffix_ignored(self):
        """Test the zone suffix after the 17 date characters has no effect."""
        msg = parse_header(HEADER_2[len("+CMGL:"):])

        assert msg.time == datetime(2024, 3, 16, 18, 0, 1, tzinfo=timezone.utc)

    def test_short_date_rejected(self):
        """Test a date field shorter than 17 characters fails."""
        with pytest.raises(MessageParseError) as exc_info:
            parse_header(' 1,"REC READ","+1","","24/03/15"')

        assert exc_info.value.field == "time"
        assert exc_info.value.value == "24/03/15"

    def test_malformed_date_rejected(self):
        """Test a date with the right length but wrong shape fails."""
        with pytest.raises(MessageParseError) as exc_info:
            parse_header(' 1,"REC READ","+1","","24-03-15 09:41:27"')

        assert exc_info.value.cause is not None

    def test_missing_date_field_rejected(self):
        """Test a header without a date field fails instead of crashing."""
        with pytest.raises(MessageParseError):
            parse_header(' 1,"REC READ","+1"')


class TestSmsListParser:
    """Test the line-by-line parser state machine."""

    def test_single_message(self):
        """Test one header, one body line, then the terminator."""
        parser = SmsListParser()

        assert parser.feed(HEADER_1) is False
        assert parser.feed("Hello") is False
        assert parser.feed("0") is True

        assert parser.messages == [
            Message(tel="+447700900123", text="Hello",
                    time=datetime(2024, 3, 15, 9, 41, 27, tzinfo=timezone.utc))
        ]

    def test_multi_line_body_joined_with_newline(self):
        """Test body lines after the first are joined with a newline."""
        parser = SmsListParser()
        for line in [HEADER_1, "line one", "line two", "0"]:
            parser.feed(line)

        assert parser.messages[0].text == "line one\nline two"

    def test_first_empty_body_line_not_joined(self):
        """Test an empty first body line is taken as the text as-is."""
        parser = SmsListParser()
        for line in [HEADER_1, "", "after", "0"]:
            parser.feed(line)

        assert parser.messages[0].text == "after"

    def test_header_without_body(self):
        """Test a header immediately followed by the terminator yields empty text."""
        parser = SmsListParser()
        parser.feed(HEADER_1)
        parser.feed("0")

        assert len(parser.messages) == 1
        assert parser.messages[0].text == ""

    def test_empty_list(self):
        """Test a bare terminator yields no messages."""
        parser = SmsListParser()

        assert parser.feed("0") is True
        assert parser.messages == []

    def test_lines_before_first_header_ignored(self):
        """Test echo and blank lines before any header are dropped."""
        parser = SmsListParser()
        for line in ['AT+CMGL="ALL"', "", HEADER_1, "Hi", "0"]:
            parser.feed(line)

        assert [m.text for m in parser.messages] == ["Hi"]

    def test_two_messages_in_order(self):
        """Test messages keep the gateway's listing order."""
        parser = SmsListParser()
        for line in [HEADER_1, "first", HEADER_2, "second", "0"]:
            parser.feed(line)

        assert [(m.tel, m.text) for m in parser.messages] == [
            ("+447700900123", "first"),
            ("012345678", "second"),
        ]

    def test_body_line_with_zero_inside_is_body(self):
        """Test only an exact "0" line terminates."""
        parser = SmsListParser()
        for line in [HEADER_1, "10", " 0", "0"]:
            parser.feed(line)

        assert parser.messages[0].text == "10\n 0"

    def test_parse_error_keeps_earlier_messages(self):
        """Test messages parsed before a bad header survive the failure."""
        parser = SmsListParser()
        parser.feed(HEADER_1)
        parser.feed("kept")

        with pytest.raises(MessageParseError):
            parser.feed('+CMGL: 2,"REC READ","+1","","bad"')

        assert [m.text for m in parser.messages] == ["kept"]

    def test_callable_form(self):
        """Test the parser can be used directly as a read_lines callback."""
        parser = SmsListParser()

        assert parser("0") is True
        assert parser.done is True


class TestParseSmsList:
    """Test parse_sms_list()."""

    def test_strips_line_terminators(self):
        """Test CR/LF endings are removed before parsing."""
        messages = parse_sms_list([HEADER_1 + "\r\n", "Hi\r\n", "0\r\n"])

        assert messages[0].text == "Hi"

    def test_stops_at_terminator(self):
        """Test lines after the terminator are not consumed."""
        lines = iter([HEADER_1, "Hi", "0", "never read"])

        messages = parse_sms_list(lines)

        assert len(messages) == 1
        assert next(lines) == "never read"

    def test_missing_terminator_returns_what_was_parsed(self):
        """Test an input that ends early still yields its messages."""
        messages = parse_sms_list([HEADER_1, "Hi"])

        assert [m.text for m in messages] == ["Hi"]
