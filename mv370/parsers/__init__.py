"""Parsers for gateway replies."""

from .csv_line import parse_csv_line
from .sms_list import SmsListParser, parse_sms_list

__all__ = [
    "parse_csv_line",
    "SmsListParser",
    "parse_sms_list",
]
