"""Comma-delimited field parser for gateway reply lines.

The gateway formats message headers as a single line of comma separated,
optionally double-quoted fields. This is not RFC 4180 CSV: quoted fields
never span lines and escaping is only handled on a best-effort basis.
"""

from typing import List

QUOTE = '"'
DELIMITER = ','


def parse_csv_line(line: str) -> List[str]:
    """Split one line into its fields.

    Commas inside double quotes are literal. Inside quotes a doubled quote
    is folded into a single literal quote. After splitting, at most one
    leading and one trailing quote are trimmed from each field.

    Malformed quoting (e.g. an unterminated quote) is not rejected; the
    line is split as well as the rules above allow.

    Args:
        line: Line without its line terminator

    Returns:
        Field strings in order; empty list for an empty line

    Example:
        >>> parse_csv_line('ONE,"TWO",THREE')
        ['ONE', 'TWO', 'THREE']
        >>> parse_csv_line('1,')
        ['1', '']
    """
    if not line:
        return []

    fields: List[str] = []
    field: List[str] = []
    in_quotes = False

    i = 0
    while i < len(line):
        char = line[i]
        if char == QUOTE:
            if in_quotes and i + 1 < len(line) and line[i + 1] == QUOTE:
                field.append(QUOTE)
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == DELIMITER and not in_quotes:
            fields.append(''.join(field))
            field = []
        else:
            field.append(char)
        i += 1

    fields.append(''.join(field))

    return [trim_quotes(f) for f in fields]


def trim_quotes(value: str) -> str:
    """Remove at most one leading and one trailing double quote."""
    if value.startswith(QUOTE):
        value = value[1:]
    if value.endswith(QUOTE):
        value = value[:-1]
    return value


def clean_field(value: str) -> str:
    """Whitespace-trim a header field and strip one pair of surrounding quotes."""
    value = value.strip()
    if len(value) > 1 and value.startswith(QUOTE) and value.endswith(QUOTE):
        value = value[1:-1]
    return value
