"""InfluxDB line protocol parser and encoder.

A line has the shape::

    measurement[,tag_key=tag_value...] field_key=field_value[,...] timestamp

Blank lines and ``#`` comment lines are skipped. Parsing is all-or-nothing:
the first malformed line raises ``ParseError`` and no metrics are returned.
"""

import re
from collections.abc import Iterable, Iterator

from influxstream.core.errors import ParseError
from influxstream.core.models import (
    INT64_MAX,
    INT64_MIN,
    UINT64_MAX,
    FieldKind,
    FieldValue,
    Metric,
)

_WHITESPACE = " \t"

# Characters a backslash escapes, per element of a line.
_MEASUREMENT_ESCAPES = ", "
_KEY_ESCAPES = ",= "

_MEASUREMENT_STOPS = "," + _WHITESPACE
_KEY_STOPS = ",=" + _WHITESPACE

_INTEGER = re.compile(r"(-?[0-9]+)i")
_UNSIGNED = re.compile(r"([0-9]+)u")
_FLOAT = re.compile(r"-?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][-+]?[0-9]+)?")
_TIMESTAMP = re.compile(r"-?[0-9]+")

_TRUE_LITERALS = frozenset({"t", "T", "true", "True", "TRUE"})
_FALSE_LITERALS = frozenset({"f", "F", "false", "False", "FALSE"})


class _LineError(Exception):
    """Raised inside a single line; converted to ParseError with position."""


def _read_escaped(line: str, pos: int, stops: str, escapes: str) -> tuple[str, int]:
    """Read an identifier up to the first unescaped stop character.

    A backslash followed by a character in ``escapes`` or by another backslash
    yields that character. Any other backslash is kept literally.
    """
    chars: list[str] = []
    length = len(line)
    while pos < length:
        ch = line[pos]
        if ch == "\\" and pos + 1 < length:
            nxt = line[pos + 1]
            if nxt in escapes or nxt == "\\":
                chars.append(nxt)
                pos += 2
                continue
            chars.append(ch)
            pos += 1
            continue
        if ch in stops:
            break
        chars.append(ch)
        pos += 1
    return "".join(chars), pos


def _skip_whitespace(line: str, pos: int) -> int:
    while pos < len(line) and line[pos] in _WHITESPACE:
        pos += 1
    return pos


def _read_string_value(line: str, pos: int) -> tuple[str, int]:
    """Read a double-quoted string starting at the opening quote."""
    chars: list[str] = []
    pos += 1
    length = len(line)
    while pos < length:
        ch = line[pos]
        if ch == "\\" and pos + 1 < length and line[pos + 1] in '"\\':
            chars.append(line[pos + 1])
            pos += 2
            continue
        if ch == '"':
            pos += 1
            if pos < length and line[pos] not in "," + _WHITESPACE:
                raise _LineError("unescaped double quote in string field value")
            return "".join(chars), pos
        chars.append(ch)
        pos += 1
    raise _LineError("unterminated string field value")


def _parse_bare_value(key: str, token: str) -> FieldValue:
    """Classify an unquoted field value token."""
    if not token:
        raise _LineError(f"field {key!r} has no value")
    match = _INTEGER.fullmatch(token)
    if match:
        value = int(match.group(1))
        if not INT64_MIN <= value <= INT64_MAX:
            raise _LineError(f"integer value for field {key!r} is out of range")
        return FieldValue.int64(value)
    match = _UNSIGNED.fullmatch(token)
    if match:
        value = int(match.group(1))
        if value > UINT64_MAX:
            raise _LineError(f"unsigned value for field {key!r} is out of range")
        return FieldValue.uint64(value)
    if _FLOAT.fullmatch(token):
        number = float(token)
        if number in (float("inf"), float("-inf")):
            raise _LineError(f"float value for field {key!r} is out of range")
        return FieldValue.float64(number)
    if token in _TRUE_LITERALS:
        return FieldValue.boolean(True)
    if token in _FALSE_LITERALS:
        return FieldValue.boolean(False)
    raise _LineError(f"invalid value {token!r} for field {key!r}")


def _parse_tags(line: str, pos: int) -> tuple[list[tuple[str, str]], int]:
    """Parse a tag set; ``pos`` points at the comma after the measurement."""
    tags: list[tuple[str, str]] = []
    while pos < len(line) and line[pos] == ",":
        key, pos = _read_escaped(line, pos + 1, _KEY_STOPS, _KEY_ESCAPES)
        if not key:
            raise _LineError("empty tag key")
        if pos >= len(line) or line[pos] != "=":
            raise _LineError(f"tag {key!r} is missing a value")
        value, pos = _read_escaped(line, pos + 1, _KEY_STOPS, _KEY_ESCAPES)
        if pos < len(line) and line[pos] == "=":
            raise _LineError(f"unescaped '=' in value of tag {key!r}")
        if not value:
            raise _LineError(f"tag {key!r} has an empty value")
        tags.append((key, value))
    return tags, pos


def _parse_fields(line: str, pos: int) -> tuple[list[tuple[str, FieldValue]], int]:
    """Parse a field set starting at the first field key."""
    fields: list[tuple[str, FieldValue]] = []
    while True:
        key, pos = _read_escaped(line, pos, _KEY_STOPS, _KEY_ESCAPES)
        if not key:
            raise _LineError("empty field key")
        if pos >= len(line) or line[pos] != "=":
            raise _LineError(f"field {key!r} is missing a value")
        pos += 1
        if pos < len(line) and line[pos] == '"':
            text, pos = _read_string_value(line, pos)
            fields.append((key, FieldValue.string(text)))
        else:
            start = pos
            while pos < len(line) and line[pos] not in "," + _WHITESPACE:
                pos += 1
            fields.append((key, _parse_bare_value(key, line[start:pos])))
        if pos < len(line) and line[pos] == ",":
            pos += 1
            continue
        return fields, pos


def _parse_timestamp(line: str, pos: int) -> int:
    pos = _skip_whitespace(line, pos)
    if pos >= len(line):
        raise _LineError("missing timestamp")
    start = pos
    while pos < len(line) and line[pos] not in _WHITESPACE:
        pos += 1
    token = line[start:pos]
    if _skip_whitespace(line, pos) < len(line):
        raise _LineError("unexpected content after timestamp")
    if not _TIMESTAMP.fullmatch(token):
        raise _LineError(f"invalid timestamp {token!r}")
    timestamp = int(token)
    if not INT64_MIN <= timestamp <= INT64_MAX:
        raise _LineError(f"timestamp {token} is out of range")
    return timestamp


def parse_line(line: str) -> Metric:
    """Parse one non-blank, non-comment line into a Metric.

    Raises:
        ParseError: If the line is malformed.
    """
    try:
        return _parse_line(line)
    except _LineError as exc:
        raise ParseError(str(exc), line=line) from None


def _parse_line(line: str) -> Metric:
    name, pos = _read_escaped(line, 0, _MEASUREMENT_STOPS, _MEASUREMENT_ESCAPES)
    if not name:
        raise _LineError("missing measurement name")

    tags: list[tuple[str, str]] | None = None
    if pos < len(line) and line[pos] == ",":
        tags, pos = _parse_tags(line, pos)

    pos = _skip_whitespace(line, pos)
    if pos >= len(line):
        raise _LineError("missing field set")

    fields, pos = _parse_fields(line, pos)
    timestamp = _parse_timestamp(line, pos)

    return Metric(
        name=name,
        fields=tuple(fields),
        timestamp=timestamp,
        tags=tuple(tags) if tags is not None else None,
    )


def _split_lines(text: str) -> Iterator[tuple[int, str]]:
    """Split text into lines, keeping newlines inside quoted field values.

    Yields each line with the 1-based number of the physical line it starts
    on. A double quote opens a string only directly after the ``=`` of a
    field; comment lines end at the next newline whatever they contain.
    """
    length = len(text)
    line_start = pos = 0
    line_number = physical = 1
    in_fields = in_string = in_comment = seen_content = False
    previous = ""
    while pos < length:
        ch = text[pos]
        if in_string:
            if ch == "\\" and pos + 1 < length and text[pos + 1] in '"\\':
                pos += 2
                continue
            if ch == "\n":
                physical += 1
            elif ch == '"':
                in_string = False
                previous = ch
            pos += 1
            continue
        if ch == "\n":
            yield line_number, text[line_start:pos]
            physical += 1
            line_number = physical
            line_start = pos + 1
            in_fields = in_comment = seen_content = False
            previous = ""
            pos += 1
            continue
        if in_comment:
            pos += 1
            continue
        if ch == "\\" and pos + 1 < length and text[pos + 1] in _KEY_ESCAPES + "\\":
            seen_content = True
            previous = ""
            pos += 2
            continue
        if ch in _WHITESPACE:
            in_fields = in_fields or seen_content
        elif not seen_content and ch == "#":
            in_comment = True
        elif ch == '"' and in_fields and previous == "=":
            in_string = True
        seen_content = seen_content or ch not in _WHITESPACE
        previous = ch
        pos += 1
    yield line_number, text[line_start:]


def parse_line_protocol(text: str) -> list[Metric]:
    """Parse line protocol text into metrics, in input order.

    Args:
        text: Line protocol, one point per line. A quoted string field value
            may span several lines.

    Returns:
        List of Metric objects. Empty list for empty input.

    Raises:
        ParseError: On the first malformed line, with its 1-based line number.
    """
    metrics: list[Metric] = []
    for line_number, raw_line in _split_lines(text):
        if raw_line.endswith("\r"):
            raw_line = raw_line[:-1]
        line = raw_line.lstrip(_WHITESPACE)
        if not line or line.startswith("#"):
            continue
        try:
            metrics.append(_parse_line(line))
        except _LineError as exc:
            raise ParseError(str(exc), line_number=line_number, line=line) from None
    return metrics


def _escape(text: str, escapes: str) -> str:
    text = text.replace("\\", "\\\\")
    for ch in escapes:
        text = text.replace(ch, "\\" + ch)
    return text


def _encode_field_value(value: FieldValue) -> str:
    if value.kind is FieldKind.INT64:
        return f"{value.value}i"
    if value.kind is FieldKind.UINT64:
        return f"{value.value}u"
    if value.kind is FieldKind.STRING:
        escaped = str(value.value).replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return str(value)


def encode_line(metric: Metric) -> str:
    """Encode a metric as one line of line protocol, without the line end.

    Newlines in string field values are written verbatim inside the quotes.
    """
    parts = [_escape(metric.name, _MEASUREMENT_ESCAPES)]
    for key, value in metric.tags or ():
        parts.append(f",{_escape(key, _KEY_ESCAPES)}={_escape(value, _KEY_ESCAPES)}")
    fields = ",".join(
        f"{_escape(key, _KEY_ESCAPES)}={_encode_field_value(value)}"
        for key, value in metric.fields
    )
    return f"{''.join(parts)} {fields} {metric.timestamp}"


def encode_lines(metrics: Iterable[Metric]) -> str:
    """Encode metrics to line protocol.

    Returns:
        One line per metric, newline-terminated. Empty string if no metrics.
    """
    lines = [encode_line(metric) for metric in metrics]
    if not lines:
        return ""
    return "\n".join(lines) + "\n"
