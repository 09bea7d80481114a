"""Record parser — one wire line into a LogEvent.

Wire format, one record per line:

    device_id seq_no uptime fd level|msg

The header is five fields separated by single spaces. Everything after the
first ``|`` is the message and is kept as-is.
"""

import re
from datetime import datetime
from decimal import Context, Decimal

from udplog.models import LogEvent
from udplog.timestamps import format_timestamp

MAX_DEVICE_ID_LEN = 50
LEVEL_CHARS = ("E", "W", "I", "D", "V")

_UINT64_MAX = 2**64 - 1
_UINT32_MAX = 2**32 - 1

_DIGITS = re.compile(rb"[0-9]+")
_DECIMAL = re.compile(rb"(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")

_SAFE_BYTES = frozenset(
    b"abcdefghijklmnopqrstuvwxyz"
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    b"0123456789"
    b"-_., "
)
_SANITIZE_TABLE = bytes(c if c in _SAFE_BYTES else ord("_") for c in range(256))


class ParseError(ValueError):
    """Base class for malformed records."""

    kind = "parse_error"


class MissingDelimiterError(ParseError):
    kind = "missing_delimiter"


class MalformedHeaderError(ParseError):
    kind = "malformed_header"


class InvalidDeviceIdError(ParseError):
    kind = "invalid_device_id"


class InvalidSequenceNumberError(ParseError):
    kind = "invalid_sequence_number"


class InvalidUptimeError(ParseError):
    kind = "invalid_uptime"


class InvalidFileDescriptorError(ParseError):
    kind = "invalid_file_descriptor"


class InvalidLevelError(ParseError):
    kind = "invalid_level"


def sanitize_device_id(device_id) -> str:
    """Replace every byte outside [A-Za-z0-9-_., ] with an underscore."""
    if isinstance(device_id, str):
        device_id = device_id.encode("utf-8")
    return device_id.translate(_SANITIZE_TABLE).decode("ascii")


def level_char(level: int) -> str:
    if level < len(LEVEL_CHARS):
        return LEVEL_CHARS[level]
    return str(level % 10)


def _parse_uint(field: bytes, limit: int, error: type, what: str) -> int:
    if not _DIGITS.fullmatch(field):
        raise error(f"invalid {what}: {field!r}")
    digits = field.lstrip(b"0") or b"0"
    # Bound the digit count before int() so huge fields stay cheap.
    if len(digits) > 20 or int(digits) > limit:
        raise error(f"{what} out of range: {field!r}")
    return int(digits)


def _parse_uptime_ms(field: bytes) -> int:
    if not _DECIMAL.fullmatch(field):
        raise InvalidUptimeError(f"invalid uptime: {field!r}")
    try:
        seconds = Decimal(field.decode("ascii"))
        # Largest uint64 has 20 digits; a bigger exponent can't fit. A zero
        # reports its exponent as adjusted(), so it is handled first.
        if seconds.is_zero():
            ms = 0
        elif seconds.adjusted() <= 20:
            ms = int(seconds.scaleb(3, Context(prec=len(field) + 3)))
        else:
            ms = _UINT64_MAX + 1
    except ArithmeticError as exc:
        raise InvalidUptimeError(f"invalid uptime: {field!r}") from exc
    if ms > _UINT64_MAX:
        raise InvalidUptimeError(f"uptime out of range: {field!r}")
    return ms


def parse_line(line, src: str, received_at: datetime, timestamp_format: str = "") -> LogEvent:
    """Parse a single record. Raises a ParseError subclass on bad input.

    *received_at* is the arrival time assigned by the receiver; the date
    fields used for file rotation are derived from it and nothing else.
    """
    if isinstance(line, str):
        line = line.encode("utf-8")

    info, sep, msg = line.partition(b"|")
    if not sep:
        raise MissingDelimiterError("missing msg delimiter")

    parts = info.split(b" ")
    if len(parts) != 5:
        raise MalformedHeaderError(f"invalid number of header fields: {len(parts)}")
    raw_device_id, raw_seq, raw_uptime, raw_fd, raw_level = parts

    if not 0 < len(raw_device_id) <= MAX_DEVICE_ID_LEN:
        raise InvalidDeviceIdError(f"invalid device id length: {len(raw_device_id)}")
    seq_num = _parse_uint(raw_seq, _UINT64_MAX, InvalidSequenceNumberError, "seqnum")
    uptime_ms = _parse_uptime_ms(raw_uptime)
    fd = _parse_uint(raw_fd, _UINT32_MAX, InvalidFileDescriptorError, "fd")
    level = _parse_uint(raw_level, _UINT32_MAX, InvalidLevelError, "level")

    return LogEvent(
        src=src,
        timestamp=received_at,
        device_id=raw_device_id.decode("utf-8", errors="replace"),
        seq_num=seq_num,
        uptime_ms=uptime_ms,
        fd=fd,
        level=level,
        msg=msg.decode("utf-8", errors="replace"),
        timestamp_str=format_timestamp(received_at, timestamp_format),
        device_id_safe=sanitize_device_id(raw_device_id),
        year=f"{received_at.year:04d}",
        month=f"{received_at.month:02d}",
        day=f"{received_at.day:02d}",
        level_char=level_char(level),
    )
