"""Timestamp format names and rendering.

Named formats mirror the layouts most log tools understand (``StampMilli``,
``RFC3339``, ...). Anything that is not a known name is used verbatim as a
strftime pattern. Patterns may use a few extra directives on top of strftime:

    %3f  milliseconds (3 digits)
    %6f  microseconds (6 digits, same as %f)
    %9f  nanoseconds (9 digits, sub-microsecond part is always zero)
    %e   day of month, space-padded
    %:z  UTC offset as +HH:MM, or Z when the offset is zero
"""

import re
from datetime import datetime, timedelta

NAMED_FORMATS = {
    "": "",
    "none": "",
    "UnixDate": "%a %b %e %H:%M:%S %Z %Y",
    "RubyDate": "%a %b %d %H:%M:%S %z %Y",
    "RFC822": "%d %b %y %H:%M %Z",
    "RFC822Z": "%d %b %y %H:%M %z",
    "RFC850": "%A, %d-%b-%y %H:%M:%S %Z",
    "RFC1123": "%a, %d %b %Y %H:%M:%S %Z",
    "RFC1123Z": "%a, %d %b %Y %H:%M:%S %z",
    "RFC3339": "%Y-%m-%dT%H:%M:%S%:z",
    "RFC3339Nano": "%Y-%m-%dT%H:%M:%S.%9f%:z",
    "Kitchen": "%I:%M%p",
    "Stamp": "%b %e %H:%M:%S",
    "StampMilli": "%b %e %H:%M:%S.%3f",
    "StampMicro": "%b %e %H:%M:%S.%6f",
    "StampNano": "%b %e %H:%M:%S.%9f",
}

_EXTRA_DIRECTIVES = re.compile(r"%(?:%|[369]f|e|:z)")


def resolve_timestamp_format(name: str) -> str:
    """Return the strftime pattern for a format name; unknown names are patterns."""
    return NAMED_FORMATS.get(name, name)


def _iso_offset(ts: datetime) -> str:
    offset = ts.utcoffset()
    if offset is None:
        return ""
    if offset == timedelta(0):
        return "Z"
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def format_timestamp(ts: datetime, pattern: str) -> str:
    """Render *ts* with *pattern*; an empty pattern yields an empty string."""
    if not pattern:
        return ""

    def expand(match: re.Match) -> str:
        directive = match.group(0)
        if directive == "%%":
            return directive
        if directive == "%3f":
            return f"{ts.microsecond // 1000:03d}"
        if directive == "%6f":
            return f"{ts.microsecond:06d}"
        if directive == "%9f":
            return f"{ts.microsecond * 1000:09d}"
        if directive == "%e":
            return f"{ts.day:2d}"
        return _iso_offset(ts)

    return ts.strftime(_EXTRA_DIRECTIVES.sub(expand, pattern))
