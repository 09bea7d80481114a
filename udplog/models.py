"""Data model for parsed log records."""

from dataclasses import dataclass, fields
from datetime import datetime


@dataclass(frozen=True)
class LogEvent:
    """One parsed record, as received from a device."""

    src: str
    timestamp: datetime
    device_id: str
    seq_num: int
    uptime_ms: int
    fd: int
    level: int
    msg: str
    # Derived.
    timestamp_str: str  # Rendered with the configured timestamp format
    device_id_safe: str  # Sanitized, suitable for use in file names
    year: str  # YYYY
    month: str  # MM
    day: str  # DD
    level_char: str  # E, W, I, D, V

    def as_dict(self) -> dict:
        return {name: getattr(self, name) for name in TEMPLATE_FIELDS}


TEMPLATE_FIELDS = tuple(f.name for f in fields(LogEvent))

# Fields that are safe to use in file system paths.
PATH_FIELDS = ("device_id_safe", "year", "month", "day")
