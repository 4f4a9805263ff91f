import re
from datetime import datetime, timedelta, timezone

from src.tracker.errors import TimestampParseError

# Reference time used when nothing has been recorded yet
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

# RFC 3339 date-time: full date, "T", full time with seconds, offset
RFC3339_PATTERN = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt]"
    r"(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))?"
)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an RFC 3339 timestamp (e.g. "2024-01-15T10:00:00Z").

    The "T" separator, seconds and UTC offset are mandatory. Fractional
    seconds of any length are accepted and truncated to microseconds.

    Raises:
        TimestampParseError: If the value is not a valid date-time with offset
    """
    if not isinstance(value, str) or not value:
        raise TimestampParseError(value, "empty or not a string")

    match = RFC3339_PATTERN.fullmatch(value)
    if match is None:
        raise TimestampParseError(value)

    year, month, day, hour, minute, second, fraction, zulu, sign, off_h, off_m = match.groups()
    if zulu is None and sign is None:
        raise TimestampParseError(value, "missing UTC offset")

    microsecond = int((fraction or "0")[:6].ljust(6, "0"))

    try:
        if zulu:
            tz = timezone.utc
        else:
            offset = timedelta(hours=int(off_h), minutes=int(off_m))
            tz = timezone(-offset if sign == "-" else offset)
        return datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second), microsecond,
            tzinfo=tz,
        )
    except ValueError as exc:
        raise TimestampParseError(value) from exc


def to_utc(ts: datetime) -> datetime:
    """
    Normalize a datetime to UTC. Naive values are assumed to already be UTC.
    """
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)
