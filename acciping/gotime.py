"""Nanosecond timestamps, duration strings and reference-layout time formatting."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_MILLI = 1_000_000
NANOS_PER_MICRO = 1_000
MINUTE = 60 * NANOS_PER_SECOND
HOUR = 60 * MINUTE

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_MONTHS = [
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
]
_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

_TOKENS = [
    "January", "Jan", "Monday", "Mon", "2006", "01", "02", "03", "04", "05", "06",
    "15", "_2", "Z07:00", "-07:00", "MST", "PM", "pm", "1", "2", "3", "4", "5",
]


@dataclass(frozen=True, order=True)
class Timestamp:
    """An instant in nanoseconds since the Unix epoch, displayed in a time zone."""

    nanos: int
    tz: tzinfo | None = field(default=None, compare=False)

    @classmethod
    def from_unix_millis(cls, millis: int, tz: tzinfo | None = None) -> Timestamp:
        return cls(millis * NANOS_PER_MILLI, tz)

    def unix_millis(self) -> int:
        return self.nanos // NANOS_PER_MILLI

    def add(self, nanos: int) -> Timestamp:
        return Timestamp(self.nanos + nanos, self.tz)

    def sub(self, other: Timestamp) -> int:
        return self.nanos - other.nanos

    def before(self, other: Timestamp) -> bool:
        return self.nanos < other.nanos

    def after(self, other: Timestamp) -> bool:
        return self.nanos > other.nanos

    def in_timezone(self, tz: tzinfo | None) -> Timestamp:
        return Timestamp(self.nanos, tz)

    def format(self, layout: str) -> str:
        return format_time(self, layout)

    def _local(self) -> tuple[datetime, int]:
        seconds, frac = divmod(self.nanos, NANOS_PER_SECOND)
        moment = (_EPOCH + timedelta(seconds=seconds)).astimezone(self.tz or timezone.utc)
        return moment, frac


# The zero instant: 0001-01-01 00:00:00 UTC.
ZERO_TIME = Timestamp(-62_135_596_800 * NANOS_PER_SECOND)


def _frac_digits(value: int, precision: int) -> tuple[str, int]:
    digits: list[str] = []
    printed = False
    for _ in range(precision):
        digit = value % 10
        printed = printed or digit != 0
        if printed:
            digits.append(str(digit))
        value //= 10
    text = "." + "".join(reversed(digits)) if printed else ""
    return text, value


def format_duration(nanos: int) -> str:
    """Render a nanosecond duration such as "1h2m3.5s" or "1.5ms"."""
    if nanos == 0:
        return "0s"
    sign = "-" if nanos < 0 else ""
    value = abs(nanos)
    if value < NANOS_PER_SECOND:
        if value < NANOS_PER_MICRO:
            return f"{sign}{value}ns"
        if value < NANOS_PER_MILLI:
            frac, whole = _frac_digits(value, 3)
            return f"{sign}{whole}{frac}µs"
        frac, whole = _frac_digits(value, 6)
        return f"{sign}{whole}{frac}ms"
    frac, seconds = _frac_digits(value, 9)
    text = f"{seconds % 60}{frac}s"
    minutes = seconds // 60
    if minutes > 0:
        text = f"{minutes % 60}m" + text
        hours = minutes // 60
        if hours > 0:
            text = f"{hours}h" + text
    return sign + text


def _offset(moment: datetime, zulu: bool) -> str:
    delta = moment.utcoffset() or timedelta(0)
    total = int(delta.total_seconds()) // 60
    if total == 0 and zulu:
        return "Z"
    sign = "-" if total < 0 else "+"
    total = abs(total)
    return f"{sign}{total // 60:02d}:{total % 60:02d}"


def _fraction(layout: str, i: int) -> int:
    """Return the end of a fractional-second token starting at i, or -1."""
    if i + 1 >= len(layout) or layout[i + 1] not in "09":
        return -1
    ch = layout[i + 1]
    j = i + 1
    while j < len(layout) and layout[j] == ch:
        j += 1
    if j < len(layout) and layout[j].isdigit():
        return -1
    return j


def format_time(timestamp: Timestamp, layout: str) -> str:
    """Format a timestamp using the reference layout "Mon Jan 2 15:04:05 2006"."""
    moment, frac = timestamp._local()
    out: list[str] = []
    i = 0
    while i < len(layout):
        if layout[i] in ".,":
            end = _fraction(layout, i)
            if end != -1:
                count = min(end - i - 1, 9)
                digits = f"{frac:09d}"[:count]
                if layout[i + 1] == "9":
                    digits = digits.rstrip("0")
                    if digits:
                        out.append(layout[i] + digits)
                else:
                    out.append(layout[i] + digits)
                i = end
                continue
        token = next((t for t in _TOKENS if layout.startswith(t, i)), None)
        if token is None:
            out.append(layout[i])
            i += 1
            continue
        hour12 = moment.hour % 12 or 12
        values = {
            "January": _MONTHS[moment.month - 1],
            "Jan": _MONTHS[moment.month - 1][:3],
            "Monday": _DAYS[moment.weekday()],
            "Mon": _DAYS[moment.weekday()][:3],
            "2006": f"{moment.year:04d}",
            "01": f"{moment.month:02d}",
            "02": f"{moment.day:02d}",
            "03": f"{hour12:02d}",
            "04": f"{moment.minute:02d}",
            "05": f"{moment.second:02d}",
            "06": f"{moment.year % 100:02d}",
            "15": f"{moment.hour:02d}",
            "_2": f"{moment.day:2d}",
            "Z07:00": _offset(moment, True),
            "-07:00": _offset(moment, False),
            "MST": moment.tzname() or "UTC",
            "PM": "PM" if moment.hour >= 12 else "AM",
            "pm": "pm" if moment.hour >= 12 else "am",
            "1": str(moment.month),
            "2": str(moment.day),
            "3": str(hour12),
            "4": str(moment.minute),
            "5": str(moment.second),
        }
        out.append(values[token])
        i += len(token)
    return "".join(out)