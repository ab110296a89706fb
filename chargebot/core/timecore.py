import re
from datetime import datetime, timezone, timedelta

_WINDOW_RE = re.compile(r"^(\d{1,2}):(\d{2})(Z|[+-]\d{2}:?\d{2})?$", re.IGNORECASE)


def now_utc():
    return datetime.now(timezone.utc)

def now_utc_ts():
    return int(now_utc().timestamp())

def parse_window_start(text):
    """
    "HH:MM", "HH:MMZ", "HH:MM+02:00", "HH:MM-0500" -> (hour, minute, tzinfo)
    No suffix means UTC.
    """
    m = _WINDOW_RE.match((text or "").strip())
    if not m:
        raise ValueError(f"invalid window start time: {text!r}")

    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"invalid window start time: {text!r}")

    suffix = (m.group(3) or "Z").upper()
    if suffix == "Z":
        return hour, minute, timezone.utc

    sign = -1 if suffix[0] == "-" else 1
    digits = suffix[1:].replace(":", "")
    offset_hours, offset_minutes = int(digits[:2]), int(digits[2:])
    if offset_hours > 23 or offset_minutes > 59:
        raise ValueError(f"invalid UTC offset in window start time: {text!r}")
    offset = timedelta(hours=offset_hours, minutes=offset_minutes)
    return hour, minute, timezone(sign * offset)

def format_duration(seconds):
    seconds = max(0.0, float(seconds))
    minutes = seconds / 60
    hours = minutes / 60
    if hours >= 1:
        return f"{hours:.1f} hours"
    if minutes >= 1:
        return f"{minutes:.0f} minutes"
    return f"{seconds:.0f} seconds"

def to_iso(dt):
    return dt.astimezone(timezone.utc).isoformat() if dt is not None else None

def from_iso(text):
    if not text:
        return None
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
