from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional


# Schedule the tool was written for:
#   05:00 UTC = 10:30 IST -> Punch In
#   15:30 UTC = 21:00 IST -> Punch Out
IST = timezone(timedelta(hours=5, minutes=30), "IST")
DEFAULT_CUTOFF_HOUR = 12


class PunchType(Enum):
    IN = "IN"
    OUT = "OUT"

    @property
    def word(self) -> str:
        return "In" if self is PunchType.IN else "Out"

    @property
    def label(self) -> str:
        return f"Punch {self.word}"

    @property
    def description(self) -> str:
        return f"clock {self.word.lower()}"

    @property
    def opposite(self) -> "PunchType":
        return PunchType.OUT if self is PunchType.IN else PunchType.IN

    @classmethod
    def parse(cls, value) -> "PunchType":
        if isinstance(value, cls):
            return value
        text = " ".join(str(value or "").strip().lower().split())
        for prefix in ("punch ", "clock "):
            if text.startswith(prefix):
                text = text[len(prefix):]
        if text == "in":
            return cls.IN
        if text == "out":
            return cls.OUT
        raise ValueError(f"Unknown punch type: {value!r} (expected IN or OUT)")


def punch_type_for_hour(hour: int, cutoff_hour: int = DEFAULT_CUTOFF_HOUR) -> PunchType:
    if not 0 <= hour <= 23:
        raise ValueError(f"hour out of range: {hour}")
    return PunchType.IN if hour < cutoff_hour else PunchType.OUT


def to_ist(now: Optional[datetime] = None) -> datetime:
    """Convert ``now`` to IST. Naive datetimes are taken as UTC."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(IST)


def default_punch_type(now: Optional[datetime] = None, cutoff_hour: int = DEFAULT_CUTOFF_HOUR) -> PunchType:
    return punch_type_for_hour(to_ist(now).hour, cutoff_hour)


def resolve_punch_type(explicit=None, now: Optional[datetime] = None, cutoff_hour: int = DEFAULT_CUTOFF_HOUR):
    """Return ``(punch_type, source)``.

    An explicit value always wins; otherwise the IST time of day decides.
    """
    if explicit:
        return PunchType.parse(explicit), "explicit"
    return default_punch_type(now, cutoff_hour), "schedule"
