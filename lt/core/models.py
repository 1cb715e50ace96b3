"""Exercise, session and settings records. Pure data, no I/O."""

import math
from dataclasses import dataclass, field, replace
from lt.util import now_iso, parse_iso, WEIGHT_UNITS

DEFAULT_EXERCISES = sorted([
    "Chest Press",
    "Shoulder Press",
    "Lat Pull Down",
    "Seated Row",
    "Leg Press",
])

# Countdown thresholds offered by the table header, in seconds.
COUNTDOWN_CHOICES = (5, 10, 15, 20, 30)


# Lenient numeric coercion for persisted data. Returns None for missing, non-numeric or non-finite values
# (JSON happily round-trips Infinity and NaN).
def _coerce_number(value):
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class Session:
    """One completed set. Never mutated once created by the timer flow."""
    weight: float
    time_under_load: int | None
    timestamp: str
    id: str | None = None

    # Identity used to match the same set across stores and repeated upserts. Ids are deliberately ignored since
    # a locally created session has none until the remote store assigns one.
    @property
    def key(self):
        instant = parse_iso(self.timestamp)
        return (instant if instant is not None else self.timestamp, float(self.weight), self.time_under_load)

    def to_dict(self):
        data = {
            "weight": self.weight,
            "timeUnderLoad": self.time_under_load,
            "timestamp": self.timestamp,
        }
        if self.id is not None:
            data["id"] = self.id
        return data

    @staticmethod
    def from_dict(data):
        if not isinstance(data, dict):
            raise TypeError(f"Session record must be an object, got {type(data).__name__}")
        timestamp = data.get("timestamp")
        if not isinstance(timestamp, str) or not timestamp:
            raise ValueError("Session record is missing its timestamp")
        weight = _coerce_number(data.get("weight"))
        seconds = _coerce_number(data.get("timeUnderLoad"))
        return Session(
            weight=weight if weight is not None and weight >= 0 else 0,
            time_under_load=int(seconds) if seconds is not None else None,
            timestamp=timestamp,
            id=None if data.get("id") is None else str(data["id"]),
        )


def merge_sessions(*histories):
    """Union of several session histories, deduplicated by natural key and ordered by timestamp.

    Entries seen first win, so pass the fresher history first to keep its ids.
    """
    merged = {}
    for history in histories:
        for session in history:
            merged.setdefault(session.key, session)
    return tuple(sorted(merged.values(), key=_session_order))


def _session_order(session):
    instant = parse_iso(session.timestamp)
    return (instant is None, instant.timestamp() if instant is not None else 0.0)


@dataclass(frozen=True)
class Exercise:
    """A named movement and its ordered session history."""
    name: str
    sessions: tuple = ()
    last_updated: str = field(default_factory=now_iso)
    id: str | None = None
    owner_id: str | None = None

    @property
    def last_session(self):
        return self.sessions[-1] if self.sessions else None

    # The duration the countdown races against. Missing, negative or malformed data means "no previous record".
    @property
    def previous_duration(self):
        last = self.last_session
        if last is None or last.time_under_load is None or last.time_under_load < 0:
            return 0
        return last.time_under_load

    def with_session(self, session):
        return replace(self, sessions=self.sessions + (session,), last_updated=now_iso())

    def with_sessions(self, sessions):
        return replace(self, sessions=tuple(sessions))

    def to_dict(self):
        data = {
            "name": self.name,
            "sessions": [s.to_dict() for s in self.sessions],
            "lastUpdated": self.last_updated,
        }
        if self.id is not None:
            data["id"] = self.id
        return data

    @staticmethod
    def from_dict(data):
        if not isinstance(data, dict):
            raise TypeError(f"Exercise record must be an object, got {type(data).__name__}")
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Exercise record is missing its name")
        raw_sessions = data.get("sessions", [])
        if not isinstance(raw_sessions, list):
            raise TypeError("Exercise sessions must be a list")
        last_updated = data.get("lastUpdated")
        return Exercise(
            name=name,
            sessions=tuple(Session.from_dict(s) for s in raw_sessions),
            last_updated=last_updated if isinstance(last_updated, str) else now_iso(),
            id=None if data.get("id") is None else str(data["id"]),
        )


@dataclass(frozen=True)
class TimerSettings:
    sound_enabled: bool = True
    countdown_threshold: int = 10

    def to_dict(self):
        return {"soundEnabled": self.sound_enabled, "countdownThresholdSeconds": self.countdown_threshold}

    # Field-by-field fallback to defaults. Returns (settings, defaulted_field_names).
    @staticmethod
    def from_dict(data):
        defaults = TimerSettings()
        defaulted = set()
        if not isinstance(data, dict):
            return defaults, {"soundEnabled", "countdownThresholdSeconds"}

        sound = data.get("soundEnabled")
        if not isinstance(sound, bool):
            defaulted.add("soundEnabled")
            sound = defaults.sound_enabled

        # Older saves used "countdownTime"
        threshold = data.get("countdownThresholdSeconds", data.get("countdownTime"))
        if isinstance(threshold, bool) or threshold not in COUNTDOWN_CHOICES:
            defaulted.add("countdownThresholdSeconds")
            threshold = defaults.countdown_threshold

        return TimerSettings(sound_enabled=sound, countdown_threshold=int(threshold)), defaulted


@dataclass(frozen=True)
class OwnerContext:
    """Who the exercises belong to. The local store has a single implicit owner."""
    user_id: str
    access_token: str | None = None


LOCAL_OWNER = OwnerContext(user_id="local")
DEFAULT_WEIGHT_UNIT = WEIGHT_UNITS[0]
