from datetime import datetime, timezone


# Simply returns the current instant as an ISO8601 string in UTC.
def now_iso():
    return datetime.now(timezone.utc).isoformat()


# Parses an ISO8601 string into an aware datetime. Naive strings are treated as UTC, and the trailing "Z" that
# JavaScript and PostgREST like to emit is accepted. Returns None for anything unparseable.
def parse_iso(value):
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# Format elapsed seconds as M:SS, or H:MM:SS once past an hour. Negative values clamp to zero.
def format_time(seconds):
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


WEIGHT_UNITS = ("lbs", "kg")
_LBS_PER_KG = 2.205

# Display conversion only; stored weights are never rewritten.
def convert_weight(weight, unit):
    if unit == "kg":
        return round(weight / _LBS_PER_KG)
    return weight

def format_weight(weight, unit):
    value = convert_weight(weight, unit)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{value}{unit}"
