"""Small shared helpers: timestamps, time and weight formatting."""
from .misc import now_iso, parse_iso, format_time, convert_weight, format_weight, WEIGHT_UNITS

__all__ = ["now_iso", "parse_iso", "format_time", "convert_weight", "format_weight", "WEIGHT_UNITS"]
