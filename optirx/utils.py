import math
import re

# Leading numeric prefix, the way form inputs are read ("2.50D" -> 2.5, "+1" -> 1.0)
FLOAT_RX = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")
INT_RX = re.compile(r"^\s*([+-]?\d+)")


def to_float(s) -> float | None:
    if s is None:
        return None
    if isinstance(s, bool):
        return None
    if isinstance(s, (int, float)):
        return float(s)
    m = FLOAT_RX.match(str(s))
    if not m:
        return None
    try:
        return float(m.group(1))
    except ValueError:
        return None


def to_int(s) -> int | None:
    if s is None or isinstance(s, bool):
        return None
    if isinstance(s, (int, float)):
        return int(s)
    m = INT_RX.match(str(s))
    if not m:
        return None
    return int(m.group(1))


def is_blank(s) -> bool:
    return s is None or str(s).strip() == ""


def fixed(value: float, places: int = 2) -> str:
    """Fixed-point text with negative zero folded to zero."""
    out = f"{value:.{places}f}"
    if out.startswith("-") and float(out) == 0:
        out = out[1:]
    return out


def round2(value: float) -> float:
    return float(fixed(value, 2))


def signed(value: float, places: int = 2) -> str:
    out = fixed(value, places)
    return f"+{out}" if value > 0 and float(out) > 0 else out


def js_round(x: float) -> int:
    """Round half up (towards +inf), as spreadsheet-style form inputs expect."""
    return math.floor(x + 0.5)
