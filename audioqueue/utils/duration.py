"""Duration parsing for feed and provider metadata."""

import math
from typing import Optional, Union


def parse_duration(raw: Union[str, int, float, None]) -> Optional[float]:
    """
    Parse an iTunes-style duration into seconds.

    Accepts "HH:MM:SS", "MM:SS", a bare number of seconds (string or
    numeric). Returns None when the value is missing or not numeric.

    Examples:
        "1:23:45" -> 5025
        "2:30"    -> 150
        "42"      -> 42
        "1:xx"    -> None
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return raw

    text = str(raw).strip()
    if not text:
        return None

    parts: list[float] = []
    for piece in text.split(":"):
        try:
            value = float(piece)
        except ValueError:
            return None
        if math.isnan(value) or math.isinf(value):
            return None
        parts.append(value)

    if len(parts) == 3:
        seconds = parts[0] * 3600 + parts[1] * 60 + parts[2]
    elif len(parts) == 2:
        seconds = parts[0] * 60 + parts[1]
    elif len(parts) == 1:
        seconds = parts[0]
    else:
        return None

    return int(seconds) if seconds.is_integer() else seconds
