from __future__ import annotations

from typing import Any


def dig(data: dict[str, Any], path: str) -> Any:
    cur: Any = data
    for part in path.split("."):
        if cur is None:
            return None
        if isinstance(cur, dict) and part in cur:
            cur = cur[part]
        else:
            return None
    return cur


def is_trueish(v: Any) -> bool:
    """Accept only real truthy values from the API."""
    if v is True:
        return True
    if v is False or v is None:
        return False
    if isinstance(v, (int, float)):
        return v == 1
    if isinstance(v, str):
        return v.strip().lower() in ("true", "1", "yes", "ok")
    return False


def format_hour(hour: float) -> str:
    """Render a day offset in hours as ``HH:MM`` (24:00 becomes 23:59)."""
    minutes = int(round(hour * 60))
    if minutes >= 24 * 60:
        return "23:59"
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
