"""Shared utility functions used across Vigyl modules."""
from __future__ import annotations

import json
import re
from typing import Any

_MISSING = object()


def json_parse(value: str | None, default: Any = _MISSING) -> Any:
    """Safely parse a JSON string, returning *default* on failure.

    If no default is given, returns ``{}`` on parse error.
    """
    try:
        return json.loads(value or "")
    except (json.JSONDecodeError, TypeError):
        return {} if default is _MISSING else default


def slugify(name: str) -> str:
    """``"Logistics & Supply Chain"`` -> ``"logistics-supply-chain"``."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def clamp_int(value: Any, lo: int, hi: int, default: int | None = None) -> int:
    """Round a loosely-typed number and clamp it into ``[lo, hi]``."""
    try:
        num = round(float(value))
    except (TypeError, ValueError):
        if default is None:
            raise
        return default
    return max(lo, min(hi, num))
