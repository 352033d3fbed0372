"""Parsing of the free-text delivery estimates sellers reply with."""

from __future__ import annotations

import re

from .rules import fold

_TODAY_RE = re.compile(r"\bazi\b")
_TOMORROW_RE = re.compile(r"\bmain(?:e)?\b")
_UNTIL_RE = re.compile(r"\bpana la\b")
_AFTER_RE = re.compile(r"\bdupa\b")
_CLOCK_RE = re.compile(r"(\d{1,2}):?(\d{0,2})")
_HOUR_RANGE_RE = re.compile(r"(\d{1,2})\s*[-–]\s*(\d{1,2})")
_DAY_RANGE_RE = re.compile(r"(\d{1,2})\s*[-–]\s*(\d{1,2})\s*zile")
_EXACT_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})")

_VALID_ETA_PATTERNS = (
    _TODAY_RE,
    _TOMORROW_RE,
    _UNTIL_RE,
    _EXACT_TIME_RE,
    _DAY_RANGE_RE,
)


def validate_eta(text: str) -> bool:
    """Return whether ``text`` looks like one of the accepted ETA shapes."""

    stripped = text.strip()
    if len(stripped) < 2:
        return False
    folded = fold(stripped)
    return any(pattern.search(folded) for pattern in _VALID_ETA_PATTERNS)


def parse_romanian_eta(text: str) -> str:
    """Normalize a seller's reply into a short customer facing ETA.

    ``"azi pana la 18"`` becomes ``"azi până la 18:00"``, ``"maine 14-18"``
    becomes ``"mâine 14:00–18:00"`` and ``"3-5 zile"`` becomes
    ``"3-5 zile"``. Anything unrecognized is returned stripped but unchanged.
    """

    stripped = text.strip()
    folded = fold(stripped)

    if _TODAY_RE.search(folded):
        clock = _CLOCK_RE.search(folded)
        if _UNTIL_RE.search(folded) and clock:
            return f"azi până la {clock.group(1)}:{clock.group(2) or '00'}"
        return "azi"

    if _TOMORROW_RE.search(folded):
        if _AFTER_RE.search(folded):
            clock = _CLOCK_RE.search(folded)
            if clock:
                return f"mâine după {clock.group(1)}:00"
        hours = _HOUR_RANGE_RE.search(folded)
        if hours:
            return f"mâine {hours.group(1)}:00–{hours.group(2)}:00"
        return "mâine"

    days = _DAY_RANGE_RE.search(folded)
    if days:
        return f"{days.group(1)}-{days.group(2)} zile"

    exact = _EXACT_TIME_RE.search(folded)
    if exact:
        return f"{exact.group(1)}:{exact.group(2)}"

    return stripped
