"""Parsing and formatting helpers shared by the session modules."""

from __future__ import annotations

import math
import re

_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)?")


def _finite(value) -> float | None:
    """Return ``value`` as a finite float or ``None``."""

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip().replace(",", "."))
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def clamp_int(value, minimum: int, maximum: int) -> int:
    """Round ``value`` and clamp it into ``[minimum, maximum]``."""

    number = _finite(value)
    if number is None:
        return minimum
    return max(minimum, min(maximum, int(round(number))))


def parse_weight_number(value) -> float | None:
    """Parse a weight hint such as ``"12,5 kg"`` into a positive float.

    Non-positive or unparsable hints return ``None``.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        raw = re.sub(r"[^\d.-]", "", str(value).replace(",", "."))
        try:
            number = float(raw)
        except ValueError:
            return None
    if not math.isfinite(number) or number <= 0:
        return None
    return round(number, 2)


def default_reps_from_target(target_reps) -> int | None:
    """Return the rep count a fresh set starts with.

    A numeric target is rounded, a range such as ``"8-12"`` yields its first
    number and anything else yields ``None``.
    """

    if isinstance(target_reps, (int, float)) and not isinstance(target_reps, bool):
        if math.isfinite(target_reps) and target_reps > 0:
            return max(1, int(round(target_reps)))
        return None
    if isinstance(target_reps, str) and target_reps.strip():
        match = _NUMBER_RE.search(target_reps)
        if not match:
            return None
        parsed = float(match.group(0).replace(",", "."))
        if parsed <= 0:
            return None
        return max(1, int(round(parsed)))
    return None


def normalize_reps_for_payload(reps):
    """Return the target reps in the shape the save collaborator accepts."""

    if reps is None or isinstance(reps, bool):
        return None
    if isinstance(reps, (int, float)):
        if math.isfinite(reps) and reps > 0:
            return int(round(reps))
        return None
    if isinstance(reps, str):
        return reps.strip() or None
    if isinstance(reps, (list, tuple)) and len(reps) >= 2:
        low, high = _finite(reps[0]), _finite(reps[1])
        if low is not None and high is not None:
            low, high = int(round(min(low, high))), int(round(max(low, high)))
            if low > 0 and high > 0:
                return f"{low}-{high}"
    return None


def coerce_number(value) -> float | None:
    """Return ``value`` as a finite number; blanks and junk become ``None``."""

    return _finite(value)
