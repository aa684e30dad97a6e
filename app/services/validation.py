"""
Shared business-rule validation for user-managed entities.

Raises ValidationFailedError; callers validate before touching the session
so a rejected request persists nothing.
"""
from __future__ import annotations

import re
from typing import Optional

from app.core.errors import ValidationFailedError
from app.models.activity import CueType

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def is_valid_time(value: str) -> bool:
    """24h HH:MM."""
    return bool(_TIME_RE.match(value))


def validate_cue(cue_type: Optional[CueType | str], cue_value: Optional[str]) -> None:
    """
    TIME needs HH:MM; LOCATION and AFTER_ACTIVITY need a non-blank value.
    Without a cue type any value (or none) is accepted.
    """
    if cue_type is None:
        return
    kind = CueType(cue_type)
    if kind is CueType.TIME:
        if cue_value is None or not is_valid_time(cue_value):
            raise ValidationFailedError(
                "TIME cues need a 24h HH:MM value.", field="cue_value"
            )
        return
    if cue_value is None or not cue_value.strip():
        raise ValidationFailedError(
            f"{kind.value} cues need a non-empty value.", field="cue_value"
        )


def validate_name(name: Optional[str], field: str = "name") -> str:
    stripped = (name or "").strip()
    if not stripped:
        raise ValidationFailedError("Name must not be empty.", field=field)
    return stripped
