"""
PII-minimal log samples.

Intake logging records which fields arrived and a masked hint of what was
resolved, never full contact details or message bodies.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Mapping, Optional, Set

REDACTED = "[REDACTED]"

# Never sampled, not even masked
FREE_TEXT_FIELDS: Set[str] = {"notes", "message"}

_NON_DIGIT = re.compile(r"\D")


def mask_name(value: str) -> str:
    value = value.strip()
    return f"{value[0]}***" if value else ""


def mask_email(value: str) -> str:
    if "@" not in value:
        return REDACTED
    return f"***@{value.rsplit('@', 1)[1]}"


def mask_phone(value: str) -> str:
    digits = _NON_DIGIT.sub("", value)
    return f"***{digits[-3:]}" if len(digits) >= 3 else REDACTED


_MASKERS = {
    "full_name": mask_name,
    "email": mask_email,
    "phone": mask_phone,
}


def sample_values(values: Mapping[str, Any], keys: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """
    Masked copy of resolved values for diagnostic logging.

    Contact fields are masked, free text is dropped, everything else
    (attribution, form identifiers) passes through.
    """
    selected = keys if keys is not None else values.keys()
    sample: Dict[str, Any] = {}
    for key in selected:
        value = values.get(key)
        if value is None or value == "" or key in FREE_TEXT_FIELDS:
            continue
        masker = _MASKERS.get(key)
        sample[key] = masker(str(value)) if masker else value
    return sample
