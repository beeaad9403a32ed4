"""
Key Normalizer

Maps raw decoder keys onto canonical field names.

pick() is the single lookup used for every canonical field. For a canonical
name X it tries, in order:
    a. the exact key X
    b. each alias of X, in declared priority order
    c. Elementor placeholders ("No Label X") for X and its aliases
    d. bracketed containers (form_fields[X]) for X and its aliases
    e. any raw key containing X or an alias, case-insensitive

Only when no named key matches does classify_unclaimed() guess email,
phone and full_name from the shape of the remaining values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .aliases import DEFAULT_ALIAS_TABLE, AliasTable
from .models import CORE_FIELDS

EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}$")
PHONE_SHAPE_RE = re.compile(r"^[\d\s+\-().]+$")
NON_DIGIT_RE = re.compile(r"\D")

PHONE_MIN_DIGITS = 8
PHONE_MAX_DIGITS = 15
NAME_MAX_LENGTH = 60
NAME_MAX_WORDS = 5

# Key fragments that never hold a person's name
NAME_KEY_DENYLIST: Tuple[str, ...] = (
    "message", "notes", "utm", "source", "campaign", "medium", "term",
    "content", "page", "url", "form", "id", "user", "agent",
    "lang", "locale", "token", "nonce", "action", "hash", "type", "status",
    "acceptance", "consent", "agree",
)

# Checkbox and toggle values
BOOLEAN_VALUES = frozenset({"on", "off", "yes", "no", "true", "false", "1", "0"})


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _leaf_key(key: str) -> str:
    """Innermost segment of a bracketed key: form_fields[name] -> name."""
    if key.endswith("]") and "[" in key:
        return key[key.rindex("[") + 1:-1]
    return key


def _contains_word(needle: str) -> "re.Pattern[str]":
    """Match needle inside a key unless a letter touches either end (terms_accepted is not term)."""
    return re.compile(r"(?<![^\W\d_])" + re.escape(needle) + r"(?![^\W\d_])")


@dataclass
class NormalizedFields:
    """Core fields resolved from a FieldMap."""
    values: Dict[str, str] = field(default_factory=dict)
    claimed_keys: Set[str] = field(default_factory=set)
    # canonical -> raw key (or "heuristic:<key>") that supplied it
    sources: Dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> Optional[str]:
        return self.values.get(name)


class KeyNormalizer:
    """
    Canonical field lookup over a FieldMap.

    Usage:
        normalizer = KeyNormalizer()
        phone = normalizer.pick(fields, "phone")
        core = normalizer.normalize(fields)
    """

    def __init__(self, alias_table: Optional[AliasTable] = None):
        self.alias_table = alias_table or DEFAULT_ALIAS_TABLE

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def _named_candidates(self, canonical: str) -> Iterable[str]:
        table = self.alias_table
        spellings = table.spellings(canonical)
        yield from spellings
        for spelling in spellings:
            yield from table.placeholder_keys(spelling)
        for spelling in spellings:
            yield from table.container_keys(spelling)

    def _substring_match(self, fields: Mapping[str, str], canonical: str) -> Optional[Tuple[str, str]]:
        table = self.alias_table
        patterns = [_contains_word(s.lower()) for s in table.substring_spellings(canonical)]
        if not patterns:
            return None
        keys = sorted(fields.keys())
        for pattern in patterns:
            for key in keys:
                if table.is_cache_key(key):
                    continue
                # form_fields[name] is matched on "name", never on "form"
                leaf = _leaf_key(key)
                owner = table.owner_of(key) or table.owner_of(leaf)
                if owner is not None and owner != canonical:
                    continue
                if pattern.search(leaf.lower()):
                    value = _clean(fields[key])
                    if value is not None:
                        return key, value
        return None

    def pick_with_key(self, fields: Mapping[str, str], canonical: str) -> Optional[Tuple[str, str]]:
        """Like pick(), but also returns the raw key that matched."""
        for key in self._named_candidates(canonical):
            value = _clean(fields.get(key))
            if value is not None:
                return key, value
        return self._substring_match(fields, canonical)

    def pick_all(self, fields: Mapping[str, str], canonical: str) -> List[str]:
        """Every distinct named value for a canonical field, in pick() order."""
        values: List[str] = []
        for key in self._named_candidates(canonical):
            value = _clean(fields.get(key))
            if value is not None and value not in values:
                values.append(value)
        if not values:
            match = self._substring_match(fields, canonical)
            if match is not None:
                values.append(match[1])
        return values

    def pick(self, fields: Mapping[str, str], canonical: str) -> Optional[str]:
        """
        First non-empty value for a canonical field.

        Args:
            fields: Decoded request fields.
            canonical: Canonical field name (e.g. "phone").

        Returns:
            The trimmed value, or None when nothing matches.
        """
        match = self.pick_with_key(fields, canonical)
        return match[1] if match else None

    # -------------------------------------------------------------------------
    # Whole-record normalization
    # -------------------------------------------------------------------------

    def normalize(
        self,
        fields: Mapping[str, str],
        canonical_names: Iterable[str] = CORE_FIELDS,
    ) -> NormalizedFields:
        """Resolve every core field, then fill gaps heuristically."""
        result = NormalizedFields()
        for name in canonical_names:
            match = self.pick_with_key(fields, name)
            if match is None:
                continue
            key, value = match
            result.values[name] = value
            result.claimed_keys.add(key)
            result.sources[name] = key

        # Keys that spell any known canonical field are never guessed from
        claimed = set(result.claimed_keys)
        claimed.update(k for k in fields if self.alias_table.owner_of(k) is not None)
        claimed.update(k for k in fields if self.alias_table.is_cache_key(k))

        for name, (key, value) in classify_unclaimed(fields, claimed, result.values).items():
            result.values[name] = value
            result.claimed_keys.add(key)
            result.sources[name] = f"heuristic:{key}"
        return result


# =============================================================================
# LAST-RESORT CLASSIFIER
# =============================================================================

def looks_like_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value))


def looks_like_phone(value: str) -> bool:
    if not PHONE_SHAPE_RE.match(value):
        return False
    digits = NON_DIGIT_RE.sub("", value)
    return PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS


def looks_like_name(key: str, value: str) -> bool:
    lowered = _leaf_key(key).lower()
    if any(fragment in lowered for fragment in NAME_KEY_DENYLIST):
        return False
    if value.lower() in BOOLEAN_VALUES:
        return False
    if len(value) < 2 or len(value) > NAME_MAX_LENGTH or len(value.split()) > NAME_MAX_WORDS:
        return False
    if "@" in value or "://" in value or value[0] in "{[":
        return False
    if not any(ch.isalpha() for ch in value):
        return False
    digits = NON_DIGIT_RE.sub("", value)
    return len(digits) * 2 < len(value)


def classify_unclaimed(
    fields: Mapping[str, str],
    claimed_keys: Set[str],
    resolved: Mapping[str, str],
) -> Dict[str, Tuple[str, str]]:
    """
    Guess email, phone and full_name from values nobody claimed.

    Only fills fields absent from `resolved`; each raw key is used at most
    once. Keys are visited in sorted order so the result is deterministic.

    Returns:
        canonical name -> (raw key, value)
    """
    guesses: Dict[str, Tuple[str, str]] = {}
    used: Set[str] = set()
    candidates: List[Tuple[str, str]] = []
    for key in sorted(fields):
        if key in claimed_keys:
            continue
        value = _clean(fields[key])
        if value is not None:
            candidates.append((key, value))

    def take(name: str, predicate) -> None:
        if resolved.get(name) or name in guesses:
            return
        for key, value in candidates:
            if key in used:
                continue
            if predicate(key, value):
                guesses[name] = (key, value)
                used.add(key)
                return

    take("email", lambda k, v: looks_like_email(v))
    take("phone", lambda k, v: looks_like_phone(v))
    take("full_name", lambda k, v: not looks_like_email(v) and not looks_like_phone(v) and looks_like_name(k, v))
    return guesses
