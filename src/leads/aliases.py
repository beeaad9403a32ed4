"""
Alias Table

Static mapping from canonical field name to the raw key spellings seen in
the wild: English variants, Hebrew form labels, Elementor "No Label"
placeholders and bracketed form_fields[...] encodings.

The table is immutable. Build a new one with AliasTable.from_dict() to
customise it and pass it to the KeyNormalizer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

# Canonical name -> ordered alias list (highest priority first)
DEFAULT_ALIASES: Dict[str, Tuple[str, ...]] = {
    # Core
    "full_name": (
        "name", "fullname", "full-name", "your-name", "your_name", "contact_name",
        "שם מלא", "שם_מלא", "שם ושם משפחה", "שם",
    ),
    "email": (
        "e-mail", "email_address", "your-email", "mail",
        "אימייל", "מייל", 'דוא"ל', "דואר אלקטרוני",
    ),
    "phone": (
        "tel", "telephone", "phone_number", "mobile", "cell", "your-phone",
        "טלפון", "נייד", "מספר טלפון", "טלפון נייד",
    ),
    "notes": (
        "message", "msg", "comments", "comment", "your-message",
        "הודעה", "הערות", "תוכן ההודעה",
    ),
    "age": ("גיל",),
    "city": ("עיר", "ישוב"),
    "region": ("אזור",),
    "account_id": (),
    "form_id": ("formid", "form-id", "elementor_form_id"),
    "form_name": ("form", "form_title", "formname", "שם הטופס"),
    "landing_page": ("lp", "page_url", "url", "page", "source_url", "current_url"),
    "referrer": ("referer", "ref", "referrer_url"),
    # Attribution
    "utm_source": ("source",),
    "utm_medium": ("medium",),
    "utm_campaign": ("campaign", "campaign_name"),
    "utm_term": ("term",),
    "utm_content": ("content", "ad_group"),
    "keyword": ("kw", "keywords", "search_term"),
    "gclid": (),
    "fbclid": (),
    "ttclid": (),
    "wbraid": (),
    "gbraid": (),
    # Campaign taxonomy
    "platform": (),
    "campaign_id": ("campaignid",),
    "adgroup_id": ("adgroupid", "ad_group_id"),
    "ad_id": ("adid",),
    "creative_id": ("creative",),
    "placement": (),
    "device": ("device_type",),
    "client_uid": ("uid",),
}

PLACEHOLDER_PREFIXES: Tuple[str, ...] = ("No Label ",)
CONTAINER_NAMES: Tuple[str, ...] = ("form_fields", "fields")
CACHE_PREFIXES: Tuple[str, ...] = ("lead_attrib[", "attribution[")

# Substring matching on shorter spellings produces too many false hits
MIN_SUBSTRING_LENGTH = 4

# Generic words that only count as an exact key (page_title is not a landing page)
EXACT_ONLY_SPELLINGS: Tuple[str, ...] = ("page", "form", "content")


@dataclass(frozen=True)
class AliasTable:
    """Immutable canonical-name -> spellings configuration."""

    aliases: Mapping[str, Tuple[str, ...]]
    placeholder_prefixes: Tuple[str, ...] = PLACEHOLDER_PREFIXES
    container_names: Tuple[str, ...] = CONTAINER_NAMES
    cache_prefixes: Tuple[str, ...] = CACHE_PREFIXES
    min_substring_length: int = MIN_SUBSTRING_LENGTH
    exact_only: Tuple[str, ...] = EXACT_ONLY_SPELLINGS
    _owners: Mapping[str, str] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        frozen = {k: tuple(v) for k, v in self.aliases.items()}
        owners: Dict[str, str] = {}
        for canonical, spellings in frozen.items():
            for spelling in (canonical,) + spellings:
                owners.setdefault(spelling.lower(), canonical)
        object.__setattr__(self, "aliases", MappingProxyType(frozen))
        object.__setattr__(self, "_owners", MappingProxyType(owners))

    @classmethod
    def from_dict(
        cls,
        aliases: Mapping[str, Iterable[str]],
        **options,
    ) -> "AliasTable":
        return cls(aliases={k: tuple(v) for k, v in aliases.items()}, **options)

    def canonical_names(self) -> Tuple[str, ...]:
        return tuple(self.aliases.keys())

    def spellings(self, canonical: str) -> Tuple[str, ...]:
        """Canonical name followed by its aliases, in priority order."""
        return (canonical,) + self.aliases.get(canonical, ())

    def substring_spellings(self, canonical: str) -> Tuple[str, ...]:
        """Spellings of canonical that may match inside a longer key."""
        return tuple(
            s for s in self.spellings(canonical)
            if len(s) >= self.min_substring_length and s.lower() not in self.exact_only
        )

    def owner_of(self, raw_key: str) -> Optional[str]:
        """Canonical field that claims raw_key as an exact spelling, if any."""
        return self._owners.get(raw_key.strip().lower())

    def is_cache_key(self, raw_key: str) -> bool:
        """Keys carrying the client's forwarded attribution cache."""
        if raw_key.startswith(self.cache_prefixes):
            return True
        return raw_key in tuple(p.rstrip("[") for p in self.cache_prefixes)

    def placeholder_keys(self, spelling: str) -> Sequence[str]:
        return [prefix + spelling for prefix in self.placeholder_prefixes]

    def container_keys(self, spelling: str) -> Sequence[str]:
        return [f"{name}[{spelling}]" for name in self.container_names]


DEFAULT_ALIAS_TABLE = AliasTable(aliases=DEFAULT_ALIASES)
