"""
Lead Intake Models

Types that flow through the intake pipeline:
- RawRequest: what the HTTP layer hands to the decoder
- FieldMap: flat key -> string mapping produced by the decoder
- CanonicalLead: the single record persisted per submission
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

FieldMap = Dict[str, str]


class LeadStatus(str, Enum):
    """Status of a lead in the pipeline."""
    NEW = "new"  # Just created


# =============================================================================
# FIELD CATALOGUE
# =============================================================================

CORE_FIELDS: Tuple[str, ...] = (
    "full_name",
    "email",
    "phone",
    "notes",
    "age",
    "city",
    "region",
    "account_id",
    "form_id",
    "form_name",
    "landing_page",
    "referrer",
)

UTM_FIELDS: Tuple[str, ...] = (
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
)

CLICK_ID_FIELDS: Tuple[str, ...] = ("gclid", "fbclid", "ttclid", "wbraid", "gbraid")

TAXONOMY_FIELDS: Tuple[str, ...] = (
    "platform",
    "campaign_id",
    "adgroup_id",
    "ad_id",
    "creative_id",
    "placement",
    "device",
    "client_uid",
)

ATTRIBUTION_FIELDS: Tuple[str, ...] = UTM_FIELDS + ("keyword",) + CLICK_ID_FIELDS + TAXONOMY_FIELDS

GEO_FIELDS: Tuple[str, ...] = (
    "geo_country",
    "geo_region",
    "geo_city",
    "geo_lat",
    "geo_lon",
    "geo_text",
)


# =============================================================================
# REQUEST
# =============================================================================

@dataclass
class RawRequest:
    """
    Transient view of an incoming HTTP submission.

    Headers are stored lower-cased so lookups are case-insensitive.
    """
    content_type: str = ""
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)
    cookies: Dict[str, str] = field(default_factory=dict)
    client_host: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        self.headers = {k.lower(): v for k, v in self.headers.items()}

    def header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)

    @property
    def referer(self) -> str:
        return self.header("referer")

    @classmethod
    def build(
        cls,
        body: Union[bytes, str] = b"",
        content_type: str = "",
        headers: Optional[Mapping[str, str]] = None,
        query: Optional[Mapping[str, str]] = None,
        cookies: Optional[Mapping[str, str]] = None,
        client_host: Optional[str] = None,
    ) -> "RawRequest":
        """Convenience constructor; content type falls back to the header."""
        hdrs = dict(headers or {})
        if not content_type:
            for k, v in hdrs.items():
                if k.lower() == "content-type":
                    content_type = v
                    break
        return cls(
            content_type=content_type or "",
            body=body,
            headers=hdrs,
            query=dict(query or {}),
            cookies=dict(cookies or {}),
            client_host=client_host,
        )


# =============================================================================
# CANONICAL RECORD
# =============================================================================

def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


@dataclass(frozen=True)
class CanonicalLead:
    """
    The one persisted entity.

    Every field is optional except status. to_row() drops anything that is
    None or an empty/whitespace-only string.
    """
    status: str = LeadStatus.NEW.value

    # Core
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    age: Optional[int] = None
    city: Optional[str] = None
    region: Optional[str] = None
    account_id: Optional[str] = None
    form_id: Optional[str] = None
    form_name: Optional[str] = None
    landing_page: Optional[str] = None
    referrer: Optional[str] = None
    ip: Optional[str] = None

    # Geolocation
    geo_country: Optional[str] = None
    geo_region: Optional[str] = None
    geo_city: Optional[str] = None
    geo_lat: Optional[float] = None
    geo_lon: Optional[float] = None
    geo_text: Optional[str] = None

    # Attribution
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None
    keyword: Optional[str] = None
    gclid: Optional[str] = None
    fbclid: Optional[str] = None
    ttclid: Optional[str] = None
    wbraid: Optional[str] = None
    gbraid: Optional[str] = None

    # Campaign taxonomy
    platform: Optional[str] = None
    campaign_id: Optional[str] = None
    adgroup_id: Optional[str] = None
    ad_id: Optional[str] = None
    creative_id: Optional[str] = None
    placement: Optional[str] = None
    device: Optional[str] = None
    client_uid: Optional[str] = None

    @classmethod
    def field_names(cls) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def to_row(self) -> Dict[str, Any]:
        """Row for the storage collaborator, empties stripped."""
        row: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if not _is_present(value):
                continue
            row[f.name] = value.strip() if isinstance(value, str) else value
        return row
