"""
Record Assembler

Combines normalized core fields and resolved attribution into a
CanonicalLead, optionally enriches it with IP geolocation and hands it to
the storage collaborator.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from .geolocation import GeoLocator
from .models import ATTRIBUTION_FIELDS, CORE_FIELDS, CanonicalLead, LeadStatus, RawRequest
from .redaction import sample_values
from .storage import SupabaseLeadStore

logger = logging.getLogger(__name__)

# Checked in order; X-Forwarded-For may hold a comma separated chain
IP_HEADERS = ("cf-connecting-ip", "x-forwarded-for", "x-real-ip")


def _valid_ip(candidate: str) -> Optional[str]:
    candidate = candidate.strip()
    try:
        ipaddress.ip_address(candidate)
    except ValueError:
        return None
    return candidate


def client_ip(raw: RawRequest) -> Optional[str]:
    """Best guess at the submitting client's IP address."""
    for header in IP_HEADERS:
        value = raw.header(header)
        if not value:
            continue
        for candidate in value.split(","):
            ip = _valid_ip(candidate)
            if ip:
                return ip
    if raw.client_host:
        return _valid_ip(raw.client_host)
    return None


class RecordAssembler:
    """
    Build and persist the canonical lead record.

    Args:
        geolocator: Optional GeoLocator; None disables enrichment.
        log_sample_values: Include masked samples of resolved values in logs.
    """

    def __init__(self, geolocator: Optional[GeoLocator] = None, log_sample_values: bool = True):
        self.geolocator = geolocator
        self.log_sample_values = log_sample_values

    async def assemble(
        self,
        core: Mapping[str, Any],
        attribution: Mapping[str, str],
        raw: RawRequest,
        received_keys: Optional[Iterable[str]] = None,
    ) -> CanonicalLead:
        """
        Build the CanonicalLead for one submission.

        Args:
            core: Validated core values.
            attribution: Resolved attribution values.
            raw: The incoming request (headers, client address).
            received_keys: Raw keys of the body, for diagnostics only.

        Returns:
            Frozen CanonicalLead with status "new".
        """
        values: Dict[str, Any] = {name: core.get(name) for name in CORE_FIELDS}
        values["referrer"] = core.get("referrer") or raw.referer or None
        values["ip"] = client_ip(raw)
        for name in ATTRIBUTION_FIELDS:
            values[name] = attribution.get(name)

        if self.geolocator is not None and values["ip"]:
            geo = await self.geolocator.lookup(values["ip"])
            if geo is not None:
                values.update(geo.to_fields())

        values["status"] = LeadStatus.NEW.value
        known = set(CanonicalLead.field_names())
        lead = CanonicalLead(**{k: v for k, v in values.items() if k in known})

        row = lead.to_row()
        message = f"Lead assembled: received={sorted(received_keys or [])} fields={sorted(row)}"
        if self.log_sample_values:
            message += f" sample={sample_values(row, ('full_name', 'email', 'phone', 'form_name', 'utm_source', 'utm_campaign', 'utm_term'))}"
        logger.info(message)
        return lead

    async def persist(
        self,
        lead: CanonicalLead,
        store: SupabaseLeadStore,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Insert the lead once; storage errors propagate unchanged.

        Returns:
            The identifier assigned by the store.
        """
        lead_id = await store.insert(lead.to_row(), headers=headers)
        logger.info(f"Lead stored: id={lead_id}")
        return lead_id
