"""
Lead Intake Service - runs one webform submission through the pipeline.

Flow for a submission:
1. Storage configuration is checked (before any network call)
2. Body is decoded into a FieldMap (failures yield an empty map)
3. Core fields are normalized and validated
4. Attribution is resolved (body > page URL > Referer > client cache)
5. The canonical record is assembled, enriched and inserted once
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from config.settings import Settings, get_settings
from middleware.correlation import propagate_correlation_headers

from .aliases import AliasTable
from .assembler import RecordAssembler
from .attribution import AttributionResolver, AttributionResult
from .decoder import decode_body
from .errors import ConfigurationError, EmptyPayloadError
from .geolocation import GeoLocator
from .models import CanonicalLead, RawRequest
from .normalizer import KeyNormalizer
from .storage import SupabaseLeadStore
from .validation import validate_core

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    """Outcome of a successful submission."""
    lead_id: Any
    lead: CanonicalLead
    attribution: AttributionResult


class LeadIntakeService:
    """
    Orchestrates decoder, normalizer, resolver and assembler.

    Collaborators can be injected; otherwise they are built from settings.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[SupabaseLeadStore] = None,
        geolocator: Optional[GeoLocator] = None,
        alias_table: Optional[AliasTable] = None,
    ):
        self.settings = settings or get_settings()
        self._store = store
        self.normalizer = KeyNormalizer(alias_table)
        self.resolver = AttributionResolver(
            self.normalizer,
            cache_ttl_days=self.settings.attribution_ttl_days,
        )
        if geolocator is None:
            geo = self.settings.geo
            if geo.enabled:
                geolocator = GeoLocator(base_url=geo.base_url, timeout=geo.timeout)
        self.assembler = RecordAssembler(
            geolocator=geolocator,
            log_sample_values=self.settings.log_sample_values,
        )

    def get_store(self) -> SupabaseLeadStore:
        """
        Storage client for this request.

        Raises:
            ConfigurationError: Endpoint or service credential is missing.
        """
        if self._store is not None:
            return self._store
        storage = self.settings.storage
        if not storage.is_configured:
            logger.error("Storage is not configured (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY)")
            raise ConfigurationError()
        return SupabaseLeadStore(
            url=storage.url,
            service_key=storage.service_key,
            timeout=storage.timeout,
            leads_table=storage.leads_table,
            dashboard_view=storage.dashboard_view,
        )

    @property
    def storage_configured(self) -> bool:
        return self._store is not None or self.settings.storage.is_configured

    async def submit(self, raw: RawRequest) -> SubmissionResult:
        """
        Process one submission end to end.

        Raises:
            ConfigurationError: Storage is not configured.
            EmptyPayloadError: Nothing was recovered from the body.
            LeadValidationError: Core values failed validation.
            StorageError: The store rejected the insert.
        """
        store = self.get_store()

        fields = await decode_body(raw)
        received_keys: List[str] = sorted(fields)
        if not fields:
            logger.info(f"Empty payload (content-type={raw.content_type or '-'})")
            raise EmptyPayloadError(received_keys)

        normalized = self.normalizer.normalize(fields)
        core = validate_core(
            normalized.values,
            received_keys,
            require_contact=self.settings.require_contact,
        )
        attribution = self.resolver.resolve(fields, raw)
        lead = await self.assembler.assemble(core, attribution.values, raw, received_keys)
        lead_id = await self.assembler.persist(lead, store, headers=propagate_correlation_headers())
        return SubmissionResult(lead_id=lead_id, lead=lead, attribution=attribution)

    async def recent_leads(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Newest dashboard rows."""
        store = self.get_store()
        return await store.recent(limit or self.settings.dashboard_limit, headers=propagate_correlation_headers())


_service: Optional[LeadIntakeService] = None


def get_lead_intake_service() -> LeadIntakeService:
    """Get the process-wide intake service."""
    global _service
    if _service is None:
        _service = LeadIntakeService()
    return _service


def reset_lead_intake_service() -> None:
    global _service
    _service = None
