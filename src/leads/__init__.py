"""
Lead intake pipeline.

Body Decoder -> Key Normalizer -> Attribution Resolver -> Record Assembler
-> storage collaborator.
"""

from .aliases import DEFAULT_ALIAS_TABLE, AliasTable
from .assembler import RecordAssembler, client_ip
from .attribution import AttributionResolver, AttributionResult
from .attribution_cache import AttributionCache
from .decoder import decode_body
from .errors import (
    ConfigurationError,
    EmptyPayloadError,
    LeadIntakeError,
    LeadValidationError,
    StorageError,
)
from .geolocation import GeoLocator, GeoResult, is_public_ip
from .models import CanonicalLead, FieldMap, LeadStatus, RawRequest
from .normalizer import KeyNormalizer, NormalizedFields, classify_unclaimed
from .service import LeadIntakeService, SubmissionResult, get_lead_intake_service
from .storage import SupabaseLeadStore

__all__ = [
    "AliasTable",
    "AttributionCache",
    "AttributionResolver",
    "AttributionResult",
    "CanonicalLead",
    "ConfigurationError",
    "DEFAULT_ALIAS_TABLE",
    "EmptyPayloadError",
    "FieldMap",
    "GeoLocator",
    "GeoResult",
    "KeyNormalizer",
    "LeadIntakeError",
    "LeadIntakeService",
    "LeadStatus",
    "LeadValidationError",
    "NormalizedFields",
    "RawRequest",
    "RecordAssembler",
    "StorageError",
    "SubmissionResult",
    "SupabaseLeadStore",
    "classify_unclaimed",
    "client_ip",
    "decode_body",
    "get_lead_intake_service",
    "is_public_ip",
]
