"""
Attribution Resolver

Fills utm_*, click identifiers, keyword and campaign taxonomy fields using a
priority chain, evaluated independently per field:

    1. body          explicit fields (keyword and utm_term substitute for each other)
    2. page_url      query string of the page URL posted in the body
    3. referer       query string of the HTTP Referer header
    4. client_cache  attribution forwarded from the client's cache

A value found at an earlier level is never replaced by a later one. When no
term was found anywhere, utm_term falls back to keyword, gclid, wbraid and
gbraid, in that order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlsplit

from .attribution_cache import COOKIE_NAME, DEFAULT_TTL_DAYS, AttributionCache
from .models import ATTRIBUTION_FIELDS, FieldMap, RawRequest
from .normalizer import KeyNormalizer

logger = logging.getLogger(__name__)

BODY = "body"
PAGE_URL = "page_url"
REFERER = "referer"
CLIENT_CACHE = "client_cache"
TERM_FALLBACK = "term_fallback"

TERM_FALLBACK_SOURCES: Tuple[str, ...] = ("keyword", "gclid", "wbraid", "gbraid")


def query_params(url: Optional[str]) -> Dict[str, str]:
    """
    Query parameters of a URL, first value per key.

    Unparseable URLs yield an empty dict.
    """
    if not url:
        return {}
    try:
        parts = urlsplit(url.strip())
        pairs = parse_qsl(parts.query, keep_blank_values=False)
    except ValueError:
        logger.debug("Ignoring unparseable attribution URL")
        return {}
    params: Dict[str, str] = {}
    for k, v in pairs:
        params.setdefault(k, v)
    return params


@dataclass
class AttributionResult:
    """Resolved attribution values and the level each one came from."""
    values: Dict[str, str] = field(default_factory=dict)
    resolved_from: Dict[str, str] = field(default_factory=dict)


class AttributionResolver:
    """
    Resolve attribution fields for one submission.

    Usage:
        resolver = AttributionResolver(KeyNormalizer())
        result = resolver.resolve(fields, raw_request)
    """

    def __init__(
        self,
        normalizer: Optional[KeyNormalizer] = None,
        cache_ttl_days: int = DEFAULT_TTL_DAYS,
        fields: Tuple[str, ...] = ATTRIBUTION_FIELDS,
    ):
        self.normalizer = normalizer or KeyNormalizer()
        self.cache_ttl_days = cache_ttl_days
        self.fields = fields

    def _level_values(self, source: Mapping[str, str]) -> Dict[str, str]:
        """Pick every attribution field from one source."""
        values: Dict[str, str] = {}
        for name in self.fields:
            value = self.normalizer.pick(source, name)
            if value:
                values[name] = value
        # keyword and utm_term stand in for each other within a level
        if "utm_term" not in values and values.get("keyword"):
            values["utm_term"] = values["keyword"]
        if "keyword" not in values and values.get("utm_term"):
            values["keyword"] = values["utm_term"]
        return values

    def _cached_values(self, fields: FieldMap, raw: RawRequest) -> Dict[str, str]:
        table = self.normalizer.alias_table
        merged = AttributionCache()
        candidates = [AttributionCache.from_fields(fields, table.cache_prefixes)]
        cookie = raw.cookies.get(COOKIE_NAME)
        if cookie:
            candidates.append(AttributionCache.from_json(cookie))
        for cache in candidates:
            if cache.is_expired(self.cache_ttl_days):
                continue
            merged = merged.merge(cache.data)
        return self._level_values(merged.data)

    def levels(self, fields: FieldMap, raw: RawRequest) -> List[Tuple[str, Dict[str, str]]]:
        """Attribution sources in priority order."""
        body_only = {k: v for k, v in fields.items() if not self.normalizer.alias_table.is_cache_key(k)}
        # First page URL spelling that carries attribution wins (/thanks has none)
        page_values: Dict[str, str] = {}
        for url in self.normalizer.pick_all(fields, "landing_page"):
            page_values = self._level_values(query_params(url))
            if page_values:
                break
        return [
            (BODY, self._level_values(body_only)),
            (PAGE_URL, page_values),
            (REFERER, self._level_values(query_params(raw.referer))),
            (CLIENT_CACHE, self._cached_values(fields, raw)),
        ]

    def resolve(self, fields: FieldMap, raw: RawRequest) -> AttributionResult:
        """
        Resolve all attribution fields.

        Args:
            fields: Decoded request fields.
            raw: The incoming request (Referer header, cookies).

        Returns:
            AttributionResult with only non-empty values.
        """
        result = AttributionResult()
        for level, values in self.levels(fields, raw):
            for name, value in values.items():
                if name not in result.values:
                    result.values[name] = value
                    result.resolved_from[name] = level

        if "utm_term" not in result.values:
            for source in TERM_FALLBACK_SOURCES:
                value = result.values.get(source)
                if value:
                    result.values["utm_term"] = value
                    result.resolved_from["utm_term"] = f"{TERM_FALLBACK}:{source}"
                    break

        logger.debug(f"Attribution resolved: {result.resolved_from}")
        return result
