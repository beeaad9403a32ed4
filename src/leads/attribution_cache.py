"""
Attribution Cache

Server-side view of the client's attribution store ({"data": {...}, "ts": ms}).

The browser keeps this object in localStorage and forwards it in the form
body under "lead_attrib"; the /wa redirect keeps the same shape in the
"lead_attrib" cookie. Values are first-touch: merging never replaces an
existing non-empty value. Entries older than the TTL are ignored.
"""

from __future__ import annotations

import json
import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .models import ATTRIBUTION_FIELDS

logger = logging.getLogger(__name__)

COOKIE_NAME = "lead_attrib"
DEFAULT_TTL_DAYS = 90
MS_PER_DAY = 24 * 60 * 60 * 1000

_LEAF_RE = re.compile(r"\[([^\[\]]+)\]$")


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class AttributionCache:
    """Attribution key/value pairs plus the time they were first stored."""
    data: Dict[str, str] = field(default_factory=dict)
    ts: Optional[int] = None

    def is_expired(self, ttl_days: int = DEFAULT_TTL_DAYS, now_ms: Optional[int] = None) -> bool:
        """A cache without a timestamp is treated as session-scoped and never expires."""
        if self.ts is None:
            return False
        now_ms = _now_ms() if now_ms is None else now_ms
        return now_ms - self.ts > ttl_days * MS_PER_DAY

    def merge(self, values: Mapping[str, Optional[str]], now_ms: Optional[int] = None) -> "AttributionCache":
        """
        Add tracked values without overwriting existing ones.

        Args:
            values: Candidate attribution values (e.g. current URL params).
            now_ms: Timestamp to record when the cache was empty.

        Returns:
            A new cache; self is left untouched.
        """
        data = dict(self.data)
        for key in ATTRIBUTION_FIELDS:
            value = (values.get(key) or "").strip()
            if value and not data.get(key):
                data[key] = value
        ts = self.ts if self.ts is not None else (_now_ms() if now_ms is None else now_ms)
        return AttributionCache(data=data, ts=ts)

    def with_client_uid(self) -> "AttributionCache":
        if self.data.get("client_uid"):
            return self
        data = dict(self.data)
        data["client_uid"] = str(uuid.uuid4())
        return AttributionCache(data=data, ts=self.ts)

    def get(self, key: str) -> Optional[str]:
        value = (self.data.get(key) or "").strip()
        return value or None

    def to_json(self) -> str:
        return json.dumps({"data": self.data, "ts": self.ts}, separators=(",", ":"))

    # -------------------------------------------------------------------------
    # Parsing (tolerant: the client owns this data)
    # -------------------------------------------------------------------------

    @classmethod
    def from_obj(cls, obj: Any) -> "AttributionCache":
        if not isinstance(obj, dict):
            return cls()
        payload = obj.get("data") if isinstance(obj.get("data"), dict) else obj
        data = {
            k: str(v).strip()
            for k, v in payload.items()
            if k in ATTRIBUTION_FIELDS and v is not None and str(v).strip()
        }
        ts = obj.get("ts")
        try:
            ts = int(ts) if ts is not None else None
        except (TypeError, ValueError):
            ts = None
        return cls(data=data, ts=ts)

    @classmethod
    def from_json(cls, text: Optional[str]) -> "AttributionCache":
        if not text:
            return cls()
        try:
            return cls.from_obj(json.loads(text))
        except ValueError:
            logger.debug("Ignoring unparseable attribution cache")
            return cls()

    @classmethod
    def from_fields(cls, fields: Mapping[str, str], prefixes=("lead_attrib[", "attribution[")) -> "AttributionCache":
        """
        Rebuild a cache forwarded inside a decoded body.

        Accepts flattened keys (lead_attrib[data][utm_source], lead_attrib[ts])
        and a raw JSON string under "lead_attrib"/"attribution".
        """
        cache = cls()
        for name in ("lead_attrib", "attribution"):
            if fields.get(name):
                cache = cls.from_json(fields[name])
                if cache.data:
                    return cache

        obj: Dict[str, Any] = {}
        for key, value in fields.items():
            if not key.startswith(tuple(prefixes)):
                continue
            leaf = _LEAF_RE.search(key)
            if leaf:
                obj[leaf.group(1)] = value
        return cls.from_obj(obj) if obj else cache
