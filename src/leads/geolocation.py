"""
IP Geolocation

Optional enrichment of a lead with country/region/city/lat/lon for the
submitting IP. Private, loopback and otherwise non-public addresses are
never sent to the service. Any failure (timeout, transport error, bad
payload, status != "success") means "no geolocation", not an error.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://ip-api.com"
DEFAULT_TIMEOUT = 3.5
LOOKUP_FIELDS = "status,country,regionName,city,lat,lon"


def is_public_ip(ip: Optional[str]) -> bool:
    """True only for a syntactically valid, globally routable address."""
    if not ip:
        return False
    try:
        addr = ipaddress.ip_address(ip.strip())
    except ValueError:
        return False
    if (
        addr.is_private
        or addr.is_loopback
        or addr.is_link_local
        or addr.is_multicast
        or addr.is_reserved
        or addr.is_unspecified
    ):
        return False
    return addr.is_global


@dataclass(frozen=True)
class GeoResult:
    """Geolocation fields for one IP."""
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None

    @property
    def text(self) -> Optional[str]:
        parts = [p for p in (self.city, self.region, self.country) if p]
        return ", ".join(parts) or None

    def to_fields(self) -> Dict[str, Any]:
        return {
            "geo_country": self.country,
            "geo_region": self.region,
            "geo_city": self.city,
            "geo_lat": self.lat,
            "geo_lon": self.lon,
            "geo_text": self.text,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Optional["GeoResult"]:
        if not isinstance(payload, dict) or payload.get("status") != "success":
            return None

        def _float(value: Any) -> Optional[float]:
            try:
                return float(value) if value is not None else None
            except (TypeError, ValueError):
                return None

        def _str(value: Any) -> Optional[str]:
            if value is None:
                return None
            return str(value).strip() or None

        return cls(
            country=_str(payload.get("country")),
            region=_str(payload.get("regionName")),
            city=_str(payload.get("city")),
            lat=_float(payload.get("lat")),
            lon=_float(payload.get("lon")),
        )


class GeoLocator:
    """
    Client for an ip-api compatible geolocation service.

    Usage:
        locator = GeoLocator(timeout=3.5)
        geo = await locator.lookup("8.8.8.8")
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def lookup(self, ip: Optional[str]) -> Optional[GeoResult]:
        """
        Look up an IP address.

        Args:
            ip: Client IP address.

        Returns:
            GeoResult, or None when skipped or unavailable.
        """
        if not is_public_ip(ip):
            logger.debug("Skipping geolocation for non-public IP")
            return None

        url = f"{self.base_url}/json/{ip.strip()}"
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            ) as client:
                response = await client.get(url, params={"fields": LOOKUP_FIELDS})
            if response.status_code != 200:
                logger.info(f"Geolocation lookup returned HTTP {response.status_code}")
                return None
            return GeoResult.from_payload(response.json())
        except httpx.TimeoutException:
            logger.info(f"Geolocation lookup timed out after {self.timeout}s")
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.info(f"Geolocation lookup failed: {e}")
            return None
