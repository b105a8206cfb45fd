"""
IP geolocation adapters.

The lookup is the only network call on the tap path, so it runs under a
strict timeout and every failure degrades to an unknown location.  With an
unknown location, geo rules that set any field cannot match and the tap
falls through to the profile's default URL.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

import httpx

from redirect_engine.core.signals import is_public_ip
from redirect_engine.interfaces import Geolocator
from redirect_engine.io.schema import VisitorLocation

logger = logging.getLogger(__name__)

UNKNOWN = VisitorLocation()

DEFAULT_LOOKUP_URL = "http://ip-api.com/json/{ip}?fields=status,countryCode,region,city"


def _first(data: dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if value:
            return str(value)
    return None


def parse_lookup_response(data: dict) -> VisitorLocation:
    """Map an ip-api style JSON body to a VisitorLocation."""
    if not isinstance(data, dict) or data.get("status") == "fail":
        return UNKNOWN
    country = _first(data, "countryCode", "country_code")
    return VisitorLocation(
        country=country.upper() if country else None,
        region=_first(data, "region", "region_code"),
        city=_first(data, "city"),
    )


class HttpGeolocator(Geolocator):
    """Look up visitors through an HTTP JSON API such as ip-api.com."""

    def __init__(
        self,
        url_template: str = DEFAULT_LOOKUP_URL,
        timeout: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url_template = url_template
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _lookup(self, url: str) -> VisitorLocation:
        resp = await self._get_client().get(url, timeout=self.timeout)
        resp.raise_for_status()
        return parse_lookup_response(resp.json())

    async def locate(self, ip: Optional[str]) -> VisitorLocation:
        if not is_public_ip(ip):
            return UNKNOWN

        url = self.url_template.format(ip=ip)
        try:
            # httpx timeouts are per phase; this bounds the whole lookup
            location = await asyncio.wait_for(self._lookup(url), self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("Geolocation timed out for %s after %.2fs", ip, self.timeout)
            return UNKNOWN
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Geolocation failed for %s: %s", ip, e)
            return UNKNOWN

        logger.debug("Located %s -> %s", ip, location.model_dump())
        return location

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class StaticGeolocator(Geolocator):
    """Fixed IP → location table."""

    def __init__(self, table: Optional[Dict[str, VisitorLocation]] = None):
        self.table = dict(table or {})

    async def locate(self, ip: Optional[str]) -> VisitorLocation:
        if ip is None:
            return UNKNOWN
        return self.table.get(ip, UNKNOWN)


class NullGeolocator(Geolocator):
    """Geolocation disabled: every visitor is at an unknown location."""

    async def locate(self, ip: Optional[str]) -> VisitorLocation:
        return UNKNOWN
