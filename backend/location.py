"""
Location providers — best-effort "where is the user" for place search.

Callers always bound locate() with a timeout; providers themselves
just answer or raise LocationUnavailable.
"""
from __future__ import annotations

import structlog
from typing import Optional

import httpx

from config.settings import LocationConfig, get_settings
from core.collaborators import LocationProvider, LocationUnavailable
from models.schemas import GeoLocation

logger = structlog.get_logger()


class StaticLocationProvider(LocationProvider):
    """Fixed coordinates from configuration (kiosk or desktop installs)."""

    def __init__(self, lat: Optional[float] = None, lng: Optional[float] = None):
        self.lat = lat
        self.lng = lng

    async def locate(self) -> GeoLocation:
        if self.lat is None or self.lng is None:
            raise LocationUnavailable("No static location configured")
        return GeoLocation(lat=self.lat, lng=self.lng)


class IPGeolocationProvider(LocationProvider):
    """Approximate location from a public IP lookup service."""

    def __init__(self, lookup_url: str = "https://ipapi.co/json/", timeout_s: float = 5.0):
        self.lookup_url = lookup_url
        self.timeout_s = timeout_s

    async def locate(self) -> GeoLocation:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                response = await client.get(self.lookup_url)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LocationUnavailable(f"IP lookup failed: {e}") from e

        lat = data.get("latitude", data.get("lat"))
        lng = data.get("longitude", data.get("lon", data.get("lng")))
        if lat is None or lng is None:
            raise LocationUnavailable("IP lookup returned no coordinates")
        return GeoLocation(lat=float(lat), lng=float(lng))


def create_location_provider(config: LocationConfig = None) -> Optional[LocationProvider]:
    """Factory — returns None when location is disabled."""
    config = config or get_settings().location
    provider = (config.provider or "none").lower()

    if provider == "static":
        return StaticLocationProvider(config.lat, config.lng)
    if provider == "ip":
        return IPGeolocationProvider(config.lookup_url)
    if provider != "none":
        logger.warning("unknown_location_provider", provider=provider)
    return None
