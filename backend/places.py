"""
Place Search — REST adapter for the nearby-places collaborator.

POSTs {"query", "location"} to the configured endpoint and expects
{"text": "...", "groundingMetadata": {...}} back. Calls are not retried;
a failure surfaces as CollaboratorError and the orchestrator falls back.
"""
from __future__ import annotations

import structlog
from typing import Any, Optional

import httpx

from config.settings import PlacesConfig, get_settings, is_configured
from core.collaborators import CollaboratorError, PlaceSearchService
from models.schemas import GeoLocation, PlaceSearchResult

logger = structlog.get_logger()


class RESTPlaceSearch(PlaceSearchService):

    def __init__(self, config: PlacesConfig = None):
        self.config = config or get_settings().places
        self.client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if not is_configured(self.config.base_url):
            raise CollaboratorError("Place search base_url is not configured", collaborator="places")
        if self.client is None or self.client.is_closed:
            headers = {}
            if is_configured(self.config.api_key):
                headers["Authorization"] = f"Bearer {self.config.api_key}"
            self.client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers=headers,
                timeout=self.config.timeout_s,
            )
        return self.client

    async def search(self, query: str, location: Optional[GeoLocation] = None) -> PlaceSearchResult:
        client = await self._get_client()
        body: dict[str, Any] = {"query": query}
        if location is not None:
            body["location"] = {"lat": location.lat, "lng": location.lng}

        try:
            response = await client.post(self.config.endpoint, json=body)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("place_search_failed", query=query, error=str(e))
            raise CollaboratorError(f"Place search failed: {e}", collaborator="places") from e

        text = data.get("text") if isinstance(data, dict) else None
        if not text:
            raise CollaboratorError("Place search returned no text", collaborator="places")
        grounding = data.get("groundingMetadata", data.get("grounding_metadata"))
        return PlaceSearchResult(
            text=text,
            grounding_metadata=grounding if isinstance(grounding, dict) else None,
        )

    async def close(self) -> None:
        if self.client is not None and not self.client.is_closed:
            await self.client.aclose()
