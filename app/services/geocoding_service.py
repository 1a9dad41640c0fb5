import asyncio
import logging
import os
from typing import Any, Dict, Optional

import requests
from dotenv import load_dotenv
from fastapi import HTTPException

from app.models import Location

load_dotenv()
logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


class GeocodingService:
    """Resolves free-text addresses to coordinates with the Google Geocoding API."""

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key or os.getenv("GOOGLE_MAPS_API_KEY")
        self.timeout = timeout or float(os.getenv("GEOCODING_TIMEOUT", "10"))

        if not self.api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY environment variable is required")

    def _request(self, address: str) -> Dict[str, Any]:
        response = requests.get(
            GEOCODE_URL,
            params={"address": address, "key": self.api_key},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def get_coords_for_address(self, address: str) -> Location:
        # requests is blocking; keep it off the event loop
        try:
            data = await asyncio.to_thread(self._request, address)
        except (requests.RequestException, ValueError) as e:
            logger.error("Geocoding request failed for %r: %s", address, e)
            raise HTTPException(
                status_code=502,
                detail="Geocoding service unavailable, please try again later.",
            )

        if not isinstance(data, dict):
            data = {}
        status = str(data.get("status") or "UNKNOWN")
        results = data.get("results") or []

        if status == "ZERO_RESULTS" or (status == "OK" and not results):
            raise HTTPException(
                status_code=422,
                detail="Could not find location for the specified address.",
            )
        if status != "OK":
            logger.error(
                "Geocoding error for %r: %s %s", address, status, data.get("error_message", "")
            )
            raise HTTPException(
                status_code=502,
                detail="Geocoding service unavailable, please try again later.",
            )

        coords = results[0].get("geometry", {}).get("location", {})
        try:
            return Location(lat=float(coords["lat"]), lng=float(coords["lng"]))
        except (KeyError, TypeError, ValueError):
            logger.error("Malformed geocoding result for %r: %s", address, results[0])
            raise HTTPException(
                status_code=502,
                detail="Geocoding service unavailable, please try again later.",
            )


_geocoding_service_instance: Optional[GeocodingService] = None


def get_geocoding_service() -> GeocodingService:
    global _geocoding_service_instance
    if _geocoding_service_instance is None:
        try:
            _geocoding_service_instance = GeocodingService()
        except ValueError as e:
            logger.error("Geocoding is not configured: %s", e)
            raise HTTPException(status_code=500, detail="Geocoding is not configured")
    return _geocoding_service_instance
