"""
Geocoding Service - free-text disaster descriptions to coordinates

Two-stage pipeline:
1. Gemini extracts the most specific place name from the description
2. Google Maps Geocoding API turns that place name into lat/lng

Only the combined {extractedLocation, coordinates} result is cached (60 min
by default), so a failure at either stage is never cached.
"""

import requests
from typing import Dict, Optional
import logging

from services.cache_manager import CacheManager
from utils.errors import LocationNotFoundError, UpstreamServiceError, ValidationError
from utils.secure_logging import redact_pii

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = (
    'Extract the most specific city, state, or well-known location from the '
    'following text. Respond with only the location name and nothing else. '
    'For example, for "flooding near the Eiffel Tower in Paris", respond '
    '"Eiffel Tower, Paris". Text: "{description}"'
)


class GeocodingService:
    """
    Forward geocoding of disaster descriptions

    Usage:
        service = GeocodingService(cache_manager, gemini_service, maps_api_key)
        result = service.geocode_description("Flooding near the Eiffel Tower")
        # {'extractedLocation': 'Eiffel Tower, Paris',
        #  'coordinates': {'lat': 48.858, 'lng': 2.294}}
    """

    GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(self, cache_manager: CacheManager, gemini_service, maps_api_key: Optional[str] = None,
                 ttl_minutes: int = CacheManager.CACHE_DURATIONS['geocode'], timeout: int = 10):
        """
        Args:
            cache_manager: CacheManager instance for Firebase caching
            gemini_service: GeminiService used for location extraction
            maps_api_key: Google Maps API key
            ttl_minutes: Cache window for combined results
            timeout: Google Maps request timeout in seconds
        """
        self.cache_manager = cache_manager
        self.gemini_service = gemini_service
        self.maps_api_key = maps_api_key
        self.ttl_minutes = ttl_minutes
        self.timeout = timeout

    def geocode_description(self, description: str) -> Dict:
        """
        Resolve a free-text description to a place name and coordinates.

        Raises:
            ValidationError: description is empty
            UpstreamServiceError: Gemini could not extract a location, or a service call failed
            LocationNotFoundError: Google Maps had no result for the extracted location
        """
        if not isinstance(description, str) or not description.strip():
            raise ValidationError('Description is required.')

        cache_key = CacheManager.build_key('geocode', description)
        return self.cache_manager.get_or_compute(
            cache_key,
            lambda: self._resolve(description),
            self.ttl_minutes
        )

    def _resolve(self, description: str) -> Dict:
        logger.info(f"Geocoding description: {redact_pii(description[:80])}")
        location = self.extract_location(description)
        coordinates = self.lookup_coordinates(location)
        return {'extractedLocation': location, 'coordinates': coordinates}

    def extract_location(self, description: str) -> str:
        """Ask Gemini for the place name mentioned in `description`."""
        try:
            location = self.gemini_service.generate_text(EXTRACTION_PROMPT.format(description=description))
        except UpstreamServiceError as e:
            raise UpstreamServiceError(
                f"Location extraction failed: {e}",
                public_message='Could not extract location from description using Gemini.'
            ) from e

        location = location.strip().strip('"').strip()
        if not location:
            raise UpstreamServiceError(
                'Gemini returned an empty location',
                public_message='Could not extract location from description using Gemini.'
            )
        return location

    def lookup_coordinates(self, location: str) -> Dict[str, float]:
        """
        Convert a place name to {'lat', 'lng'} using Google Maps.

        Raises:
            UpstreamServiceError: request failed or the API key is missing
            LocationNotFoundError: non-OK status or no results
        """
        if not self.maps_api_key:
            raise UpstreamServiceError('GOOGLE_MAPS_API_KEY not configured')

        try:
            response = requests.get(
                self.GEOCODE_URL,
                params={'address': location, 'key': self.maps_api_key},
                timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Google Maps geocoding request failed: {e}")
            raise UpstreamServiceError(f"Google Maps geocoding request failed: {e}") from e
        except ValueError as e:
            logger.error(f"Google Maps returned invalid JSON: {e}")
            raise UpstreamServiceError(f"Google Maps returned invalid JSON: {e}") from e

        results = data.get('results') or []
        if data.get('status') != 'OK' or not results:
            logger.warning(f"Geocoding API error for '{location}': status={data.get('status')}")
            raise LocationNotFoundError(
                'Could not find coordinates for the extracted location.',
                location=location
            )

        geometry = results[0].get('geometry', {}).get('location', {})
        return {'lat': geometry.get('lat'), 'lng': geometry.get('lng')}
