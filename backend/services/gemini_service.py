"""
Gemini Service - text and vision calls to Google Gemini

Thin wrapper around the google-genai client used by geocoding (location
extraction from free text) and report verification (image classification).
Every failure surfaces as UpstreamServiceError; nothing is retried.
"""

import logging
from typing import Optional

from google import genai
from google.genai import types

from utils.errors import UpstreamServiceError

logger = logging.getLogger(__name__)


class GeminiService:
    """
    Usage:
        gemini = GeminiService(api_key, model='gemini-2.0-flash')
        text = gemini.generate_text("Extract the location from ...")
        verdict = gemini.classify_image(prompt, image_bytes, 'image/jpeg')
    """

    def __init__(self, api_key: Optional[str] = None, model: str = 'gemini-2.0-flash', client=None):
        """
        Args:
            api_key: Gemini API key; without it (and without `client`) every call fails
            model: Model name passed to generate_content
            client: Pre-built genai.Client, used by tests
        """
        self.model = model
        self.client = client
        if self.client is None and api_key:
            try:
                self.client = genai.Client(api_key=api_key)
                logger.info("Gemini client initialized successfully")
            except Exception as e:
                logger.warning(f"Failed to initialize Gemini client: {e}")

        if self.client is None:
            logger.warning("GEMINI_API_KEY not provided - geocoding and image verification disabled")

    def is_enabled(self) -> bool:
        return self.client is not None

    def _generate(self, contents) -> str:
        if not self.client:
            raise UpstreamServiceError("Gemini client not configured")

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=contents
            )
        except Exception as e:
            logger.error(f"Gemini API failed: {e}")
            raise UpstreamServiceError(f"Gemini API failed: {e}") from e

        text = getattr(response, 'text', None)
        if not text or not text.strip():
            logger.error("Gemini returned an empty response")
            raise UpstreamServiceError("Gemini returned an empty response")

        return text.strip()

    def generate_text(self, prompt: str) -> str:
        """Run a text-only prompt and return the stripped response text."""
        return self._generate(prompt)

    def classify_image(self, prompt: str, image_bytes: bytes, mime_type: str = 'image/jpeg') -> str:
        """Run a vision prompt over raw image bytes and return the response text."""
        return self._generate([
            prompt,
            types.Part.from_bytes(data=image_bytes, mime_type=mime_type)
        ])
