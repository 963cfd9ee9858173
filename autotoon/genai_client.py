# genai_client.py
import asyncio
import logging
import os
from typing import Optional

# Google AI SDK (text planning and Gemini image generation)
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

# Fal AI SDK for the alternative nano banana image backend
import fal_client
import requests

from autotoon import config

logger = logging.getLogger(__name__)

RATE_LIMIT_KEYWORDS = ("rate", "quota", "limit", "throttle")
RATE_LIMIT_STATUSES = {429}


class ConfigurationError(RuntimeError):
    """Missing or invalid oracle credentials. Fatal for the request."""


class OracleError(RuntimeError):
    """A single oracle call failed. Callers retry or degrade."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def rate_limited(self) -> bool:
        if self.status is not None:
            return self.status in RATE_LIMIT_STATUSES
        # No status from the SDK: fall back to sniffing the message text
        text = str(self).lower()
        return any(k in text for k in RATE_LIMIT_KEYWORDS)


def _status_of(exc: Exception) -> Optional[int]:
    if isinstance(exc, genai_errors.APIError):
        if exc.status == "RESOURCE_EXHAUSTED":
            return 429
        return exc.code
    code = getattr(exc, "status_code", None)
    return code if isinstance(code, int) else None


# ------------------ GENAI WRAPPER ----------------


class GAIC:
    def __init__(self, api_key: str, text_model: str = config.TEXT_MODEL,
                 image_model: str = config.IMAGE_MODEL,
                 image_backend: str = config.IMAGE_BACKEND,
                 fal_key: str = config.FAL_KEY):
        if not api_key:
            raise ConfigurationError("Gemini API key not configured")
        if image_backend == "fal" and not fal_key:
            raise ConfigurationError(
                "FAL_KEY must be set when IMAGE_BACKEND=fal")
        if image_backend == "fal":
            os.environ["FAL_KEY"] = fal_key
        self.client = genai.Client(api_key=api_key)
        self.text_model = text_model
        self.image_model = image_model
        self.image_backend = image_backend
        self.fal_key = fal_key

    # Text planning
    async def generate_text(self, prompt: str) -> str:
        try:
            resp = await self.client.aio.models.generate_content(
                model=self.text_model, contents=prompt)
        except Exception as e:
            raise OracleError(f"Text generation failed: {e}",
                              status=_status_of(e)) from e
        if getattr(resp, "text", ""):
            return resp.text
        out = []
        for c in getattr(resp, "candidates", []) or []:
            content = getattr(c, "content", None)
            for p in getattr(content, "parts", None) or []:
                if getattr(p, "text", None):
                    out.append(p.text)
        return "\n".join(out).strip()

    async def generate_image(self, prompt: str) -> Optional[bytes]:
        """
        Generate a single image for the prompt.
        Returns raw image bytes, or None when the oracle answered without an image.
        """
        if self.image_backend == "fal":
            return await self._generate_image_with_fal(prompt)
        return await self._generate_image_with_gemini(prompt)

    async def _generate_image_with_gemini(self, prompt: str) -> Optional[bytes]:
        try:
            resp = await self.client.aio.models.generate_content(
                model=self.image_model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_modalities=["TEXT", "IMAGE"]),
            )
        except Exception as e:
            raise OracleError(f"Gemini image generation failed: {e}",
                              status=_status_of(e)) from e

        for c in getattr(resp, "candidates", []) or []:
            content = getattr(c, "content", None)
            for part in getattr(content, "parts", None) or []:
                inline = getattr(part, "inline_data", None)
                if inline is not None and inline.data:
                    return inline.data
        return None

    async def _generate_image_with_fal(self, prompt: str) -> Optional[bytes]:
        try:
            result = await fal_client.subscribe_async(
                config.FAL_IMAGE_ENDPOINT,
                arguments={
                    "prompt": prompt,
                    "num_images": 1,
                    "output_format": "png"
                },
            )
        except Exception as e:
            raise OracleError(f"Fal image generation failed: {e}",
                              status=_status_of(e)) from e

        if not result.get("images"):
            return None
        image_url = result["images"][0]["url"]
        response = await asyncio.to_thread(requests.get, image_url, timeout=30)
        if response.status_code != 200:
            raise OracleError(
                f"Failed to download image from Fal: {response.status_code}",
                status=response.status_code)
        return response.content


def get_client() -> GAIC:
    """Build the oracle client from the environment, or raise ConfigurationError."""
    return GAIC(config.GEMINI_API_KEY)
