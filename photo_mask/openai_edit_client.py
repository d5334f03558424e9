"""
OpenAI Image Edit API Client

Sends the prepared headshot, its mask and a prompt to the OpenAI
images/edits endpoint (DALL-E 2) and returns the edited image URL.

Environment Variables:
    OPENAI_API_KEY: API key (required for editing)
    OPENAI_BASE_URL: Base URL (optional, defaults to https://api.openai.com/v1)
    OPENAI_IMAGE_MODEL: Model name (optional, defaults to dall-e-2)
    DEBUG_IMAGE_EDIT: Set to "1" to enable debug output
"""

import os
import requests
from typing import Optional
import time

from .env_config import get_env, get_int_env, get_openai_base_url, mask_api_key

# =============================================================================
# Configuration
# =============================================================================

EDITS_PATH = "/images/edits"
DEFAULT_MODEL = "dall-e-2"
DEFAULT_SIZE = "512x512"
DEFAULT_TIMEOUT = 60

DEBUG_ENABLED = os.getenv("DEBUG_IMAGE_EDIT", "0") == "1"


class ImageEditError(RuntimeError):
    """Edit API failure with the upstream HTTP status (None if no response)."""

    def __init__(self, status_code: Optional[int], message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def __str__(self):
        if self.status_code is None:
            return self.message
        return f"HTTP {self.status_code} - {self.message}"


def classify_edit_error(error: ImageEditError) -> str:
    """
    Map an edit failure to a stable error code.

    Callers turn the code into a user-facing message.
    """
    message = (error.message or "").lower()
    status = error.status_code

    if status is not None:
        if status == 400:
            if "png" in message:
                return "INVALID_FORMAT"
            if "less than 4 mb" in message or "4 mb" in message:
                return "FILE_TOO_LARGE"
            if "invalid image" in message:
                return "INVALID_IMAGE"
            return "BAD_REQUEST"
        if status == 401:
            return "UNAUTHORIZED"
        if status == 429:
            return "RATE_LIMITED"
        if status in (500, 502, 503):
            return "UPSTREAM_UNAVAILABLE"
        return "API_ERROR"

    if "timeout" in message or "timed out" in message:
        return "TIMEOUT"
    if "content policy" in message:
        return "CONTENT_POLICY"
    if "network" in message or "connection" in message or "connect" in message:
        return "NETWORK"
    return "UNKNOWN"


def _extract_error_message(response: requests.Response) -> str:
    """Pull the error message out of an OpenAI error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return str(body)[:500]


# =============================================================================
# Client
# =============================================================================

class OpenAIImageEditClient:
    """
    Thin client for the images/edits endpoint.

    Construct once per process and pass it to PhotoEditService.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        self._api_key = api_key.strip() if api_key else None
        self._base_url = (base_url or get_openai_base_url()[0]).rstrip("/")
        self._model = model
        self._timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_env(cls) -> "OpenAIImageEditClient":
        """Build a client from OPENAI_* environment variables."""
        base_url, warnings = get_openai_base_url()
        for warning in warnings:
            print(f"  ⚠️ [ImageEdit] {warning}")

        timeout = get_int_env("EDIT_TIMEOUT_SECONDS", DEFAULT_TIMEOUT)

        return cls(
            api_key=get_env("OPENAI_API_KEY"),
            base_url=base_url,
            model=get_env("OPENAI_IMAGE_MODEL", default=DEFAULT_MODEL),
            timeout=timeout,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def edit(
        self,
        image_png: bytes,
        mask_png: bytes,
        prompt: str,
        *,
        size: str = DEFAULT_SIZE
    ) -> str:
        """
        Edit an image through the API.

        Args:
            image_png: Prepared square PNG
            mask_png: RGBA PNG of the same size (alpha 0 = editable)
            prompt: Full edit prompt
            size: "256x256", "512x512" or "1024x1024"

        Returns:
            URL of the edited image

        Raises:
            ValueError: If API key not configured or inputs empty
            ImageEditError: If the request fails or returns no image
        """
        if not self._api_key:
            raise ValueError(
                "OpenAI API key not configured. "
                "Set OPENAI_API_KEY environment variable."
            )

        if not image_png or not mask_png:
            raise ValueError("Empty image or mask bytes provided")

        api_url = self._base_url + EDITS_PATH

        headers = {
            "Authorization": f"Bearer {self._api_key}"
        }

        files = {
            "image": ("image.png", image_png, "image/png"),
            "mask": ("mask.png", mask_png, "image/png"),
        }

        data = {
            "model": self._model,
            "prompt": prompt,
            "size": size,
            "n": "1",
        }

        if DEBUG_ENABLED:
            print(f"[ImageEdit] Sending request to {api_url}")
            print(f"[ImageEdit] Image size: {len(image_png)} bytes, mask size: {len(mask_png)} bytes")
            print(f"[ImageEdit] Prompt length: {len(prompt)} characters, size={size}")

        start_time = time.time()

        try:
            response = self._session.post(
                api_url,
                headers=headers,
                files=files,
                data=data,
                timeout=self._timeout
            )
        except requests.exceptions.Timeout:
            raise ImageEditError(None, f"Request timeout after {self._timeout} seconds")
        except requests.exceptions.ConnectionError as e:
            raise ImageEditError(None, f"Network connection error: {e}")

        elapsed = time.time() - start_time

        if response.status_code != 200:
            error = ImageEditError(response.status_code, _extract_error_message(response))
            print(f"[ImageEdit] ERROR: {error}")
            raise error

        try:
            payload = response.json()
        except ValueError:
            raise ImageEditError(response.status_code, "Invalid JSON in edit response")

        if not isinstance(payload, dict):
            raise ImageEditError(response.status_code, "Invalid edit response")

        results = payload.get("data") or []
        if not isinstance(results, list):
            raise ImageEditError(response.status_code, "Invalid edit response")
        if not results:
            raise ImageEditError(None, "No edited image generated")
        if not isinstance(results[0], dict):
            raise ImageEditError(response.status_code, "Invalid edit response")
        if not results[0].get("url"):
            raise ImageEditError(None, "No edited image generated")

        if DEBUG_ENABLED:
            print(f"[ImageEdit] Success in {elapsed * 1000:.0f}ms")

        return results[0]["url"]

    def check_configuration(self) -> dict:
        """
        Configuration status (without exposing the full key).
        """
        return {
            "api_configured": self.configured,
            "api_key_hint": mask_api_key(self._api_key),
            "base_url": self._base_url,
            "model": self._model,
            "timeout": self._timeout,
        }
