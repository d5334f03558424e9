"""
Tests for the OpenAI Image Edit Client

No network access: requests are captured by a fake session.

Run with:
    pytest tests/test_openai_edit_client.py -v
"""

import pytest
import requests
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from photo_mask.env_config import ConfigError
from photo_mask.openai_edit_client import (
    OpenAIImageEditClient,
    ImageEditError,
    classify_edit_error,
    DEFAULT_MODEL,
)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON")
        return self._payload


class FakeSession:
    """Records post() calls and returns a canned response or raises"""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def make_client(session, api_key="sk-test-key-1234567890"):
    return OpenAIImageEditClient(
        api_key=api_key,
        base_url="https://api.example.test/v1/",
        session=session,
    )


class TestEditRequest:
    """Successful requests"""

    def test_returns_image_url(self):
        session = FakeSession(FakeResponse(200, {"data": [{"url": "https://img.test/edited.png"}]}))
        client = make_client(session)

        url = client.edit(b"image", b"mask", "prompt text")

        assert url == "https://img.test/edited.png"

    def test_request_contents(self):
        session = FakeSession(FakeResponse(200, {"data": [{"url": "https://img.test/x.png"}]}))
        client = make_client(session)

        client.edit(b"image-bytes", b"mask-bytes", "make it gray", size="1024x1024")

        url, kwargs = session.calls[0]
        assert url == "https://api.example.test/v1/images/edits"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test-key-1234567890"
        assert kwargs["files"]["image"] == ("image.png", b"image-bytes", "image/png")
        assert kwargs["files"]["mask"] == ("mask.png", b"mask-bytes", "image/png")
        assert kwargs["data"]["model"] == DEFAULT_MODEL
        assert kwargs["data"]["prompt"] == "make it gray"
        assert kwargs["data"]["size"] == "1024x1024"
        assert kwargs["data"]["n"] == "1"
        assert kwargs["timeout"] == 60


class TestEditFailures:
    """Structured errors"""

    def test_missing_api_key(self):
        session = FakeSession()
        client = make_client(session, api_key=None)

        with pytest.raises(ValueError):
            client.edit(b"image", b"mask", "prompt")
        assert session.calls == []

    def test_empty_bytes(self):
        client = make_client(FakeSession())
        with pytest.raises(ValueError):
            client.edit(b"", b"mask", "prompt")

    def test_http_error_carries_status_and_message(self):
        body = {"error": {"message": "Uploaded image must be a PNG and less than 4 MB."}}
        client = make_client(FakeSession(FakeResponse(400, body)))

        with pytest.raises(ImageEditError) as exc_info:
            client.edit(b"image", b"mask", "prompt")

        assert exc_info.value.status_code == 400
        assert "must be a PNG" in exc_info.value.message
        assert "HTTP 400" in str(exc_info.value)

    def test_http_error_with_text_body(self):
        client = make_client(FakeSession(FakeResponse(502, None, text="Bad gateway")))

        with pytest.raises(ImageEditError) as exc_info:
            client.edit(b"image", b"mask", "prompt")

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "Bad gateway"

    def test_timeout(self):
        client = make_client(FakeSession(error=requests.exceptions.Timeout()))

        with pytest.raises(ImageEditError) as exc_info:
            client.edit(b"image", b"mask", "prompt")

        assert exc_info.value.status_code is None
        assert classify_edit_error(exc_info.value) == "TIMEOUT"

    def test_connection_error(self):
        client = make_client(FakeSession(error=requests.exceptions.ConnectionError("refused")))

        with pytest.raises(ImageEditError) as exc_info:
            client.edit(b"image", b"mask", "prompt")

        assert classify_edit_error(exc_info.value) == "NETWORK"

    def test_empty_data(self):
        client = make_client(FakeSession(FakeResponse(200, {"data": []})))

        with pytest.raises(ImageEditError, match="No edited image generated"):
            client.edit(b"image", b"mask", "prompt")

    @pytest.mark.parametrize("payload", [
        ["unexpected"],
        {"data": "not-a-list"},
        {"data": ["not-a-dict"]},
    ])
    def test_unexpected_payload_shape(self, payload):
        client = make_client(FakeSession(FakeResponse(200, payload)))

        with pytest.raises(ImageEditError, match="Invalid edit response") as exc_info:
            client.edit(b"image", b"mask", "prompt")

        assert exc_info.value.status_code == 200


class TestClassifyEditError:
    """Error code mapping"""

    @pytest.mark.parametrize("status,message,expected", [
        (400, "Uploaded image must be a PNG", "INVALID_FORMAT"),
        (400, "Image must be less than 4 MB", "FILE_TOO_LARGE"),
        (400, "invalid image data", "INVALID_IMAGE"),
        (400, "Missing prompt", "BAD_REQUEST"),
        (401, "Incorrect API key", "UNAUTHORIZED"),
        (429, "Rate limit reached", "RATE_LIMITED"),
        (500, "Internal error", "UPSTREAM_UNAVAILABLE"),
        (502, "", "UPSTREAM_UNAVAILABLE"),
        (503, "Overloaded", "UPSTREAM_UNAVAILABLE"),
        (404, "Not found", "API_ERROR"),
        (None, "Request timeout after 60 seconds", "TIMEOUT"),
        (None, "Rejected by content policy", "CONTENT_POLICY"),
        (None, "Network connection error", "NETWORK"),
        (None, "No edited image generated", "UNKNOWN"),
    ])
    def test_codes(self, status, message, expected):
        assert classify_edit_error(ImageEditError(status, message)) == expected


class TestConfiguration:
    """Client configuration"""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "  sk-env-key-abcdef123456\n")
        monkeypatch.setenv("OPENAI_BASE_URL", "https://proxy.test/v1/")
        monkeypatch.setenv("OPENAI_IMAGE_MODEL", "dall-e-2")
        monkeypatch.setenv("EDIT_TIMEOUT_SECONDS", "30")

        config = OpenAIImageEditClient.from_env().check_configuration()

        assert config["api_configured"] is True
        assert config["base_url"] == "https://proxy.test/v1"
        assert config["timeout"] == 30
        assert config["api_key_hint"] == "sk-env...3456"

    def test_not_configured(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_BASE_URL", raising=False)

        client = OpenAIImageEditClient.from_env()

        assert client.configured is False
        assert client.check_configuration()["base_url"] == "https://api.openai.com/v1"

    def test_invalid_timeout(self, monkeypatch):
        monkeypatch.setenv("EDIT_TIMEOUT_SECONDS", "abc")

        with pytest.raises(ConfigError):
            OpenAIImageEditClient.from_env()


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
