"""
Tests for the Photo Edit Service

The edit API is replaced by a fake client; masks and images are real.

Run with:
    pytest tests/test_photo_editor.py -v
"""

import pytest
import numpy as np
import cv2
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from photo_mask.image_prep import encode_png
from photo_mask.mask_config import ClassifierParams
from photo_mask.openai_edit_client import ImageEditError, OpenAIImageEditClient
from photo_mask.photo_editor import PhotoEditService, build_edit_prompt


class FakeEditClient:
    """Stands in for OpenAIImageEditClient"""

    def __init__(self, url="https://img.test/edited.png", error=None):
        self.url = url
        self.error = error
        self.calls = []

    def edit(self, image_png, mask_png, prompt, *, size="512x512"):
        self.calls.append({
            "image_png": image_png,
            "mask_png": mask_png,
            "prompt": prompt,
            "size": size,
        })
        if self.error is not None:
            raise self.error
        return self.url


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def headshot_png():
    """600x400 (WxH) synthetic headshot: gray backdrop with a textured oval"""
    image = np.full((400, 600, 3), (180, 185, 190), dtype=np.uint8)
    rng = np.random.default_rng(3)
    face = rng.integers(60, 200, (400, 600, 3), dtype=np.uint8)
    oval = np.zeros((400, 600), dtype=np.uint8)
    cv2.ellipse(oval, (300, 200), (110, 150), 0, 0, 360, 255, -1)
    image[oval > 0] = face[oval > 0]
    return encode_png(image)


def decode_png(content: bytes) -> np.ndarray:
    return cv2.imdecode(np.frombuffer(content, dtype=np.uint8), cv2.IMREAD_UNCHANGED)


class TestPrompt:
    """Prompt template"""

    def test_template(self):
        prompt = build_edit_prompt("  plain white background ")
        assert prompt == (
            "Professional CV headshot. Keep face identical. "
            "Change only: plain white background. Realistic photo quality."
        )

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_empty_rejected(self, value):
        with pytest.raises(ValueError):
            build_edit_prompt(value)


class TestEditPhoto:
    """Full pipeline with a fake client"""

    def test_success(self, headshot_png):
        client = FakeEditClient()
        service = PhotoEditService(client)

        result = service.edit_photo(headshot_png, "light gray background")

        assert result["success"] is True
        assert result["image_url"] == "https://img.test/edited.png"
        assert result["metrics"]["mask_mode"] == "classifier"
        assert "diagnostics" in result["metrics"]
        assert len(client.calls) == 1
        assert client.calls[0]["size"] == "512x512"
        assert "light gray background" in client.calls[0]["prompt"]

    def test_sends_square_image_and_binary_mask(self, headshot_png):
        client = FakeEditClient()
        PhotoEditService(client).edit_photo(headshot_png, "office background")

        image = decode_png(client.calls[0]["image_png"])
        mask = decode_png(client.calls[0]["mask_png"])

        assert image.shape == (512, 512, 3)
        assert mask.shape == (512, 512, 4)
        assert set(np.unique(mask[:, :, 3]).tolist()) <= {0, 255}

    def test_ellipse_mode(self, headshot_png):
        client = FakeEditClient()
        service = PhotoEditService(client, mask_mode="ellipse", edit_size=256)

        result = service.edit_photo(headshot_png, "blue background")
        mask = decode_png(client.calls[0]["mask_png"])

        assert result["success"] is True
        assert result["metrics"]["mask_mode"] == "ellipse"
        assert client.calls[0]["size"] == "256x256"
        assert mask.shape == (256, 256, 4)
        assert mask[128, 128, 3] == 255
        assert mask[0, 0, 3] == 0

    def test_empty_prompt(self, headshot_png):
        client = FakeEditClient()
        result = PhotoEditService(client).edit_photo(headshot_png, "  ")

        assert result["success"] is False
        assert result["error_code"] == "EMPTY_PROMPT"
        assert client.calls == []

    def test_non_png_upload(self):
        client = FakeEditClient()
        ok, jpeg = cv2.imencode(".jpg", np.zeros((64, 64, 3), dtype=np.uint8))
        assert ok

        result = PhotoEditService(client).edit_photo(jpeg.tobytes(), "gray background")

        assert result["success"] is False
        assert result["error_code"] == "INVALID_UPLOAD"
        assert client.calls == []

    def test_api_error_mapped(self, headshot_png):
        client = FakeEditClient(error=ImageEditError(429, "Rate limit reached"))
        result = PhotoEditService(client).edit_photo(headshot_png, "gray background")

        assert result["success"] is False
        assert result["error_code"] == "RATE_LIMITED"
        assert result["status_code"] == 429
        assert "diagnostics" in result["metrics"]

    def test_unconfigured_client(self, headshot_png):
        client = OpenAIImageEditClient(api_key=None, base_url="https://api.example.test/v1")
        result = PhotoEditService(client).edit_photo(headshot_png, "gray background")

        assert result["success"] is False
        assert result["error_code"] == "NOT_CONFIGURED"

    def test_malformed_response_mapped(self, headshot_png):
        client = FakeEditClient(error=ImageEditError(200, "Invalid edit response"))
        result = PhotoEditService(client).edit_photo(headshot_png, "gray background")

        assert result["success"] is False
        assert result["error_code"] == "API_ERROR"
        assert result["status_code"] == 200


class TestSubmitEdit:
    """Sending an already-built mask"""

    def test_sends_given_mask_once(self):
        client = FakeEditClient()
        service = PhotoEditService(client, mask_mode="ellipse", edit_size=64)
        image = np.zeros((64, 64, 3), dtype=np.uint8)
        mask, metrics = service.build_mask(image)

        result = service.submit_edit(image, mask, build_edit_prompt("gray background"), metrics)

        assert result["success"] is True
        assert "total_time_ms" in result["metrics"]
        assert len(client.calls) == 1
        assert client.calls[0]["size"] == "64x64"
        np.testing.assert_array_equal(decode_png(client.calls[0]["mask_png"]), mask)


class TestBuildMask:
    """Mask building and diagnostics"""

    def test_degenerate_mask_still_returned(self):
        """Uniform image: everything is background, flagged but returned"""
        service = PhotoEditService(FakeEditClient())
        mask, metrics = service.build_mask(np.zeros((64, 64, 3), dtype=np.uint8))

        assert mask.shape == (64, 64, 4)
        assert metrics["diagnostics"]["is_degenerate"] is True
        assert metrics["diagnostics"]["quality"] == "too_aggressive"

    def test_custom_params_used(self):
        params = ClassifierParams(background_threshold=5.0)
        service = PhotoEditService(FakeEditClient(), params=params)
        mask, metrics = service.build_mask(np.zeros((32, 32, 3), dtype=np.uint8))

        assert np.all(mask[:, :, 3] == 255)
        assert metrics["diagnostics"]["quality"] == "too_protective"

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            PhotoEditService(FakeEditClient(), mask_mode="grabcut")


class TestFromEnv:
    """Service configuration from environment"""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key-1234567890")
        monkeypatch.setenv("MASK_MODE", "ellipse")
        monkeypatch.setenv("EDIT_IMAGE_SIZE", "1024x1024")
        monkeypatch.setenv("MASK_BORDER_DISTANCE_PX", "80")

        service = PhotoEditService.from_env()

        assert service.mask_mode == "ellipse"
        assert service.edit_size == 1024
        assert service.params.border_distance_px == 80
        assert service.client.configured is True


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
