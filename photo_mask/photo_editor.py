"""
Professional Photo Editor

Complete pipeline for the CV headshot touch-up:
1. Upload validation (PNG, max 4 MB)
2. Cover-fit resize to the square edit size
3. Subject mask synthesis (heuristic classifier, or fixed ellipse)
4. Mask diagnostics (advisory only)
5. Edit API call with a face-preserving prompt

The service is constructed once with its edit client and passed to whoever
handles requests; it keeps no per-request state.
"""

import time
from typing import Dict, Optional

import numpy as np

from .ellipse_mask import create_ellipse_mask
from .env_config import get_mask_mode, get_env
from .image_prep import (
    DEFAULT_EDIT_SIZE,
    encode_png,
    parse_edit_size,
    prepare_image,
    validate_upload,
)
from .mask_config import ClassifierParams
from .mask_diagnostics import analyze_mask
from .openai_edit_client import ImageEditError, OpenAIImageEditClient, classify_edit_error
from .subject_mask import synthesize_subject_mask

PROMPT_TEMPLATE = (
    "Professional CV headshot. Keep face identical. "
    "Change only: {prompt}. Realistic photo quality."
)


def build_edit_prompt(user_prompt: str) -> str:
    """
    Wrap the user's request in the face-preserving prompt.

    Raises:
        ValueError: If the prompt is empty
    """
    if not user_prompt or not user_prompt.strip():
        raise ValueError("Prompt must not be empty")
    return PROMPT_TEMPLATE.format(prompt=user_prompt.strip())


def _failure(error_code: str, error: str, status_code: Optional[int] = None, **extra) -> Dict:
    result = {
        "success": False,
        "error_code": error_code,
        "error": error,
        "status_code": status_code,
    }
    result.update(extra)
    return result


class PhotoEditService:
    """Mask + edit orchestration for one uploaded headshot at a time."""

    def __init__(
        self,
        client: OpenAIImageEditClient,
        mask_mode: str = "classifier",
        edit_size: int = DEFAULT_EDIT_SIZE,
        params: Optional[ClassifierParams] = None
    ):
        if mask_mode not in ("classifier", "ellipse"):
            raise ValueError(f"Unknown mask mode: {mask_mode}")

        self.client = client
        self.mask_mode = mask_mode
        self.edit_size = edit_size
        self.params = params or ClassifierParams()

    @classmethod
    def from_env(cls) -> "PhotoEditService":
        """Build the service and its client from environment configuration."""
        return cls(
            client=OpenAIImageEditClient.from_env(),
            mask_mode=get_mask_mode(),
            edit_size=parse_edit_size(get_env("EDIT_IMAGE_SIZE")),
            params=ClassifierParams.from_env(),
        )

    def build_mask(self, image_rgb: np.ndarray, job_id: str = "") -> tuple:
        """
        Build the edit mask for a prepared RGB raster.

        Returns:
            Tuple of (mask, metrics_dict)
        """
        height, width = image_rgb.shape[:2]

        if self.mask_mode == "ellipse":
            mask = create_ellipse_mask(width, height)
            metrics = {"width": width, "height": height}
        else:
            mask, metrics = synthesize_subject_mask(image_rgb, self.params, job_id=job_id)

        metrics["mask_mode"] = self.mask_mode
        metrics["diagnostics"] = analyze_mask(mask)
        return mask, metrics

    def edit_photo(self, image_bytes: bytes, user_prompt: str, job_id: str = "") -> Dict:
        """
        Run the full edit pipeline.

        Returns:
            {"success": True, "image_url": ..., "metrics": {...}} or
            {"success": False, "error_code": ..., "error": ..., "status_code": ...}
        """
        start_time = time.time()

        try:
            prompt = build_edit_prompt(user_prompt)
        except ValueError as e:
            return _failure("EMPTY_PROMPT", str(e))

        is_valid, error = validate_upload(image_bytes)
        if not is_valid:
            return _failure("INVALID_UPLOAD", error)

        try:
            image_rgb = prepare_image(image_bytes, self.edit_size)
        except ValueError as e:
            return _failure("INVALID_IMAGE", f"Failed to prepare image for editing: {e}")

        mask, metrics = self.build_mask(image_rgb, job_id=job_id)
        return self.submit_edit(image_rgb, mask, prompt, metrics, start_time=start_time)

    def submit_edit(
        self,
        image_rgb: np.ndarray,
        mask: np.ndarray,
        prompt: str,
        metrics: Dict,
        start_time: Optional[float] = None
    ) -> Dict:
        """
        Send a prepared image and its already-built mask to the edit client.

        prompt is the full prompt from build_edit_prompt; metrics is the dict
        returned by build_mask.
        """
        if start_time is None:
            start_time = time.time()

        diagnostics = metrics["diagnostics"]

        if diagnostics["is_degenerate"]:
            print(f"  ⚠️ [Mask] Degenerate mask: {diagnostics['recommendation']}")

        image_png = encode_png(image_rgb)
        mask_png = encode_png(mask)

        print(f"[PhotoEdit] Sending edit: image {len(image_png)} bytes, "
              f"mask {len(mask_png)} bytes, prompt {len(prompt)} chars, "
              f"mask {diagnostics['transparent_pct']:.1f}% editable")

        size = f"{self.edit_size}x{self.edit_size}"
        try:
            image_url = self.client.edit(image_png, mask_png, prompt, size=size)
        except ImageEditError as e:
            return _failure(classify_edit_error(e), e.message, e.status_code, metrics=metrics)
        except ValueError as e:
            return _failure("NOT_CONFIGURED", str(e), metrics=metrics)

        metrics["total_time_ms"] = round((time.time() - start_time) * 1000, 1)

        return {
            "success": True,
            "image_url": image_url,
            "metrics": metrics,
        }
