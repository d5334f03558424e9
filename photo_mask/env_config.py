"""
Environment Configuration Helper

Provides robust parsing and validation of environment variables,
handling common issues like trailing newlines, whitespace, and format validation.

Usage:
    from photo_mask.env_config import get_env, get_float_env, get_config_summary
"""

import os
import re
from typing import Optional, Dict, Any
from urllib.parse import urlparse


OPENAI_DEFAULT_BASE_URL = "https://api.openai.com/v1"
MASK_MODES = ("classifier", "ellipse")


class ConfigError(Exception):
    """Raised when a required configuration is missing or invalid."""
    pass


def get_env(
    name: str,
    default: Optional[str] = None,
    required: bool = False,
    strip: bool = True
) -> Optional[str]:
    """
    Get environment variable with robust sanitization.

    Args:
        name: Environment variable name
        default: Default value if not set
        required: Raise ConfigError if missing/empty
        strip: Strip whitespace/newlines (default True)

    Returns:
        Sanitized value or default

    Raises:
        ConfigError: If required and missing/empty after sanitization
    """
    value = os.getenv(name, "")

    if strip and value:
        value = value.strip()
        value = value.replace('\n', '').replace('\r', '')

    if not value:
        if required:
            raise ConfigError(f"Required environment variable '{name}' is not set or empty")
        return default

    return value


def get_float_env(name: str, default: float) -> float:
    """
    Get a float environment variable.

    Raises:
        ConfigError: If the value is set but not a number
    """
    value = get_env(name)
    if value is None:
        return default

    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"Environment variable '{name}' must be a number, got '{value}'")


def get_int_env(name: str, default: int) -> int:
    """
    Get an integer environment variable.

    Raises:
        ConfigError: If the value is set but not an integer
    """
    value = get_env(name)
    if value is None:
        return default

    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"Environment variable '{name}' must be an integer, got '{value}'")


def get_bool_env(name: str, default: bool = False) -> bool:
    """Get a boolean flag ("1", "true", "yes" are truthy)."""
    value = get_env(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


def sanitize_url(url: str) -> str:
    """
    Sanitize a URL by removing whitespace and trailing slashes.
    """
    if not url:
        return url

    url = url.strip().replace('\n', '').replace('\r', '')
    url = url.rstrip('/')

    return url


def validate_openai_base_url(url: str) -> tuple[str, list[str]]:
    """
    Validate and sanitize OPENAI_BASE_URL.

    Returns:
        Tuple of (sanitized_url, list_of_warnings)
    """
    warnings = []

    if not url:
        return url, []

    original = url
    url = sanitize_url(url)

    if url != original:
        warnings.append("OPENAI_BASE_URL contained whitespace/newlines/trailing slash, sanitized")

    parsed = urlparse(url)
    if parsed.scheme == "http":
        warnings.append("OPENAI_BASE_URL uses http:// - API key will be sent unencrypted")
    elif parsed.scheme != "https":
        warnings.append(f"OPENAI_BASE_URL has unusual scheme: {parsed.scheme or '(none)'}")

    return url, warnings


def get_openai_base_url() -> tuple[str, list[str]]:
    """
    Get and validate OPENAI_BASE_URL, falling back to the public API.

    Returns:
        Tuple of (sanitized_url, list_of_warnings)
    """
    raw_url = os.getenv("OPENAI_BASE_URL", "")

    if not raw_url.strip():
        return OPENAI_DEFAULT_BASE_URL, []

    return validate_openai_base_url(raw_url)


def get_mask_mode() -> str:
    """
    Get MASK_MODE ("classifier" or "ellipse").

    Raises:
        ConfigError: If an unknown mode is configured
    """
    mode = get_env("MASK_MODE", default="classifier").lower()
    if mode not in MASK_MODES:
        raise ConfigError(f"MASK_MODE must be one of {MASK_MODES}, got '{mode}'")
    return mode


def mask_api_key(key: Optional[str]) -> Optional[str]:
    """
    Mask an API key for safe logging.

    Example: sk-abcdef1234567890 -> sk-abc...7890
    """
    if not key:
        return None
    if len(key) <= 10:
        return "***"
    return f"{key[:6]}...{key[-4:]}"


def get_config_summary() -> Dict[str, Any]:
    """
    Get a non-secret configuration summary for debugging.

    Returns dict with:
    - openai_configured: bool
    - openai_key_hint: masked key
    - openai_base_url: API base URL
    - openai_warnings: list of warnings
    - image_model: model used for edits
    - edit_size: edit resolution in pixels
    - mask_mode: "classifier" or "ellipse"
    - debug_mask: bool
    """
    api_key = get_env("OPENAI_API_KEY")
    base_url, url_warnings = get_openai_base_url()

    try:
        mask_mode = get_mask_mode()
    except ConfigError as e:
        mask_mode = None
        url_warnings = url_warnings + [str(e)]

    return {
        "openai_configured": bool(api_key),
        "openai_key_hint": mask_api_key(api_key),
        "openai_base_url": base_url,
        "openai_warnings": url_warnings,
        "image_model": get_env("OPENAI_IMAGE_MODEL", default="dall-e-2"),
        "edit_size": get_env("EDIT_IMAGE_SIZE", default="512"),
        "mask_mode": mask_mode,
        "debug_mask": get_bool_env("DEBUG_MASK"),
    }


def validate_all_config() -> tuple[bool, list[str]]:
    """
    Validate all configuration on startup.

    Returns:
        Tuple of (all_valid, list_of_messages)
    """
    messages = []
    all_valid = True

    summary = get_config_summary()

    if summary["openai_warnings"]:
        messages.extend([f"⚠️ OpenAI: {w}" for w in summary["openai_warnings"]])

    if summary["openai_configured"]:
        messages.append(f"✅ OpenAI API configured (key: {summary['openai_key_hint']})")
    else:
        messages.append("⚠️ OPENAI_API_KEY not set - photo editing disabled, masks still available")

    if summary["mask_mode"] is None:
        all_valid = False
        messages.append("❌ MASK_MODE invalid")
    else:
        messages.append(f"✅ Mask mode: {summary['mask_mode']}")

    size = summary["edit_size"]
    if not re.match(r"^\d+$", size or ""):
        all_valid = False
        messages.append(f"❌ EDIT_IMAGE_SIZE must be an integer, got '{size}'")
    elif int(size) not in (256, 512, 1024):
        messages.append(f"⚠️ EDIT_IMAGE_SIZE={size} is not a size the edit API accepts (256, 512, 1024)")

    if summary["debug_mask"]:
        messages.append("ℹ️ DEBUG_MASK enabled - intermediate masks saved to outputs/debug_mask")

    return all_valid, messages


def startup_validation():
    """Run startup validation and print results."""
    print("=" * 60)
    print("🔧 Configuration Validation")
    print("=" * 60)

    _, messages = validate_all_config()
    for msg in messages:
        print(f"  {msg}")

    print("=" * 60)
