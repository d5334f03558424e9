"""
Elliptical Subject Mask

Fixed geometric mask for the image edit API: a protected ellipse centered in
the frame with a linear falloff band around it.

- White / alpha 255 = protected area (subject/face)
- Black / alpha 0   = area the edit API may change (background)

Superseded by the heuristic classifier in subject_mask.py but kept as the
MASK_MODE=ellipse fallback.
"""

import numpy as np

# Protect 70% of width and 80% of height around the center
DEFAULT_RX_FRACTION = 0.35
DEFAULT_RY_FRACTION = 0.40

# Normalized elliptical distance limits
PROTECTED_DISTANCE = 1.0
FALLOFF_DISTANCE = 1.3


def elliptical_distance(
    width: int,
    height: int,
    rx_fraction: float = DEFAULT_RX_FRACTION,
    ry_fraction: float = DEFAULT_RY_FRACTION
) -> np.ndarray:
    """
    Normalized elliptical distance of every pixel from the frame center.

    Returns:
        (height, width) float64 array, 1.0 on the ellipse outline
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Mask dimensions must be positive, got {width}x{height}")
    if rx_fraction <= 0 or ry_fraction <= 0:
        raise ValueError(f"Radius fractions must be positive, got rx={rx_fraction}, ry={ry_fraction}")

    center_x = width / 2
    center_y = height / 2
    radius_x = width * rx_fraction
    radius_y = height * ry_fraction

    ys, xs = np.mgrid[0:height, 0:width]
    normalized_x = (xs - center_x) / radius_x
    normalized_y = (ys - center_y) / radius_y

    return np.sqrt(normalized_x * normalized_x + normalized_y * normalized_y)


def ellipse_alpha(
    distance: np.ndarray,
    inner: float = PROTECTED_DISTANCE,
    outer: float = FALLOFF_DISTANCE
) -> np.ndarray:
    """
    Map normalized distance to alpha.

    d <= inner          -> 255
    inner < d <= outer  -> floor(255 * (outer - d) / (outer - inner))
    d > outer           -> 0
    """
    if outer <= inner:
        raise ValueError(f"Falloff distance ({outer}) must exceed protected distance ({inner})")

    falloff = np.maximum(0.0, (outer - distance) / (outer - inner))
    alpha = np.floor(255 * falloff)

    alpha = np.where(distance <= inner, 255, alpha)
    alpha = np.where(distance > outer, 0, alpha)

    return alpha.astype(np.uint8)


def create_ellipse_mask(
    width: int = 512,
    height: int = 512,
    rx_fraction: float = DEFAULT_RX_FRACTION,
    ry_fraction: float = DEFAULT_RY_FRACTION,
    inner: float = PROTECTED_DISTANCE,
    outer: float = FALLOFF_DISTANCE
) -> np.ndarray:
    """
    Create a grayscale RGBA ellipse mask.

    Args:
        width: Mask width in pixels
        height: Mask height in pixels
        rx_fraction: Horizontal radius as a fraction of width
        ry_fraction: Vertical radius as a fraction of height
        inner: Normalized distance up to which pixels are fully protected
        outer: Normalized distance beyond which pixels are fully editable

    Returns:
        (height, width, 4) uint8 RGBA array with R = G = B = A

    Raises:
        ValueError: If dimensions or radius fractions are not positive
    """
    distance = elliptical_distance(width, height, rx_fraction, ry_fraction)
    alpha = ellipse_alpha(distance, inner, outer)

    mask = np.repeat(alpha[:, :, np.newaxis], 4, axis=2)
    return np.ascontiguousarray(mask)
