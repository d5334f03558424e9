"""
Mask Diagnostics

Pixel statistics and an advisory recommendation for an edit mask.
Diagnostics never modify the mask; a degenerate mask (nothing editable or
nothing protected) is still a valid mask and is only flagged here.
"""

import numpy as np
from typing import Any, Dict

# Recommendation thresholds (percent of all pixels)
TOO_PROTECTIVE_PCT = 5.0      # Transparent below this
TOO_AGGRESSIVE_PCT = 95.0     # Transparent above this
NO_SUBJECT_PCT = 5.0          # Opaque below this
BALANCED_MIN_PCT = 10.0       # Both transparent and opaque above this

RECOMMENDATIONS = {
    "too_protective": "Mask too protective - very little background can be edited",
    "too_aggressive": "Mask too aggressive - almost everything is editable",
    "no_subject_protection": "No subject protection - the face may be altered",
    "good_balance": "Good balance between protected subject and editable background",
    "moderate": "Moderate mask - edit results may vary",
}


def _pct(count: int, total: int) -> float:
    return round(count * 100.0 / total, 2) if total else 0.0


def recommend(transparent_pct: float, opaque_pct: float) -> str:
    """Quality code for the given transparent / opaque percentages."""
    if transparent_pct < TOO_PROTECTIVE_PCT:
        return "too_protective"
    if transparent_pct > TOO_AGGRESSIVE_PCT:
        return "too_aggressive"
    if opaque_pct < NO_SUBJECT_PCT:
        return "no_subject_protection"
    if transparent_pct > BALANCED_MIN_PCT and opaque_pct > BALANCED_MIN_PCT:
        return "good_balance"
    return "moderate"


def analyze_mask(mask: np.ndarray) -> Dict[str, Any]:
    """
    Compute mask statistics.

    Args:
        mask: (H, W, 4) uint8 RGBA mask

    Returns:
        Dict with counts and percentages of transparent / opaque /
        semi-transparent and pure white / pure black pixels, plus
        is_degenerate, quality and recommendation
    """
    alpha = mask[:, :, 3]
    rgb = mask[:, :, :3]
    total = int(alpha.size)

    transparent = int(np.count_nonzero(alpha == 0))
    opaque = int(np.count_nonzero(alpha == 255))
    semi = total - transparent - opaque
    white = int(np.count_nonzero(np.all(rgb == 255, axis=2)))
    black = int(np.count_nonzero(np.all(rgb == 0, axis=2)))

    transparent_pct = _pct(transparent, total)
    opaque_pct = _pct(opaque, total)
    quality = recommend(transparent_pct, opaque_pct)

    return {
        "total_pixels": total,
        "transparent_pixels": transparent,
        "transparent_pct": transparent_pct,
        "opaque_pixels": opaque,
        "opaque_pct": opaque_pct,
        "semi_transparent_pixels": semi,
        "semi_transparent_pct": _pct(semi, total),
        "white_pixels": white,
        "white_pct": _pct(white, total),
        "black_pixels": black,
        "black_pct": _pct(black, total),
        "is_degenerate": transparent == 0 or opaque == 0,
        "quality": quality,
        "recommendation": RECOMMENDATIONS[quality],
    }


def format_report(stats: Dict[str, Any]) -> str:
    """Human-readable multi-line report for scripts and debug output."""
    lines = [
        f"Transparent (editable): {stats['transparent_pixels']} ({stats['transparent_pct']:.1f}%)",
        f"Opaque (protected):     {stats['opaque_pixels']} ({stats['opaque_pct']:.1f}%)",
        f"Semi-transparent:       {stats['semi_transparent_pixels']} ({stats['semi_transparent_pct']:.1f}%)",
        f"Pure white:             {stats['white_pixels']} ({stats['white_pct']:.1f}%)",
        f"Pure black:             {stats['black_pixels']} ({stats['black_pct']:.1f}%)",
        f"Recommendation:         {stats['recommendation']}",
    ]
    if stats["is_degenerate"]:
        lines.append("⚠️ Degenerate mask: nothing editable or nothing protected")
    return "\n".join(lines)
