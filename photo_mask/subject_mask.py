"""
Subject Mask Synthesis - Heuristic Subject/Background Classifier

Builds the RGBA mask handed to the image edit API alongside the headshot:
- alpha 255 (white) = subject, protected from editing
- alpha 0   (black) = background, free to edit

Pipeline (all steps are pure functions over one raster):
1. Grayscale derivation (ITU-R BT.601 luma)
2. Sobel edge detection (border ring left at 0)
3. Dominant color clustering on a sampled grid
4. Color-based background score for low-edge pixels
5. Composite score: border bias + edge score + color score + center bias
6. Raw mask emission
7. Binary cleanup (no semi-transparent pixel survives)
8. Single-pass edge smoothing on 4-connected boundaries

No segmentation model is involved, so the result is only as good as the
thresholds in mask_config.py. Use mask_diagnostics.analyze_mask() to judge it.

Environment Variables:
    DEBUG_MASK: Set to "1" to save intermediate images
"""

import cv2
import numpy as np
import os
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .mask_config import ClassifierParams

# Debug
DEBUG_ENABLED = os.getenv("DEBUG_MASK", "0") == "1"
DEBUG_OUTPUT_DIR = "outputs/debug_mask"

# BT.601 luma weights
LUMA_R = 0.299
LUMA_G = 0.587
LUMA_B = 0.114


@dataclass
class DominantColor:
    color: Tuple[int, int, int]
    frequency: int


@dataclass
class ColorClusterSummary:
    colors: List[DominantColor] = field(default_factory=list)
    total_samples: int = 0

    def share(self, index: int) -> float:
        """Fraction of samples that fell into the index-th dominant color."""
        if self.total_samples == 0:
            return 0.0
        return self.colors[index].frequency / self.total_samples


def _debug_save(image: np.ndarray, filename: str, job_id: str = ""):
    """Save debug image if debug mode is enabled"""
    if not DEBUG_ENABLED:
        return

    output_dir = os.path.join(DEBUG_OUTPUT_DIR, job_id) if job_id else DEBUG_OUTPUT_DIR
    os.makedirs(output_dir, exist_ok=True)

    filepath = os.path.join(output_dir, filename)

    if image.dtype in (np.float32, np.float64):
        peak = float(image.max()) if image.size else 0.0
        scale = 255.0 / peak if peak > 0 else 0.0
        image_save = np.clip(image * scale, 0, 255).astype(np.uint8)
    elif image.ndim == 3 and image.shape[2] == 4:
        image_save = cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)
    elif image.ndim == 3:
        image_save = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    else:
        image_save = image

    cv2.imwrite(filepath, np.ascontiguousarray(image_save))
    print(f"  [DEBUG] Saved: {filepath}")


# =============================================================================
# Step 1-2: Grayscale and Edges
# =============================================================================

def to_grayscale(image_rgb: np.ndarray) -> np.ndarray:
    """
    Convert RGB raster to luma, rounded half-up to the nearest integer.

    Returns:
        (H, W) uint8 array
    """
    rgb = image_rgb[:, :, :3].astype(np.float64)
    luma = LUMA_R * rgb[:, :, 0] + LUMA_G * rgb[:, :, 1] + LUMA_B * rgb[:, :, 2]
    return np.clip(np.floor(luma + 0.5), 0, 255).astype(np.uint8)


def sobel_edges(gray: np.ndarray) -> np.ndarray:
    """
    Sobel gradient magnitude for every interior pixel.

    The outermost 1-pixel ring is never computed and stays 0, so border
    pixels always look like low-edge (background-leaning) pixels.

    Returns:
        (H, W) float64 array
    """
    g = gray.astype(np.float64)
    height, width = g.shape[:2]
    edges = np.zeros((height, width), dtype=np.float64)

    if height < 3 or width < 3:
        return edges

    top_left, top, top_right = g[:-2, :-2], g[:-2, 1:-1], g[:-2, 2:]
    left, right = g[1:-1, :-2], g[1:-1, 2:]
    bottom_left, bottom, bottom_right = g[2:, :-2], g[2:, 1:-1], g[2:, 2:]

    sobel_x = (top_right + 2 * right + bottom_right) - (top_left + 2 * left + bottom_left)
    sobel_y = (bottom_left + 2 * bottom + bottom_right) - (top_left + 2 * top + top_right)

    edges[1:-1, 1:-1] = np.sqrt(sobel_x * sobel_x + sobel_y * sobel_y)
    return edges


# =============================================================================
# Step 3-4: Color Clustering and Color Score
# =============================================================================

def cluster_colors(
    image_rgb: np.ndarray,
    stride: int = 8,
    bucket_size: int = 32,
    top_n: int = 5
) -> ColorClusterSummary:
    """
    Find dominant colors on a sampled grid.

    Every stride-th pixel in both axes is quantized per channel to
    (value // bucket_size) * bucket_size and tallied. The top_n buckets are
    returned by descending count; ties keep first-sampled order.
    """
    samples = image_rgb[::stride, ::stride, :3].reshape(-1, 3).astype(np.int64)
    total_samples = int(samples.shape[0])

    if total_samples == 0:
        return ColorClusterSummary(colors=[], total_samples=0)

    quantized = (samples // bucket_size) * bucket_size
    keys = (quantized[:, 0] << 16) | (quantized[:, 1] << 8) | quantized[:, 2]

    unique_keys, first_index, counts = np.unique(keys, return_index=True, return_counts=True)
    # Primary: count descending, secondary: first occurrence
    order = np.lexsort((first_index, -counts))[:top_n]

    colors = []
    for i in order:
        key = int(unique_keys[i])
        colors.append(DominantColor(
            color=((key >> 16) & 0xFF, (key >> 8) & 0xFF, key & 0xFF),
            frequency=int(counts[i])
        ))

    return ColorClusterSummary(colors=colors, total_samples=total_samples)


def background_color_scores(
    image_rgb: np.ndarray,
    edges: np.ndarray,
    clusters: ColorClusterSummary,
    edge_threshold: float = 30.0,
    distance_threshold: float = 60.0
) -> np.ndarray:
    """
    Score how much each low-edge pixel looks like a dominant color.

    For pixels with edge magnitude below edge_threshold the score is the sum
    of sample shares of every dominant color within distance_threshold
    (Euclidean RGB). High-edge pixels score 0.

    Returns:
        (H, W) float64 array
    """
    height, width = edges.shape[:2]
    scores = np.zeros((height, width), dtype=np.float64)

    if clusters.total_samples == 0:
        return scores

    pixels = image_rgb[:, :, :3].astype(np.float64)

    for index, dominant in enumerate(clusters.colors):
        diff = pixels - np.asarray(dominant.color, dtype=np.float64)
        distance = np.sqrt(np.sum(diff * diff, axis=2))
        scores += np.where(distance < distance_threshold, clusters.share(index), 0.0)

    scores[edges >= edge_threshold] = 0.0
    return scores


# =============================================================================
# Step 5-6: Composite Classification and Raw Mask
# =============================================================================

def border_distance(height: int, width: int) -> np.ndarray:
    """Distance in pixels from each pixel to the nearest image edge."""
    ys, xs = np.mgrid[0:height, 0:width]
    return np.minimum(np.minimum(xs, ys), np.minimum(width - 1 - xs, height - 1 - ys))


def center_distance_ratio(height: int, width: int) -> np.ndarray:
    """Distance from the frame center divided by the center-to-corner distance."""
    ys, xs = np.mgrid[0:height, 0:width]
    center_x = width / 2
    center_y = height / 2

    distance = np.sqrt((xs - center_x) ** 2 + (ys - center_y) ** 2)
    max_distance = np.sqrt(center_x ** 2 + center_y ** 2)

    return distance / max_distance


def composite_background_score(
    edges: np.ndarray,
    color_scores: np.ndarray,
    params: Optional[ClassifierParams] = None
) -> np.ndarray:
    """
    backgroundScore = borderBias + edgeScore + colorScore + centerBias

    - borderBias: border_bias if closer than border_distance_px to an edge
    - edgeScore: edge_score if Sobel magnitude < edge_score_threshold
    - colorScore: background_color_scores() value
    - centerBias: center distance ratio * center_bias_max
    """
    params = params or ClassifierParams()
    height, width = edges.shape[:2]

    border_bias = np.where(
        border_distance(height, width) < params.border_distance_px,
        params.border_bias, 0.0
    )
    edge_score = np.where(edges < params.edge_score_threshold, params.edge_score, 0.0)
    center_bias = center_distance_ratio(height, width) * params.center_bias_max

    return border_bias + edge_score + color_scores + center_bias


def classify_background(score: np.ndarray, threshold: float = 0.5) -> np.ndarray:
    """Boolean map, True where the pixel is background."""
    return score > threshold


def emit_raw_mask(background: np.ndarray) -> np.ndarray:
    """Background -> (0, 0, 0, 0), subject -> (255, 255, 255, 255)."""
    height, width = background.shape[:2]
    mask = np.zeros((height, width, 4), dtype=np.uint8)
    mask[~background] = 255
    return mask


# =============================================================================
# Step 7-8: Binary Cleanup and Edge Smoothing
# =============================================================================

def binary_cleanup(mask: np.ndarray, threshold: int = 10) -> np.ndarray:
    """
    Force every pixel fully transparent or fully opaque.

    alpha < threshold -> (0, 0, 0, 0), otherwise (255, 255, 255, 255).
    Applying it to an already-binary mask changes nothing.
    """
    opaque = mask[:, :, 3] >= threshold
    cleaned = np.zeros_like(mask, dtype=np.uint8)
    cleaned[opaque] = 255
    return cleaned


def smooth_mask_edges(mask: np.ndarray, threshold: float = 127) -> np.ndarray:
    """
    One smoothing pass over interior pixels on a transparent/opaque boundary.

    A pixel is on the boundary when any 4-connected neighbor has the opposite
    state. Its neighbors' mean alpha decides:
    - mean > threshold: forced opaque
    - mean <= threshold and pixel transparent: stays transparent
    - otherwise untouched

    Neighbors are read from the input mask, so the result does not depend on
    scan order.
    """
    height, width = mask.shape[:2]
    smoothed = mask.copy()

    if height < 3 or width < 3:
        return smoothed

    alpha = mask[:, :, 3].astype(np.float64)
    center = alpha[1:-1, 1:-1]
    neighbors = (
        alpha[:-2, 1:-1],   # up
        alpha[2:, 1:-1],    # down
        alpha[1:-1, :-2],   # left
        alpha[1:-1, 2:],    # right
    )

    opaque = center > threshold
    boundary = np.zeros_like(opaque)
    for neighbor in neighbors:
        boundary |= (neighbor > threshold) != opaque

    average = sum(neighbors) / 4.0

    to_opaque = boundary & (average > threshold)
    to_transparent = boundary & (average <= threshold) & ~opaque

    interior = smoothed[1:-1, 1:-1]
    interior[to_opaque] = 255
    interior[to_transparent] = 0

    return smoothed


# =============================================================================
# Main Entry Points
# =============================================================================

def synthesize_subject_mask(
    image_rgb: np.ndarray,
    params: Optional[ClassifierParams] = None,
    job_id: str = ""
) -> Tuple[np.ndarray, Dict]:
    """
    Classify every pixel as subject or background and build the edit mask.

    Args:
        image_rgb: (H, W, 3) uint8 RGB raster (extra channels are ignored).
                   Callers guarantee the shape; nothing is validated here.
        params: Classifier thresholds (defaults from mask_config)
        job_id: Optional id used for debug output folders

    Returns:
        Tuple of (mask, metrics_dict) where mask is (H, W, 4) uint8 with
        alpha in {0, 255} and RGB mirroring alpha
    """
    params = params or ClassifierParams()
    start_time = time.time()
    height, width = image_rgb.shape[:2]

    _debug_save(image_rgb, "01_input.png", job_id)

    gray = to_grayscale(image_rgb)
    edges = sobel_edges(gray)
    _debug_save(edges, "02_edges.png", job_id)

    clusters = cluster_colors(
        image_rgb,
        stride=params.sample_stride,
        bucket_size=params.color_bucket_size,
        top_n=params.dominant_color_count
    )

    color_scores = background_color_scores(
        image_rgb, edges, clusters,
        edge_threshold=params.color_edge_threshold,
        distance_threshold=params.color_distance_threshold
    )
    _debug_save(color_scores, "03_color_scores.png", job_id)

    score = composite_background_score(edges, color_scores, params)
    background = classify_background(score, params.background_threshold)
    _debug_save(score, "04_background_score.png", job_id)

    raw_mask = emit_raw_mask(background)
    cleaned = binary_cleanup(raw_mask, params.binary_alpha_threshold)
    _debug_save(cleaned[:, :, 3], "05_mask_binary.png", job_id)

    mask = smooth_mask_edges(cleaned, params.smoothing_threshold)
    _debug_save(mask[:, :, 3], "06_mask_smoothed.png", job_id)

    total_pixels = height * width
    smoothed_pixels = int(np.count_nonzero(mask[:, :, 3] != cleaned[:, :, 3]))

    metrics = {
        "width": width,
        "height": height,
        "dominant_colors": [
            {"color": list(dc.color), "frequency": dc.frequency}
            for dc in clusters.colors
        ],
        "total_samples": clusters.total_samples,
        "edge_mean": round(float(edges.mean()), 3) if total_pixels else 0.0,
        "background_ratio_raw": round(float(background.mean()), 4) if total_pixels else 0.0,
        "smoothed_pixels": smoothed_pixels,
        "processing_time_ms": round((time.time() - start_time) * 1000, 1),
    }

    if DEBUG_ENABLED:
        print(f"  [Mask] {width}x{height}, {len(clusters.colors)} dominant colors, "
              f"raw background {metrics['background_ratio_raw'] * 100:.1f}%, "
              f"smoothed {smoothed_pixels} px in {metrics['processing_time_ms']}ms")

    return mask, metrics


def create_subject_mask(
    image_rgb: np.ndarray,
    params: Optional[ClassifierParams] = None
) -> np.ndarray:
    """Convenience wrapper returning only the mask."""
    mask, _ = synthesize_subject_mask(image_rgb, params)
    return mask
