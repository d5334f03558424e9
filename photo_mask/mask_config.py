"""
Mask Classifier Parameters

Threshold constants for the subject/background classifier. The defaults are
empirically tuned on 512x512 headshots; every value can be overridden with a
MASK_* environment variable (see ClassifierParams.from_env).
"""

from dataclasses import dataclass, fields

from .env_config import get_float_env, get_int_env

# =============================================================================
# Defaults
# =============================================================================

# Color clustering
SAMPLE_STRIDE = 8            # Sample every 8th pixel in both axes
COLOR_BUCKET_SIZE = 32       # 256 / 32 = 8 levels per channel
DOMINANT_COLOR_COUNT = 5

# Background color score (low-edge pixels only)
COLOR_EDGE_THRESHOLD = 30.0
COLOR_DISTANCE_THRESHOLD = 60.0

# Composite background score
BORDER_DISTANCE_PX = 50
BORDER_BIAS = 0.3
EDGE_SCORE_THRESHOLD = 25.0  # Stricter than COLOR_EDGE_THRESHOLD
EDGE_SCORE = 0.4
CENTER_BIAS_MAX = 0.2
BACKGROUND_THRESHOLD = 0.5

# Cleanup / smoothing
BINARY_ALPHA_THRESHOLD = 10
SMOOTHING_THRESHOLD = 127


@dataclass(frozen=True)
class ClassifierParams:
    sample_stride: int = SAMPLE_STRIDE
    color_bucket_size: int = COLOR_BUCKET_SIZE
    dominant_color_count: int = DOMINANT_COLOR_COUNT
    color_edge_threshold: float = COLOR_EDGE_THRESHOLD
    color_distance_threshold: float = COLOR_DISTANCE_THRESHOLD
    border_distance_px: int = BORDER_DISTANCE_PX
    border_bias: float = BORDER_BIAS
    edge_score_threshold: float = EDGE_SCORE_THRESHOLD
    edge_score: float = EDGE_SCORE
    center_bias_max: float = CENTER_BIAS_MAX
    background_threshold: float = BACKGROUND_THRESHOLD
    binary_alpha_threshold: int = BINARY_ALPHA_THRESHOLD
    smoothing_threshold: float = SMOOTHING_THRESHOLD

    def __post_init__(self):
        if self.sample_stride < 1:
            raise ValueError(f"sample_stride must be >= 1, got {self.sample_stride}")
        if not 1 <= self.color_bucket_size <= 256:
            raise ValueError(f"color_bucket_size must be in [1, 256], got {self.color_bucket_size}")
        if self.dominant_color_count < 1:
            raise ValueError(f"dominant_color_count must be >= 1, got {self.dominant_color_count}")

    @classmethod
    def from_env(cls, prefix: str = "MASK_") -> "ClassifierParams":
        """
        Build params from environment, e.g. MASK_BORDER_DISTANCE_PX=80.

        Unset variables keep their defaults.
        """
        values = {}
        for field in fields(cls):
            name = prefix + field.name.upper()
            if field.type in (int, "int"):
                values[field.name] = get_int_env(name, field.default)
            else:
                values[field.name] = get_float_env(name, field.default)
        return cls(**values)

    def to_dict(self) -> dict:
        return {field.name: getattr(self, field.name) for field in fields(self)}
