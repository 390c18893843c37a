"""
SSIM combination and multi-scale aggregation.

combine_ssim() turns one WindowStats into a per-pixel SSIM map.
aggregate() reduces the per-level, per-channel mean SSIM table into the
combined similarity S and the reported dissimilarity 1/S - 1.
"""

import logging
import math
from typing import List, Sequence, Tuple

import numpy as np

from .config import DssimConfig
from .errors import DegenerateComputation, ConfigError
from .stats import WindowStats

logger = logging.getLogger(__name__)

# Floor applied to the combined similarity before inversion
MIN_SIMILARITY = 1e-6


def ssim_constants(config: DssimConfig) -> Tuple[float, float]:
    """Stabilisation constants C1 = (K1*L)^2, C2 = (K2*L)^2"""
    c1 = (config.k1 * config.dynamic_range) ** 2
    c2 = (config.k2 * config.dynamic_range) ** 2
    return c1, c2


def combine_ssim(stats: WindowStats, config: DssimConfig) -> np.ndarray:
    """Per-pixel SSIM map (unclamped) from local statistics"""
    c1, c2 = ssim_constants(config)
    mean_a, mean_b = stats.mean_a, stats.mean_b

    numerator = 2.0 * (mean_a * mean_b) + c1
    numerator *= 2.0 * stats.cov_ab + c2

    denominator = mean_a * mean_a + mean_b * mean_b + c1
    denominator *= stats.var_a + stats.var_b + c2

    numerator /= denominator
    return numerator


def mean_ssim(ssim_map: np.ndarray, label: str = "SSIM map") -> float:
    """Arithmetic mean of an SSIM map; non-finite results are an error"""
    value = float(np.mean(ssim_map))
    if not math.isfinite(value):
        raise DegenerateComputation(f"Non-finite mean {value} for {label}")
    return value


def normalized_weights(weights: Sequence[float], count: int) -> List[float]:
    """First count weights scaled to sum to 1"""
    if len(weights) < count:
        raise ConfigError(f"Need {count} weights, only {len(weights)} configured")
    chosen = [float(w) for w in weights[:count]]
    total = math.fsum(chosen)
    if total <= 0:
        raise ConfigError(f"Weights {chosen} sum to zero")
    return [w / total for w in chosen]


def weighted_mean(values: Sequence[float], weights: Sequence[float]) -> float:
    """sum(w*v) / sum(w); exactly 1.0 when every value is 1.0"""
    return math.fsum(w * v for w, v in zip(weights, values)) / math.fsum(weights)


def to_dissimilarity(similarity: float) -> float:
    """1/S - 1 with S clamped into [MIN_SIMILARITY, 1]"""
    if not math.isfinite(similarity):
        raise DegenerateComputation(f"Combined similarity is not finite: {similarity}")
    s = min(1.0, max(MIN_SIMILARITY, similarity))
    return 1.0 / s - 1.0


def aggregate(level_scores: Sequence[Sequence[float]], config: DssimConfig) -> Tuple[float, float]:
    """
    Combine mean SSIM values into one score.

    Args:
        level_scores: level_scores[level][channel], finest level first
        config: supplies the scale and channel weight tables

    Returns:
        (similarity, dissimilarity)
    """
    if not level_scores:
        raise DegenerateComputation("No pyramid levels to aggregate")
    channels = len(level_scores[0])
    channel_weights = normalized_weights(config.channel_weights, channels)
    scale_weights = normalized_weights(config.scale_weights, len(level_scores))

    per_level = []
    for level, scores in enumerate(level_scores):
        for channel, score in enumerate(scores):
            if not math.isfinite(score):
                raise DegenerateComputation(f"Non-finite SSIM at level {level}, channel {channel}")
        per_level.append(weighted_mean(scores, channel_weights))

    similarity = weighted_mean(per_level, scale_weights)
    return similarity, to_dissimilarity(similarity)
