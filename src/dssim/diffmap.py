"""
Difference map: per-level SSIM maps reprojected to full resolution.

The map is for visualisation only. Values are 1 - weighted SSIM, so 0 marks
identical regions and larger values mark stronger local differences.
"""

import logging
from typing import Sequence, Tuple

import numpy as np

from .config import DssimConfig
from .ssim import normalized_weights

logger = logging.getLogger(__name__)


def upsample_nearest(plane: np.ndarray, factor: int, shape: Tuple[int, int]) -> np.ndarray:
    """Repeat every sample factor x factor times, then edge-fill up to shape"""
    up = plane
    if factor > 1:
        up = np.repeat(np.repeat(plane, factor, axis=0), factor, axis=1)
    pad_rows = shape[0] - up.shape[0]
    pad_cols = shape[1] - up.shape[1]
    if pad_rows < 0 or pad_cols < 0:
        raise ValueError(f"Upsampled plane {up.shape} exceeds target shape {shape}")
    if pad_rows or pad_cols:
        up = np.pad(up, ((0, pad_rows), (0, pad_cols)), mode='edge')
    return up


def render_difference_map(ssim_maps: Sequence[Sequence[np.ndarray]], config: DssimConfig) -> np.ndarray:
    """
    Combine SSIM maps into one full resolution dissimilarity plane.

    Args:
        ssim_maps: ssim_maps[level][channel], level 0 at full resolution
        config: supplies the scale and channel weights

    Returns:
        (H, W) float64 plane, >= 0
    """
    shape = ssim_maps[0][0].shape
    channel_weights = normalized_weights(config.channel_weights, len(ssim_maps[0]))
    scale_weights = normalized_weights(config.scale_weights, len(ssim_maps))

    combined = np.zeros(shape, dtype=np.float64)
    for level, maps in enumerate(ssim_maps):
        level_map = np.zeros(maps[0].shape, dtype=np.float64)
        for weight, ssim_map in zip(channel_weights, maps):
            level_map += weight * ssim_map
        combined += scale_weights[level] * upsample_nearest(level_map, 1 << level, shape)

    diff = np.maximum(1.0 - combined, 0.0)
    logger.debug(f"Rendered {shape[1]}x{shape[0]} difference map, peak {diff.max():.6f}")
    return diff
