"""
Pyramid construction: 2x2 box downsampling of channel planes.
"""

import logging
from typing import List, Tuple

import numpy as np
from numba import njit

from .config import DssimConfig

logger = logging.getLogger(__name__)


def level_count(width: int, height: int, min_size: int, max_levels: int) -> int:
    """
    Number of pyramid levels for an image of the given size.

    Level k has floor(size / 2^k) pixels per side and exists while both sides
    stay >= min_size, capped at max_levels. Level 0 always exists, even for
    images smaller than min_size.
    """
    levels = 1
    w, h = width, height
    while levels < max_levels:
        w //= 2
        h //= 2
        if w < min_size or h < min_size:
            break
        levels += 1
    return levels


@njit(nogil=True)
def downsample_numba(plane: np.ndarray) -> np.ndarray:
    """Numba-accelerated 2x2 box average; odd trailing row/column is dropped"""
    H, W = plane.shape
    h = H // 2
    w = W // 2
    out = np.empty((h, w), dtype=np.float64)
    for i in range(h):
        for j in range(w):
            out[i, j] = (plane[2 * i, 2 * j] + plane[2 * i, 2 * j + 1]
                         + plane[2 * i + 1, 2 * j] + plane[2 * i + 1, 2 * j + 1]) * 0.25
    return out


def downsample(plane: np.ndarray) -> np.ndarray:
    """Half-size copy of plane by 2x2 box averaging"""
    out = downsample_numba(np.ascontiguousarray(plane, dtype=np.float64))
    out.flags.writeable = False
    return out


class ChannelPyramid:
    """Ordered planes of one channel, level 0 = full resolution"""

    def __init__(self, levels: List[np.ndarray]):
        self.levels = levels

    def __len__(self) -> int:
        return len(self.levels)

    def __getitem__(self, level: int) -> np.ndarray:
        return self.levels[level]

    def __iter__(self):
        return iter(self.levels)

    @property
    def shapes(self) -> List[Tuple[int, int]]:
        return [p.shape for p in self.levels]


def build_pyramid(plane: np.ndarray, config: DssimConfig) -> ChannelPyramid:
    """Build the pyramid for one channel plane"""
    height, width = plane.shape
    levels = level_count(width, height, config.min_size, config.max_levels)
    base = np.array(plane, dtype=np.float64, copy=True)
    base.flags.writeable = False
    planes = [base]
    for _ in range(1, levels):
        planes.append(downsample(planes[-1]))
    logger.debug(f"Built {levels}-level pyramid for {width}x{height} plane")
    return ChannelPyramid(planes)
