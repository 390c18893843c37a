"""
Window statistics: local means, variances and covariance of two planes.

Statistics are computed by blurring A, B, A*A, B*B and A*B with a separable
Gaussian kernel (rows, then columns), so the cost per pixel is proportional
to the kernel width rather than the window area. Out-of-range samples are
mirrored at the borders.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple

import numpy as np
from scipy import ndimage

from .config import DssimConfig
from .errors import DimensionMismatch

logger = logging.getLogger(__name__)

BORDER_MODE = 'reflect'


@lru_cache(maxsize=32)
def gaussian_kernel_1d(sigma: float, radius: int) -> np.ndarray:
    """Normalised 1D Gaussian of 2*radius+1 taps"""
    x = np.arange(-radius, radius + 1, dtype=np.float64)
    kernel = np.exp(-(x ** 2) / (2.0 * sigma ** 2))
    kernel /= kernel.sum()
    kernel.flags.writeable = False
    return kernel


@dataclass
class WindowStats:
    """Co-registered local statistics of one (level, channel) pair"""
    mean_a: np.ndarray
    mean_b: np.ndarray
    var_a: np.ndarray
    var_b: np.ndarray
    cov_ab: np.ndarray

    @property
    def shape(self) -> Tuple[int, int]:
        return self.mean_a.shape


class StatsWorkspace:
    """
    Scratch and output buffers for one (level, channel) task.

    A workspace is sized once from the level geometry and owned by exactly
    one task, so parallel tasks never write to shared memory.
    """

    def __init__(self, shape: Tuple[int, int]):
        self.shape = tuple(shape)
        self.product = np.empty(self.shape, dtype=np.float64)
        self.row_pass = np.empty(self.shape, dtype=np.float64)
        self.mean_a = np.empty(self.shape, dtype=np.float64)
        self.mean_b = np.empty(self.shape, dtype=np.float64)
        self.var_a = np.empty(self.shape, dtype=np.float64)
        self.var_b = np.empty(self.shape, dtype=np.float64)
        self.cov_ab = np.empty(self.shape, dtype=np.float64)

    def blur(self, src: np.ndarray, dest: np.ndarray, kernel: np.ndarray) -> np.ndarray:
        """Separable blur of src into dest"""
        ndimage.correlate1d(src, kernel, axis=1, output=self.row_pass, mode=BORDER_MODE)
        ndimage.correlate1d(self.row_pass, kernel, axis=0, output=dest, mode=BORDER_MODE)
        return dest


def compute_window_stats(a: np.ndarray, b: np.ndarray, config: DssimConfig,
                         workspace: StatsWorkspace = None) -> WindowStats:
    """
    Local statistics of two planes of the same level and channel.

    Args:
        a, b: planes from image A and image B
        config: supplies the blur sigma and kernel radius
        workspace: task-owned buffers; allocated here when omitted

    Returns:
        WindowStats whose arrays live in the workspace
    """
    if a.shape != b.shape:
        raise DimensionMismatch(f"Plane shapes differ: {a.shape} vs {b.shape}")
    if workspace is None:
        workspace = StatsWorkspace(a.shape)
    elif workspace.shape != a.shape:
        raise ValueError(f"Workspace shape {workspace.shape} does not match plane shape {a.shape}")

    kernel = gaussian_kernel_1d(config.sigma, config.window_radius)
    ws = workspace

    mean_a = ws.blur(a, ws.mean_a, kernel)
    mean_b = ws.blur(b, ws.mean_b, kernel)

    np.multiply(a, a, out=ws.product)
    var_a = ws.blur(ws.product, ws.var_a, kernel)
    var_a -= mean_a * mean_a

    np.multiply(b, b, out=ws.product)
    var_b = ws.blur(ws.product, ws.var_b, kernel)
    var_b -= mean_b * mean_b

    np.multiply(a, b, out=ws.product)
    cov_ab = ws.blur(ws.product, ws.cov_ab, kernel)
    cov_ab -= mean_a * mean_b

    return WindowStats(mean_a=mean_a, mean_b=mean_b, var_a=var_a, var_b=var_b, cov_ab=cov_ab)
