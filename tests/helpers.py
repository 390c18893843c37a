"""Synthetic test images"""

import numpy as np


def uniform_rgb(value: int, width: int = 64, height: int = 64) -> np.ndarray:
    return np.full((height, width, 3), value, dtype=np.uint8)


def gradient_float(width: int = 64, height: int = 64) -> np.ndarray:
    """Smooth RGB float image in [0.25, 0.75]"""
    y, x = np.mgrid[0:height, 0:width]
    r = 0.25 + 0.5 * x / max(1, width - 1)
    g = 0.25 + 0.5 * y / max(1, height - 1)
    b = 0.25 + 0.25 * (np.sin(x / 5.0) * np.cos(y / 7.0) + 1.0)
    return np.stack([r, g, b], axis=-1)


def random_rgb(width: int = 64, height: int = 48, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
