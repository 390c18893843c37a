"""
Image file I/O for dssim, built on Pillow.

load_image() decodes a file into a numpy raster the engine accepts
(grey, grey+alpha, RGB or RGBA; 8 or 16 bits per sample).
colorize() and save_difference_map() turn a difference map into a
black -> red -> yellow -> white heatmap PNG.
"""

import logging
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import ImageDecodeError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Modes numpy can take over directly
NATIVE_MODES = ('L', 'LA', 'RGB', 'RGBA', 'I;16', 'I;16L', 'I;16B')


def _to_array(img: Image.Image) -> np.ndarray:
    """Pillow image -> uint8 / uint16 raster"""
    mode = img.mode
    if mode in NATIVE_MODES:
        arr = np.array(img)
        if mode.startswith('I;16'):
            arr = arr.astype(np.uint16)
        return arr
    if mode == 'I':
        # 16-bit greyscale PNGs decode as 32-bit integers in some Pillow versions
        return np.clip(np.array(img), 0, 65535).astype(np.uint16)
    if mode in ('1', 'F'):
        return np.array(img.convert('L'))
    if mode in ('PA', 'RGBa', 'La') or 'transparency' in img.info:
        return np.array(img.convert('RGBA'))
    return np.array(img.convert('RGB'))


def load_image(path: PathLike) -> np.ndarray:
    """
    Decode an image file.

    Raises:
        ImageDecodeError: the file is missing or not a decodable image
    """
    try:
        with Image.open(path) as img:
            img.load()
            arr = _to_array(img)
    except FileNotFoundError as e:
        raise ImageDecodeError("Image file not found", source=str(path)) from e
    except UnidentifiedImageError as e:
        raise ImageDecodeError("Unrecognised image format", source=str(path)) from e
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise ImageDecodeError(f"Failed to decode image: {e}", source=str(path)) from e
    logger.debug(f"Loaded {path}: {arr.shape[1]}x{arr.shape[0]} {arr.dtype}")
    return arr


def colorize(diff_map: np.ndarray, normalize: bool = True) -> np.ndarray:
    """
    Map a difference plane to an RGB heatmap.

    Args:
        diff_map: (H, W) plane, 0 = identical
        normalize: stretch so the largest difference is white; otherwise
            values are clipped to [0, 1]

    Returns:
        (H, W, 3) uint8 array
    """
    values = np.asarray(diff_map, dtype=np.float64)
    peak = float(values.max()) if values.size else 0.0
    if normalize and peak > 0:
        t = values / peak
    else:
        t = np.clip(values, 0.0, 1.0)

    # black -> red -> yellow -> white
    r = np.clip(t * 3.0, 0.0, 1.0)
    g = np.clip(t * 3.0 - 1.0, 0.0, 1.0)
    b = np.clip(t * 3.0 - 2.0, 0.0, 1.0)
    rgb = np.stack([r, g, b], axis=-1)
    return np.round(rgb * 255.0).astype(np.uint8)


def save_difference_map(diff_map: np.ndarray, path: PathLike, normalize: bool = True):
    """Write a colorized difference map as an image file (format from extension)"""
    Image.fromarray(colorize(diff_map, normalize)).save(path)
    logger.info(f"Difference map saved to {path}")
