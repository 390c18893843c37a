"""
Colour conversion for dssim.

Decoded rasters (grey, grey+alpha, RGB, RGBA; 8-bit, 16-bit or float) are
linearised from sRGB gamma, composited over a neutral background when they
carry alpha, and split into one luma and (optionally) two chroma planes.

Converter variants:
- YCbCrConverter: linear BT.709 luma + scaled blue/red opponent differences
- LabConverter: CIE L*a*b* (D65), offset and scaled to unit range
- GrayConverter: luma only

Every plane lies in [0, 1]; the SSIM luminance term needs non-negative
signals, so neutral grey has mid-range chroma rather than zero.
"""

import logging
from functools import lru_cache
from typing import List, Tuple

import numpy as np

from .errors import (
    DegenerateComputation,
    DimensionMismatch,
    EmptyImage,
    UnsupportedPixelFormat,
    ConfigError,
)

logger = logging.getLogger(__name__)

# Linear-light grey that transparent pixels are composited onto
NEUTRAL_BACKGROUND = 0.5

LUMA_R, LUMA_G, LUMA_B = 0.2126, 0.7152, 0.0722
CB_SCALE = 2.0 * (1.0 - LUMA_B)  # 1.8556
CR_SCALE = 2.0 * (1.0 - LUMA_R)  # 1.5748
CHROMA_OFFSET = 0.5

RGB_TO_XYZ = np.array([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041],
])
D65_WHITE = np.array([0.95047, 1.0, 1.08883])
LAB_EPSILON = (6.0 / 29.0) ** 3
# sRGB gamut extent of a* and b*: (offset, span)
LAB_A_RANGE = (86.185, 184.439)
LAB_B_RANGE = (107.863, 202.345)


def srgb_to_linear(s: np.ndarray) -> np.ndarray:
    """sRGB transfer function, input and output in [0, 1]"""
    s = np.asarray(s, dtype=np.float64)
    return np.where(s <= 0.04045, s / 12.92, ((s + 0.055) / 1.055) ** 2.4)


@lru_cache(maxsize=4)
def gamma_lut(max_value: int) -> np.ndarray:
    """Lookup table mapping every integer sample value to linear light"""
    lut = srgb_to_linear(np.arange(max_value + 1, dtype=np.float64) / max_value)
    lut.flags.writeable = False
    return lut


def _image_size(pixels: np.ndarray) -> Tuple[int, int]:
    if pixels.ndim not in (2, 3):
        raise UnsupportedPixelFormat(f"Expected a 2D or 3D pixel array, got shape {pixels.shape}")
    height, width = pixels.shape[:2]
    return width, height


def check_dimensions(a: np.ndarray, b: np.ndarray):
    """Raise EmptyImage / DimensionMismatch unless a and b share a non-zero size"""
    wa, ha = _image_size(a)
    wb, hb = _image_size(b)
    if wa == 0 or ha == 0:
        raise EmptyImage(f"First image is empty ({wa}x{ha})")
    if wb == 0 or hb == 0:
        raise EmptyImage(f"Second image is empty ({wb}x{hb})")
    if (wa, ha) != (wb, hb):
        raise DimensionMismatch(f"Image sizes differ: {wa}x{ha} vs {wb}x{hb}")


def _unit_samples(samples: np.ndarray, linearize: bool) -> np.ndarray:
    """Scale samples to [0, 1], optionally through the sRGB transfer function"""
    if samples.dtype == np.uint8 or samples.dtype == np.uint16:
        max_value = np.iinfo(samples.dtype).max
        if linearize:
            return gamma_lut(max_value)[samples]
        return samples.astype(np.float64) / max_value
    if np.issubdtype(samples.dtype, np.floating):
        samples = samples.astype(np.float64)
        if not np.all(np.isfinite(samples)):
            raise DegenerateComputation("Pixel data contains NaN or infinite values")
        samples = np.clip(samples, 0.0, 1.0)
        return srgb_to_linear(samples) if linearize else samples
    raise UnsupportedPixelFormat(f"Unsupported sample type {samples.dtype}")


def to_linear_rgb(pixels: np.ndarray, pixel_order: str = "RGB",
                  background: float = NEUTRAL_BACKGROUND) -> np.ndarray:
    """
    Convert a decoded raster to linear-light RGB with alpha composited away.

    Args:
        pixels: (H, W), (H, W, 2), (H, W, 3) or (H, W, 4) array of uint8,
            uint16 or float samples in sRGB gamma
        pixel_order: "RGB" or "BGR" for 3 and 4 channel buffers
        background: linear-light grey used behind transparent pixels

    Returns:
        New (H, W, 3) float64 array; the input is never aliased
    """
    pixels = np.asarray(pixels)
    _image_size(pixels)
    if pixel_order not in ("RGB", "BGR"):
        raise UnsupportedPixelFormat(f"Unknown pixel order '{pixel_order}'")

    if pixels.ndim == 2:
        channels = 1
        pixels = pixels[:, :, np.newaxis]
    else:
        channels = pixels.shape[2]

    if channels in (1, 2):
        grey = _unit_samples(pixels[:, :, 0], linearize=True)
        rgb = np.repeat(grey[:, :, np.newaxis], 3, axis=2)
    elif channels in (3, 4):
        color = pixels[:, :, :3]
        if pixel_order == "BGR":
            color = color[:, :, ::-1]
        rgb = _unit_samples(color, linearize=True)
    else:
        raise UnsupportedPixelFormat(f"Unsupported channel count {channels}")

    if channels in (2, 4):
        alpha = _unit_samples(pixels[:, :, -1], linearize=False)[:, :, np.newaxis]
        rgb = rgb * alpha + background * (1.0 - alpha)

    return np.ascontiguousarray(rgb, dtype=np.float64)


def _frozen(plane: np.ndarray) -> np.ndarray:
    plane = np.ascontiguousarray(plane, dtype=np.float64)
    plane.flags.writeable = False
    return plane


class ColorConverter:
    """Maps linear-light RGB to the planes SSIM is computed over"""
    name = ""
    channel_names: Tuple[str, ...] = ()

    @property
    def channel_count(self) -> int:
        return len(self.channel_names)

    def convert(self, linear_rgb: np.ndarray) -> List[np.ndarray]:
        raise NotImplementedError

    def planes(self, pixels: np.ndarray, pixel_order: str = "RGB") -> List[np.ndarray]:
        """Decoded raster -> list of read-only channel planes"""
        return [_frozen(p) for p in self.convert(to_linear_rgb(pixels, pixel_order))]


def _luma(linear_rgb: np.ndarray) -> np.ndarray:
    r, g, b = linear_rgb[:, :, 0], linear_rgb[:, :, 1], linear_rgb[:, :, 2]
    return LUMA_R * r + LUMA_G * g + LUMA_B * b


class YCbCrConverter(ColorConverter):
    """Linear luma plus blue and red opponent differences, all in unit range"""
    name = "ycbcr"
    channel_names = ("luma", "chroma_b", "chroma_r")

    def convert(self, linear_rgb: np.ndarray) -> List[np.ndarray]:
        y = _luma(linear_rgb)
        cb = (linear_rgb[:, :, 2] - y) / CB_SCALE + CHROMA_OFFSET
        cr = (linear_rgb[:, :, 0] - y) / CR_SCALE + CHROMA_OFFSET
        return [y, cb, cr]


class LabConverter(ColorConverter):
    """CIE L*a*b* mapped so each channel spans [0, 1] over the sRGB gamut"""
    name = "lab"
    channel_names = ("lightness", "a", "b")

    @staticmethod
    def _f(t: np.ndarray) -> np.ndarray:
        return np.where(t > LAB_EPSILON, np.cbrt(t), t / (3.0 * (6.0 / 29.0) ** 2) + 4.0 / 29.0)

    def convert(self, linear_rgb: np.ndarray) -> List[np.ndarray]:
        xyz = linear_rgb @ RGB_TO_XYZ.T / D65_WHITE
        fx, fy, fz = self._f(xyz[:, :, 0]), self._f(xyz[:, :, 1]), self._f(xyz[:, :, 2])
        lightness = (116.0 * fy - 16.0) / 100.0
        a = (500.0 * (fx - fy) + LAB_A_RANGE[0]) / LAB_A_RANGE[1]
        b = (200.0 * (fy - fz) + LAB_B_RANGE[0]) / LAB_B_RANGE[1]
        return [lightness, a, b]


class GrayConverter(ColorConverter):
    """Luma only"""
    name = "gray"
    channel_names = ("luma",)

    def convert(self, linear_rgb: np.ndarray) -> List[np.ndarray]:
        return [_luma(linear_rgb)]


CONVERTERS = {cls.name: cls for cls in (YCbCrConverter, LabConverter, GrayConverter)}


def get_converter(name: str) -> ColorConverter:
    """Instantiate the converter registered under name"""
    try:
        return CONVERTERS[name]()
    except KeyError:
        raise ConfigError(f"Unknown color space '{name}', expected one of {sorted(CONVERTERS)}") from None


def convert_pair(a: np.ndarray, b: np.ndarray, converter: ColorConverter,
                 pixel_order: str = "RGB") -> Tuple[List[np.ndarray], List[np.ndarray]]:
    """Validate two rasters against each other and convert both"""
    a = np.asarray(a)
    b = np.asarray(b)
    check_dimensions(a, b)
    return converter.planes(a, pixel_order), converter.planes(b, pixel_order)
