"""dssim package
Multi-scale SSIM image dissimilarity: 0 for identical images, growing without
bound as images diverge, with an optional per-pixel difference map.

Example:
    from dssim import Dssim, DssimConfig
    score = Dssim(DssimConfig()).compare(pixels_a, pixels_b).dissimilarity
"""
VERSION = "1.0.0"

from .config import DssimConfig
from .errors import (
    DssimError,
    ConfigError,
    ImageDecodeError,
    UnsupportedPixelFormat,
    DimensionMismatch,
    EmptyImage,
    DegenerateComputation,
)
from .color import ColorConverter, YCbCrConverter, LabConverter, GrayConverter, get_converter
from .engine import Dssim, ComparisonResult, BatchEntry, PreparedImage, compare, compare_batch

__all__ = [
    'VERSION',
    'DssimConfig',
    'Dssim',
    'ComparisonResult',
    'BatchEntry',
    'PreparedImage',
    'compare',
    'compare_batch',
    'ColorConverter',
    'YCbCrConverter',
    'LabConverter',
    'GrayConverter',
    'get_converter',
    'DssimError',
    'ConfigError',
    'ImageDecodeError',
    'UnsupportedPixelFormat',
    'DimensionMismatch',
    'EmptyImage',
    'DegenerateComputation',
]
