#!/usr/bin/env python3
"""
Unit tests for colour conversion
"""

import unittest

import numpy as np

from dssim import (
    DegenerateComputation,
    DimensionMismatch,
    EmptyImage,
    UnsupportedPixelFormat,
    ConfigError,
    get_converter,
)
from dssim.color import (
    CHROMA_OFFSET,
    LAB_A_RANGE,
    LAB_B_RANGE,
    NEUTRAL_BACKGROUND,
    check_dimensions,
    convert_pair,
    gamma_lut,
    srgb_to_linear,
    to_linear_rgb,
)
from helpers import random_rgb


class TestGamma(unittest.TestCase):
    """Test sRGB linearisation"""

    def test_endpoints(self):
        """Test that black and white map to 0 and 1"""
        self.assertEqual(float(srgb_to_linear(0.0)), 0.0)
        self.assertAlmostEqual(float(srgb_to_linear(1.0)), 1.0)

    def test_linear_segment(self):
        """Test the linear toe of the transfer function"""
        self.assertAlmostEqual(float(srgb_to_linear(0.04)), 0.04 / 12.92)

    def test_lut(self):
        """Test lookup tables for 8 and 16 bit samples"""
        lut8 = gamma_lut(255)
        self.assertEqual(len(lut8), 256)
        self.assertAlmostEqual(lut8[255], 1.0)
        self.assertTrue(np.all(np.diff(lut8) > 0))
        self.assertFalse(lut8.flags.writeable)
        lut16 = gamma_lut(65535)
        self.assertEqual(len(lut16), 65536)
        self.assertAlmostEqual(lut16[128 * 257], lut8[128])


class TestToLinearRGB(unittest.TestCase):
    """Test decoding of the accepted raster formats"""

    def test_grey_expands_to_rgb(self):
        """Test that a greyscale raster becomes equal R, G, B"""
        grey = np.arange(12, dtype=np.uint8).reshape(3, 4) * 20
        rgb = to_linear_rgb(grey)
        self.assertEqual(rgb.shape, (3, 4, 3))
        np.testing.assert_array_equal(rgb[:, :, 0], rgb[:, :, 1])
        np.testing.assert_array_equal(rgb[:, :, 1], rgb[:, :, 2])

    def test_sixteen_bit_matches_eight_bit(self):
        """Test that 16 bit samples scaled from 8 bit give the same colour"""
        img8 = random_rgb(8, 6)
        img16 = img8.astype(np.uint16) * 257
        np.testing.assert_allclose(to_linear_rgb(img8), to_linear_rgb(img16), atol=1e-12)

    def test_float_input(self):
        """Test float rasters in [0, 1]"""
        img = np.full((2, 2, 3), 0.5)
        rgb = to_linear_rgb(img)
        self.assertAlmostEqual(rgb[0, 0, 0], float(srgb_to_linear(0.5)))

    def test_input_not_aliased(self):
        """Test that float input is copied, not wrapped"""
        img = np.zeros((2, 2, 3))
        rgb = to_linear_rgb(img)
        rgb[0, 0, 0] = 1.0
        self.assertEqual(img[0, 0, 0], 0.0)

    def test_bgr_order(self):
        """Test that BGR buffers decode like the equivalent RGB buffer"""
        img = random_rgb(5, 4)
        bgr = np.ascontiguousarray(img[:, :, ::-1])
        np.testing.assert_array_equal(to_linear_rgb(img), to_linear_rgb(bgr, pixel_order="BGR"))

    def test_transparent_pixels_become_background(self):
        """Test that fully transparent pixels composite to the neutral background"""
        rgba = random_rgb(6, 5, seed=3)
        rgba = np.concatenate([rgba, np.zeros((5, 6, 1), dtype=np.uint8)], axis=2)
        rgb = to_linear_rgb(rgba)
        np.testing.assert_array_equal(rgb, np.full((5, 6, 3), NEUTRAL_BACKGROUND))

    def test_opaque_alpha_is_ignored(self):
        """Test that alpha 255 leaves colours unchanged"""
        rgb = random_rgb(6, 5, seed=4)
        rgba = np.concatenate([rgb, np.full((5, 6, 1), 255, dtype=np.uint8)], axis=2)
        np.testing.assert_allclose(to_linear_rgb(rgba), to_linear_rgb(rgb), atol=1e-15)

    def test_grey_alpha(self):
        """Test grey + alpha rasters"""
        la = np.zeros((2, 2, 2), dtype=np.uint8)
        la[:, :, 0] = 255
        la[:, :, 1] = 0
        np.testing.assert_array_equal(to_linear_rgb(la), np.full((2, 2, 3), NEUTRAL_BACKGROUND))

    def test_non_finite_input(self):
        """Test that NaN pixels are reported as a degenerate computation"""
        img = np.full((4, 4, 3), 0.5)
        img[1, 1, 1] = np.nan
        with self.assertRaises(DegenerateComputation):
            to_linear_rgb(img)

    def test_unsupported_formats(self):
        """Test rejection of unsupported shapes and sample types"""
        with self.assertRaises(UnsupportedPixelFormat):
            to_linear_rgb(np.zeros((4, 4, 5), dtype=np.uint8))
        with self.assertRaises(UnsupportedPixelFormat):
            to_linear_rgb(np.zeros((4, 4, 3), dtype=np.int32))
        with self.assertRaises(UnsupportedPixelFormat):
            to_linear_rgb(np.zeros(16, dtype=np.uint8))
        with self.assertRaises(UnsupportedPixelFormat):
            to_linear_rgb(np.zeros((4, 4, 3), dtype=np.uint8), pixel_order="GBR")


class TestDimensions(unittest.TestCase):
    """Test the size contract between two images"""

    def test_matching(self):
        """Test that equal sizes pass regardless of channel count"""
        check_dimensions(np.zeros((4, 5, 3), dtype=np.uint8), np.zeros((4, 5), dtype=np.uint8))

    def test_mismatch(self):
        """Test that differing sizes raise DimensionMismatch"""
        with self.assertRaises(DimensionMismatch):
            check_dimensions(np.zeros((4, 5, 3)), np.zeros((5, 4, 3)))

    def test_empty(self):
        """Test that zero-sized images raise EmptyImage"""
        with self.assertRaises(EmptyImage):
            check_dimensions(np.zeros((0, 5, 3)), np.zeros((0, 5, 3)))
        with self.assertRaises(EmptyImage):
            check_dimensions(np.zeros((4, 5, 3)), np.zeros((4, 0, 3)))


class TestConverters(unittest.TestCase):
    """Test colour space variants"""

    def test_lookup(self):
        """Test converter selection by name"""
        self.assertEqual(get_converter("ycbcr").channel_count, 3)
        self.assertEqual(get_converter("lab").channel_count, 3)
        self.assertEqual(get_converter("gray").channel_count, 1)
        with self.assertRaises(ConfigError):
            get_converter("cmyk")

    def test_grey_has_neutral_chroma(self):
        """Test that neutral colours sit at the chroma offset"""
        grey = np.full((3, 3, 3), 90, dtype=np.uint8)
        neutral = {
            "ycbcr": (CHROMA_OFFSET, CHROMA_OFFSET),
            "lab": (LAB_A_RANGE[0] / LAB_A_RANGE[1], LAB_B_RANGE[0] / LAB_B_RANGE[1]),
        }
        for name, (first, second) in neutral.items():
            planes = get_converter(name).planes(grey)
            self.assertEqual(len(planes), 3)
            np.testing.assert_allclose(planes[1], first, atol=1e-4)
            np.testing.assert_allclose(planes[2], second, atol=1e-4)

    def test_planes_are_non_negative(self):
        """Test that every plane stays in [0, 1] for saturated colours"""
        corners = np.array([[[r, g, b] for r in (0, 255) for g in (0, 255) for b in (0, 255)]], dtype=np.uint8)
        for name in ("ycbcr", "lab", "gray"):
            for plane in get_converter(name).planes(corners):
                self.assertGreaterEqual(plane.min(), -1e-3, name)
                self.assertLessEqual(plane.max(), 1.0 + 1e-3, name)

    def test_ycbcr_ranges(self):
        """Test that primaries stay within unit chroma range"""
        primaries = np.array([[[255, 0, 0], [0, 255, 0], [0, 0, 255], [255, 255, 255]]], dtype=np.uint8)
        luma, cb, cr = get_converter("ycbcr").planes(primaries)
        self.assertAlmostEqual(luma[0, 3], 1.0)
        self.assertTrue(np.all((cb >= -1e-12) & (cb <= 1.0 + 1e-12)))
        self.assertTrue(np.all((cr >= -1e-12) & (cr <= 1.0 + 1e-12)))
        self.assertAlmostEqual(cb[0, 2], 1.0)
        self.assertAlmostEqual(cr[0, 0], 1.0)
        self.assertAlmostEqual(cb[0, 3], CHROMA_OFFSET)

    def test_lab_white(self):
        """Test that white maps to full lightness"""
        white = np.full((1, 1, 3), 255, dtype=np.uint8)
        lightness, a, b = get_converter("lab").planes(white)
        self.assertAlmostEqual(lightness[0, 0], 1.0, places=4)

    def test_planes_are_read_only(self):
        """Test that produced planes cannot be modified"""
        planes = get_converter("ycbcr").planes(random_rgb(4, 4))
        for plane in planes:
            self.assertFalse(plane.flags.writeable)
            self.assertEqual(plane.dtype, np.float64)

    def test_convert_pair(self):
        """Test pairwise conversion with the size check"""
        converter = get_converter("gray")
        planes_a, planes_b = convert_pair(random_rgb(8, 8), random_rgb(8, 8, seed=1), converter)
        self.assertEqual(len(planes_a), 1)
        self.assertEqual(planes_b[0].shape, (8, 8))
        with self.assertRaises(DimensionMismatch):
            convert_pair(random_rgb(8, 8), random_rgb(8, 9), converter)


if __name__ == '__main__':
    unittest.main(verbosity=2)
