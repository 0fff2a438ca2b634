"""Unit tests for aspect ratio preservation"""

import unittest

from ffmovie.aspect import (
    PreserveMode, fix_dimension, is_rotated_odd, preserve_height, preserve_width,
    resolve_preservation
)


class TestFixDimension(unittest.TestCase):
    def test_even_ceiling_is_used(self):
        self.assertEqual(fix_dimension(259.32), 260)
        self.assertEqual(fix_dimension(7.5), 8)

    def test_odd_ceiling_falls_back_to_floor(self):
        self.assertEqual(fix_dimension(6.5), 6)

    def test_exact_odd_value_is_bumped(self):
        self.assertEqual(fix_dimension(241.0), 242)

    def test_result_is_always_even(self):
        for aspect in (1.0, 1.234, 4 / 3, 16 / 9, 2.39, 0.5625):
            for width in range(100, 140):
                _, height = preserve_width(width, 0, aspect)
                self.assertEqual(height % 2, 0, (width, aspect))


class TestPreservation(unittest.TestCase):
    def test_preserve_width(self):
        self.assertEqual(preserve_width(320, 240, 1.234), (320, 260))
        self.assertEqual(resolve_preservation("width", 1.234, 320, 240), (320, 260))

    def test_preserve_height(self):
        self.assertEqual(preserve_height(320, 240, 4 / 3), (320, 240))
        self.assertEqual(resolve_preservation(PreserveMode.HEIGHT, 16 / 9, 320, 240), (426, 240))

    def test_fit_landscape_source_portrait_target(self):
        width, height = resolve_preservation("fit", 4 / 3, 320, 500)
        self.assertEqual((width, height), (320, 240))
        self.assertLess(height, 500)

    def test_fit_portrait_source_landscape_target(self):
        width, height = resolve_preservation("fit", 3 / 4, 500, 240)
        self.assertEqual((width, height), (180, 240))
        self.assertLess(width, 500)

    def test_fit_rotated_source(self):
        # A 640x480 movie rotated by 90 degrees is displayed as 480x640
        self.assertEqual(resolve_preservation("fit", 4 / 3, 360, 360, rotated_odd=True), (270, 360))
        self.assertEqual(resolve_preservation("fit", 4 / 3, 360, 360, rotated_odd=False), (360, 270))

    def test_unknown_aspect_keeps_resolution(self):
        self.assertEqual(resolve_preservation("fit", None, 320, 500), (320, 500))

    def test_unknown_mode_keeps_resolution(self):
        self.assertEqual(resolve_preservation("stretch", 4 / 3, 320, 500), (320, 500))

    def test_is_rotated_odd(self):
        self.assertTrue(is_rotated_odd(90))
        self.assertTrue(is_rotated_odd(270))
        self.assertTrue(is_rotated_odd(-90))
        self.assertFalse(is_rotated_odd(180))
        self.assertFalse(is_rotated_odd(0))
        self.assertFalse(is_rotated_odd(None))


if __name__ == "__main__":
    unittest.main()
