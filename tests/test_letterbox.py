import unittest

import numpy as np

from doc_kit.letterbox import LetterboxConfig, letterbox, letterbox_geometry, prepare_tensor


class TestLetterboxGeometry(unittest.TestCase):
    def test_landscape(self) -> None:
        scale, resized, pad = letterbox_geometry(1000, 600, 800)
        self.assertAlmostEqual(scale, 0.8)
        self.assertEqual(resized, (800, 480))
        self.assertEqual(pad, (0, 160))

    def test_portrait_odd_padding(self) -> None:
        scale, resized, pad = letterbox_geometry(333, 1000, 800)
        self.assertAlmostEqual(scale, 0.8)
        self.assertEqual(resized, (266, 800))
        self.assertEqual(pad, (267, 0))

    def test_invalid_size(self) -> None:
        with self.assertRaises(ValueError):
            letterbox_geometry(0, 100, 800)

    def test_config_validation(self) -> None:
        with self.assertRaises(ValueError):
            LetterboxConfig(size=0)
        with self.assertRaises(ValueError):
            LetterboxConfig(pad_value=300)
        with self.assertRaises(ValueError):
            LetterboxConfig(interpolation="nearest-ish")


class TestPrepareTensor(unittest.TestCase):
    def setUp(self) -> None:
        self.image = np.zeros((100, 200, 3), dtype=np.uint8)
        self.image[:, :] = (10, 20, 30)  # BGR

    def test_padded_canvas(self) -> None:
        padded, scale, pad = letterbox(self.image, LetterboxConfig(size=64))
        self.assertEqual(padded.shape, (64, 64, 3))
        self.assertAlmostEqual(scale, 0.32)
        self.assertEqual(pad, (0, 16))
        self.assertTrue(np.all(padded[:16] == 114))
        self.assertTrue(np.all(padded[48:] == 114))
        self.assertTrue(np.all(padded[16:48] == np.array([10, 20, 30], dtype=np.uint8)))

    def test_planar_rgb_normalized(self) -> None:
        prep = prepare_tensor(self.image, LetterboxConfig(size=64))
        self.assertEqual(prep.blob.shape, (1, 3, 64, 64))
        self.assertEqual(prep.blob.dtype, np.float32)
        self.assertEqual(prep.orig_size, (200, 100))
        self.assertAlmostEqual(float(prep.blob[0, 0, 30, 30]), 30 / 255.0, places=6)  # R
        self.assertAlmostEqual(float(prep.blob[0, 2, 30, 30]), 10 / 255.0, places=6)  # B
        self.assertAlmostEqual(float(prep.blob[0, 1, 0, 0]), 114 / 255.0, places=6)
        self.assertLessEqual(float(prep.blob.max()), 1.0)

    def test_rejects_non_bgr(self) -> None:
        with self.assertRaises(ValueError):
            prepare_tensor(np.zeros((10, 10), dtype=np.uint8))


if __name__ == "__main__":
    unittest.main()
