import struct
import tempfile
import unittest
from pathlib import Path

import cv2
import numpy as np

from Document_Analysis.image_io import is_valid_image_file, read_image, sniff_format


def _exif_orientation_segment(orientation: int) -> bytes:
    # Big-endian TIFF header with a single IFD entry: 0x0112 Orientation, SHORT, count 1.
    tiff = b"MM\x00\x2a" + struct.pack(">I", 8)
    tiff += struct.pack(">H", 1)
    tiff += struct.pack(">HHIHH", 0x0112, 3, 1, orientation, 0)
    tiff += struct.pack(">I", 0)
    body = b"Exif\x00\x00" + tiff
    return b"\xff\xe1" + struct.pack(">H", len(body) + 2) + body


def _jpeg_with_orientation(image: np.ndarray, orientation: int) -> bytes:
    ok, buf = cv2.imencode(".jpg", image)
    assert ok
    data = buf.tobytes()
    # APP1 right after SOI.
    return data[:2] + _exif_orientation_segment(orientation) + data[2:]


class TestReadImage(unittest.TestCase):
    def test_exif_rotation_applied_before_measuring(self) -> None:
        # Stored landscape 200x100, displayed portrait 100x200 (orientation 6 = rotate 90 CW).
        stored = np.zeros((100, 200, 3), dtype=np.uint8)
        stored[:, :100] = 255
        image, meta = read_image(_jpeg_with_orientation(stored, 6))

        self.assertEqual((meta.width, meta.height), (100, 200))
        self.assertEqual(image.shape, (200, 100, 3))
        self.assertEqual(meta.format, "jpeg")
        self.assertLess(meta.aspect_ratio, 1.0)
        # Left (white) half of the stored image ends up on top after a clockwise turn.
        self.assertGreater(int(image[:90].mean()), 200)
        self.assertLess(int(image[110:].mean()), 50)

    def test_upright_jpeg_unchanged(self) -> None:
        stored = np.full((100, 200, 3), 128, dtype=np.uint8)
        _, meta = read_image(_jpeg_with_orientation(stored, 1))
        self.assertEqual((meta.width, meta.height), (200, 100))

    def test_stored_channel_count(self) -> None:
        ok, gray = cv2.imencode(".png", np.full((20, 30), 90, dtype=np.uint8))
        self.assertTrue(ok)
        image, meta = read_image(gray.tobytes())
        self.assertEqual(meta.channels, 1)
        self.assertEqual(image.shape, (20, 30, 3))

        ok, bgra = cv2.imencode(".png", np.full((20, 30, 4), 200, dtype=np.uint8))
        self.assertTrue(ok)
        image, meta = read_image(bgra.tobytes())
        self.assertEqual(meta.channels, 4)
        self.assertEqual(image.shape, (20, 30, 3))
        self.assertEqual(meta.format, "png")

    def test_path_and_errors(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "page.png"
            self.assertTrue(cv2.imwrite(str(path), np.zeros((10, 12, 3), dtype=np.uint8)))
            _, meta = read_image(path)
            self.assertEqual((meta.width, meta.height), (12, 10))
            with self.assertRaises(FileNotFoundError):
                read_image(Path(tmp) / "missing.jpg")
        with self.assertRaises(ValueError):
            read_image(b"\x00\x01\x02")

    def test_format_helpers(self) -> None:
        self.assertEqual(sniff_format(b"\xff\xd8\xff\xe0rest"), "jpeg")
        self.assertEqual(sniff_format(b"GIF89a"), "unknown")
        self.assertTrue(is_valid_image_file("scan.JPG"))
        self.assertFalse(is_valid_image_file("notes.txt"))


if __name__ == "__main__":
    unittest.main()
