import unittest

from doc_kit.letterbox import letterbox_geometry
from doc_kit.postprocess import remap_candidate
from doc_kit.types import Candidate


NAMES = ["Receipt", "Document", "Screenshot"]


def _encode(box, scale, pad, class_id=1, score=0.5) -> Candidate:
    """Project an original-image box into letterboxed model space."""
    x1, y1, x2, y2 = box
    pad_x, pad_y = pad
    mx1, my1 = x1 * scale + pad_x, y1 * scale + pad_y
    mx2, my2 = x2 * scale + pad_x, y2 * scale + pad_y
    return Candidate(cx=(mx1 + mx2) / 2, cy=(my1 + my2) / 2, w=mx2 - mx1, h=my2 - my1, class_id=class_id, score=score)


class TestRemap(unittest.TestCase):
    def test_roundtrip_within_one_pixel(self) -> None:
        cases = [
            ((1000, 600), (100, 50, 400, 300)),
            ((1234, 777), (0, 0, 1234, 777)),
            ((333, 1000), (17, 250, 300, 999)),
            ((4032, 3024), (512, 301, 3333, 2900)),
        ]
        for (w, h), box in cases:
            scale, _, pad = letterbox_geometry(w, h, 800)
            det = remap_candidate(_encode(box, scale, pad), scale, pad, (w, h), NAMES)
            for got, want in zip(det.box.as_xyxy(), box):
                self.assertLessEqual(abs(got - want), 1, msg=f"{(w, h)} {box} -> {det.box}")
                self.assertIsInstance(got, int)

    def test_clamped_to_image(self) -> None:
        scale, _, pad = letterbox_geometry(1000, 600, 800)
        cand = Candidate(cx=400, cy=400, w=900, h=700, class_id=0, score=0.9)
        det = remap_candidate(cand, scale, pad, (1000, 600), NAMES)
        self.assertEqual(det.box.as_xyxy(), (0, 0, 1000, 600))
        self.assertEqual(det.label, "Receipt")
        self.assertEqual(det.class_id, 0)
        self.assertIsNone(det.meta.reason)

    def test_box_inside_padding_is_flagged(self) -> None:
        scale, _, pad = letterbox_geometry(1000, 600, 800)  # pad_y = 160
        cand = Candidate(cx=400, cy=50, w=100, h=40, class_id=2, score=0.3)
        det = remap_candidate(cand, scale, pad, (1000, 600), NAMES)
        self.assertEqual(det.box.y1, det.box.y2)
        self.assertEqual(det.meta.reason, "degenerate_box")


if __name__ == "__main__":
    unittest.main()
