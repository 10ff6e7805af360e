import unittest

import numpy as np

from doc_kit.errors import ShapeMismatch
from doc_kit.postprocess import DecodeConfig, DocumentPostprocessor, decode_output, pick_detection_output


def _channels_first(anchors, num_classes):
    """anchors: list of (cx, cy, w, h, [scores...]) -> (1, 4 + C, N)."""
    cols = [[cx, cy, w, h, *scores] for cx, cy, w, h, scores in anchors]
    p = np.array(cols, dtype=np.float32).T
    assert p.shape[0] == 4 + num_classes
    return p[None, ...]


class TestDecodeOutput(unittest.TestCase):
    def setUp(self) -> None:
        self.anchors = [
            (100, 100, 50, 40, [0.2, 0.7]),  # class 1
            (50, 50, 0, 10, [0.9, 0.1]),  # zero width
            (60, 60, 10, 10, [-0.5, -0.1]),  # no positive score
            (30, 40, 20, 20, [0.4, 0.3]),  # class 0
        ]

    def test_channels_first(self) -> None:
        cands = decode_output(_channels_first(self.anchors, 2), num_classes=2)
        self.assertEqual(len(cands), 2)
        self.assertEqual(cands[0].class_id, 1)
        self.assertAlmostEqual(cands[0].score, 0.7, places=6)
        self.assertEqual((cands[0].cx, cands[0].cy, cands[0].w, cands[0].h), (100, 100, 50, 40))
        self.assertEqual(cands[1].class_id, 0)
        self.assertEqual(cands[1].anchor, 3)

    def test_channels_last_matches_channels_first(self) -> None:
        first = _channels_first(self.anchors, 2)
        last = np.transpose(first, (0, 2, 1))  # (1, N, 4 + C)
        self.assertEqual(decode_output(first, 2), decode_output(last, 2))

    def test_raw_scores_are_not_squashed(self) -> None:
        p = _channels_first([(10, 10, 4, 4, [3.5, 0.0])], 2)
        cands = decode_output(p, 2)
        self.assertEqual(len(cands), 1)
        self.assertAlmostEqual(cands[0].score, 3.5, places=6)

    def test_equal_scores_keep_anchor_order(self) -> None:
        p = _channels_first(
            [
                (10, 10, 4, 4, [0.5, 0.0]),
                (20, 20, 4, 4, [0.0, 0.8]),
                (30, 30, 4, 4, [0.5, 0.0]),
            ],
            2,
        )
        cands = decode_output(p, 2)
        self.assertEqual([c.anchor for c in cands], [1, 0, 2])

    def test_shape_mismatch(self) -> None:
        with self.assertRaises(ShapeMismatch):
            decode_output(np.zeros((1, 7, 30), dtype=np.float32), num_classes=2)
        with self.assertRaises(ShapeMismatch):
            decode_output(np.zeros((2, 6, 30), dtype=np.float32), num_classes=2)
        with self.assertRaises(ShapeMismatch):
            decode_output(np.zeros((6, 30), dtype=np.float32), num_classes=2)


class TestDocumentPostprocessor(unittest.TestCase):
    def test_threshold_and_nms_per_class(self) -> None:
        p = _channels_first(
            [
                (100, 100, 40, 40, [0.9, 0.0]),
                (101, 101, 40, 40, [0.8, 0.0]),  # same class, overlapping -> suppressed
                (100, 100, 40, 40, [0.0, 0.6]),  # other class, same box -> kept
                (300, 300, 40, 40, [0.05, 0.0]),  # below threshold -> dropped
            ],
            2,
        )
        post = DocumentPostprocessor(["Document", "Receipt"], DecodeConfig(conf_threshold=0.1, iou_threshold=0.45))
        dets = post.process(p, orig_size=(800, 800))
        self.assertEqual([d.label for d in dets], ["Document", "Receipt"])
        self.assertEqual(dets[0].box.as_xyxy(), (80, 80, 120, 120))
        self.assertEqual(dets[0].meta.source.value, "detector")

    def test_pick_detection_output_prefers_matching_layout(self) -> None:
        head = np.zeros((1, 6, 10), dtype=np.float32)
        outputs = {"proto": np.zeros((1, 32, 8, 8), dtype=np.float32), "output0": head}
        self.assertIs(pick_detection_output(outputs, 2), head)

    def test_pick_detection_output_falls_back_to_first(self) -> None:
        first = np.zeros((1, 5, 5), dtype=np.float32)
        outputs = {"a": first, "b": np.zeros((3,), dtype=np.float32)}
        self.assertIs(pick_detection_output(outputs, 2), first)


if __name__ == "__main__":
    unittest.main()
