import unittest

import numpy as np

from doc_kit.nms import NMSConfig, nms, suppress
from doc_kit.types import Candidate


def _random_candidates(seed: int, n: int = 200, num_classes: int = 3):
    rng = np.random.default_rng(seed)
    out = []
    for i in range(n):
        out.append(
            Candidate(
                cx=float(rng.uniform(0, 400)),
                cy=float(rng.uniform(0, 400)),
                w=float(rng.uniform(5, 120)),
                h=float(rng.uniform(5, 120)),
                class_id=int(rng.integers(0, num_classes)),
                # Coarse scores so ties actually happen.
                score=float(rng.integers(1, 20)) / 20.0,
                anchor=i,
            )
        )
    return out


class TestSuppress(unittest.TestCase):
    def test_idempotent(self) -> None:
        for seed in range(5):
            for thr in (0.3, 0.45, 0.7):
                once = suppress(_random_candidates(seed), thr)
                twice = suppress(once, thr)
                self.assertEqual([c.anchor for c in once], [c.anchor for c in twice])

    def test_classes_never_suppress_each_other(self) -> None:
        a = Candidate(cx=50, cy=50, w=20, h=20, class_id=0, score=0.9)
        b = Candidate(cx=50, cy=50, w=20, h=20, class_id=1, score=0.8)
        self.assertEqual(suppress([a, b], 0.0), [a, b])

    def test_iou_equal_to_threshold_is_suppressed(self) -> None:
        a = Candidate(cx=5, cy=5, w=10, h=10, class_id=0, score=0.9)  # (0,0,10,10)
        b = Candidate(cx=5, cy=10, w=10, h=20, class_id=0, score=0.8)  # (0,0,10,20): IoU 0.5
        self.assertEqual(suppress([b, a], 0.5), [a])
        self.assertEqual(suppress([b, a], 0.51), [a, b])

    def test_output_sorted_by_score(self) -> None:
        kept = suppress(_random_candidates(7), 0.45)
        scores = [c.score for c in kept]
        self.assertEqual(scores, sorted(scores, reverse=True))

    def test_empty(self) -> None:
        self.assertEqual(suppress([], 0.45), [])
        self.assertEqual(nms(np.zeros((0, 4)), np.zeros((0,)), np.zeros((0,), dtype=np.int64)).shape, (0,))

    def test_zero_area_boxes_do_not_divide_by_zero(self) -> None:
        boxes = np.array([[10, 10, 10, 10], [10, 10, 10, 10]], dtype=np.float64)
        keep = nms(boxes, np.array([0.9, 0.8]), np.array([0, 0]), NMSConfig(iou_threshold=0.5))
        self.assertEqual(keep.tolist(), [0, 1])


if __name__ == "__main__":
    unittest.main()
