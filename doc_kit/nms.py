from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .types import Candidate


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.45

    def __post_init__(self) -> None:
        if not (0.0 <= self.iou_threshold <= 1.0):
            raise ValueError("iou_threshold must be within [0, 1]")


def nms(boxes: np.ndarray, scores: np.ndarray, class_ids: np.ndarray, cfg: NMSConfig = NMSConfig()) -> np.ndarray:
    """
    Per-class NumPy NMS. Expects boxes shape (N,4) in xyxy, scores and class_ids shape (N,).
    Returns indices of boxes to keep, highest score first.

    Boxes of different classes never suppress each other. Ties in score keep
    input order (stable sort), so re-running on the output is a no-op.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int64)

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)

    order = np.argsort(-scores, kind="stable")
    keep = []

    while order.size > 0:
        i = order[0]
        keep.append(i)
        rest = order[1:]

        xx1 = np.maximum(x1[i], x1[rest])
        yy1 = np.maximum(y1[i], y1[rest])
        xx2 = np.minimum(x2[i], x2[rest])
        yy2 = np.minimum(y2[i], y2[rest])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[rest] - inter
        with np.errstate(divide="ignore", invalid="ignore"):
            iou = np.where(union > 0, inter / union, 0.0)

        suppressed = (class_ids[rest] == class_ids[i]) & (iou >= cfg.iou_threshold)
        order = rest[~suppressed]

    return np.array(keep, dtype=np.int64)


def suppress(candidates: Sequence[Candidate], iou_threshold: float) -> List[Candidate]:
    """Run per-class NMS over decoded candidates and return the survivors by descending score."""
    if not candidates:
        return []

    boxes = np.array([c.as_xyxy() for c in candidates], dtype=np.float64)
    scores = np.array([c.score for c in candidates], dtype=np.float64)
    class_ids = np.array([c.class_id for c in candidates], dtype=np.int64)
    keep = nms(boxes, scores, class_ids, NMSConfig(iou_threshold=iou_threshold))
    return [candidates[int(i)] for i in keep]
