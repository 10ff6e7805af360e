from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import ShapeMismatch
from .nms import suppress
from .types import Box, Candidate, Detection, DetectionMeta, DetectionSource


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodeConfig:
    """
    Post-processing knobs for the document detector.

    Scores are the model's raw class outputs; they are compared as-is and never
    passed through a sigmoid or softmax.
    """

    conf_threshold: float = 0.1
    iou_threshold: float = 0.45

    def __post_init__(self) -> None:
        if not (0.0 <= self.iou_threshold <= 1.0):
            raise ValueError("iou_threshold must be within [0, 1]")


def _layout(shape: Tuple[int, ...], num_classes: int) -> Optional[bool]:
    """True for channels-first [1, 4+C, N], False for [1, N, 4+C], None otherwise."""
    channels = 4 + num_classes
    if len(shape) != 3 or shape[0] != 1:
        return None
    if shape[1] == channels:
        return True
    if shape[2] == channels:
        return False
    return None


def decode_output(output: np.ndarray, num_classes: int) -> List[Candidate]:
    """
    Decode a raw `[1, 4+C, N]` or `[1, N, 4+C]` tensor into candidates.

    Anchors with non-positive width/height are skipped; the class is the argmax of
    the raw scores (first index on ties) and the anchor survives iff that score > 0.
    Result is ordered by score descending, ties by anchor index.
    """

    p = np.asarray(output)
    channels_first = _layout(tuple(p.shape), num_classes)
    if channels_first is None:
        raise ShapeMismatch(
            f"Unexpected output shape {tuple(p.shape)}; expected [1, {4 + num_classes}, N] or [1, N, {4 + num_classes}]"
        )

    p = p[0] if channels_first else p[0].T  # (4 + C, N)
    boxes = p[0:4, :]
    class_scores = p[4:, :]
    if boxes.shape[1] == 0:
        return []

    class_ids = np.argmax(class_scores, axis=0)
    scores = class_scores[class_ids, np.arange(class_scores.shape[1])]

    cx, cy, w, h = boxes
    keep = np.where((w > 0) & (h > 0) & (scores > 0))[0]
    order = keep[np.argsort(-scores[keep], kind="stable")]

    return [
        Candidate(
            cx=float(cx[i]),
            cy=float(cy[i]),
            w=float(w[i]),
            h=float(h[i]),
            class_id=int(class_ids[i]),
            score=float(scores[i]),
            anchor=int(i),
        )
        for i in order
    ]


def _round_half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


def remap_candidate(
    cand: Candidate,
    scale: float,
    pad: Tuple[float, float],
    orig_size: Tuple[int, int],
    class_names: Sequence[str],
) -> Detection:
    """
    Map a candidate from letterboxed model space to integer original-image pixels.
    """

    pad_x, pad_y = pad
    orig_w, orig_h = orig_size
    x1, y1, x2, y2 = cand.as_xyxy()

    x1 = _round_half_up(min(max((x1 - pad_x) / scale, 0), orig_w))
    y1 = _round_half_up(min(max((y1 - pad_y) / scale, 0), orig_h))
    x2 = _round_half_up(min(max((x2 - pad_x) / scale, 0), orig_w))
    y2 = _round_half_up(min(max((y2 - pad_y) / scale, 0), orig_h))

    reason = None
    if x2 <= x1 or y2 <= y1:
        # Candidate lies entirely in the padding band.
        reason = "degenerate_box"

    if 0 <= cand.class_id < len(class_names):
        label = class_names[cand.class_id]
    else:
        label = str(cand.class_id)

    return Detection(
        label=label,
        score=cand.score,
        box=Box(x1, y1, x2, y2),
        meta=DetectionMeta(source=DetectionSource.DETECTOR, reason=reason),
        class_id=cand.class_id,
    )


def pick_detection_output(outputs: Mapping[str, np.ndarray], num_classes: int) -> np.ndarray:
    """
    Choose the detection head among named outputs: the first whose shape matches a
    known layout, else the first output (decoding will then report the mismatch).
    """

    if not outputs:
        raise ShapeMismatch("Inference returned no outputs")
    for name, value in outputs.items():
        if _layout(tuple(np.shape(value)), num_classes) is not None:
            logger.debug("Using output %r with shape %s", name, tuple(np.shape(value)))
            return value
    first = next(iter(outputs))
    logger.warning("No output matches the detection layout; falling back to %r", first)
    return outputs[first]


class DocumentPostprocessor:
    """
    Raw output -> thresholded candidates -> per-class NMS -> `Detection` list.

    Input must be a NumPy array for a single image (batch axis of 1).
    """

    def __init__(self, class_names: Sequence[str], cfg: DecodeConfig = DecodeConfig()):
        self.class_names = tuple(class_names)
        self.cfg = cfg

    def process(
        self,
        preds: np.ndarray,
        orig_size: Tuple[int, int],
        pad: Tuple[float, float] = (0.0, 0.0),
        scale: float = 1.0,
    ) -> List[Detection]:
        """
        Args:
            preds: model output for a single image
            orig_size: (width, height) of the original image
            pad: (pad_x, pad_y) used during letterboxing (left/top)
            scale: resize factor used during letterboxing
        """

        candidates = decode_output(preds, len(self.class_names))
        logger.debug("Candidates before threshold: %d", len(candidates))

        candidates = [c for c in candidates if c.score > self.cfg.conf_threshold]
        kept = suppress(candidates, self.cfg.iou_threshold)
        logger.debug(
            "Candidates after threshold %.3f: %d, after NMS: %d",
            self.cfg.conf_threshold,
            len(candidates),
            len(kept),
        )

        return [remap_candidate(c, scale, pad, orig_size, self.class_names) for c in kept]
