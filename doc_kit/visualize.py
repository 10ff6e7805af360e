from __future__ import annotations

import zlib
from typing import Iterable, Mapping, Optional, Tuple

import numpy as np

from .types import Detection


BGR = Tuple[int, int, int]

# OpenCV channel order.
DEFAULT_PALETTE = {
    "Receipt": (94, 197, 34),
    "Document": (22, 115, 249),
    "Screenshot": (246, 130, 59),
    "Top status bar": (129, 185, 16),
    "Bottom nav bar": (247, 85, 168),
}

_FONT_PX_PER_SCALE = 30.0


def _color_for_label(label: str, palette: Optional[Mapping[str, BGR]]) -> BGR:
    if palette and label in palette:
        return palette[label]
    # Seeded by a stable hash so a label keeps its color across runs.
    rng = np.random.default_rng(zlib.crc32(label.encode("utf-8")))
    b, g, r = rng.integers(40, 220, size=3)
    return int(b), int(g), int(r)


def _overlay_params(w: int, h: int) -> Tuple[int, float, int]:
    """Stroke, font scale and text padding proportional to the image size."""
    short = min(w, h)
    stroke = max(2, int(short * 0.003))
    font_px = max(14, int(short * 0.025))
    return stroke, font_px / _FONT_PX_PER_SCALE, max(4, int(font_px * 0.35))


def draw_detections(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    palette: Optional[Mapping[str, BGR]] = None,
    show_score: bool = True,
    label_alpha: float = 0.85,
) -> np.ndarray:
    """
    Return a copy of `image_bgr` with one outlined box and a `Label (0.97)` tag per
    detection. Boxes that collapse to nothing after clamping are skipped; synthetic
    detections get a 1 px outline.
    """

    import cv2  # type: ignore

    if not isinstance(image_bgr, np.ndarray) or image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected a BGR image shaped (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    palette = DEFAULT_PALETTE if palette is None else palette
    out = image_bgr.copy()
    h, w = out.shape[:2]
    stroke, font_scale, pad = _overlay_params(w, h)
    font = cv2.FONT_HERSHEY_SIMPLEX

    for det in detections:
        x1, y1, x2, y2 = (int(round(v)) for v in det.as_xyxy())
        x1, x2 = max(0, min(w, x1)), max(0, min(w, x2))
        y1, y2 = max(0, min(h, y1)), max(0, min(h, y2))
        if x2 <= x1 or y2 <= y1:
            continue

        color = _color_for_label(det.label, palette)
        cv2.rectangle(out, (x1, y1), (x2 - 1, y2 - 1), color, thickness=1 if det.is_synthetic else stroke)

        text = f"{det.label} ({det.score:.2f})" if show_score else det.label
        (tw, th), baseline = cv2.getTextSize(text, font, font_scale, 1)
        tag_h = th + baseline + 2 * pad
        tag_top = y1 - tag_h - stroke if y1 - tag_h - stroke >= 0 else y1
        tag_right = min(w, x1 + tw + 2 * pad)
        tag_bottom = min(h, tag_top + tag_h)

        region = out[tag_top:tag_bottom, x1:tag_right]
        if region.size:
            fill = np.empty_like(region)
            fill[:] = color
            out[tag_top:tag_bottom, x1:tag_right] = cv2.addWeighted(fill, label_alpha, region, 1 - label_alpha, 0)
        cv2.putText(out, text, (x1 + pad, tag_top + pad + th), font, font_scale, (255, 255, 255), 1, cv2.LINE_AA)

    return out


def crop_detection(image: np.ndarray, det: Detection) -> np.ndarray:
    """
    Copy of the detection's region; inverted boxes are normalized and empty ones
    widened to 1 px.
    """

    h, w = image.shape[:2]
    x1, y1, x2, y2 = (int(round(v)) for v in det.as_xyxy())
    left = min(max(0, min(x1, x2)), max(0, w - 1))
    top = min(max(0, min(y1, y2)), max(0, h - 1))
    width = max(1, abs(x2 - x1))
    height = max(1, abs(y2 - y1))
    return image[top : top + height, left : left + width].copy()
