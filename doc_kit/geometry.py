"""
Box helpers shared by the decode pipeline and the refinement engine.

Degenerate inputs never raise: zero-area unions give IoU 0 and zero-size frames
give coverage 0.
"""

from __future__ import annotations

from .types import Box


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def clamp_box(box: Box, width: float, height: float) -> Box:
    return Box(
        x1=clamp(box.x1, 0, width),
        y1=clamp(box.y1, 0, height),
        x2=clamp(box.x2, 0, width),
        y2=clamp(box.y2, 0, height),
    )


def intersect(a: Box, b: Box) -> Box:
    """Raw intersection; may be inverted when the boxes do not overlap (area is then 0)."""
    return Box(
        x1=max(a.x1, b.x1),
        y1=max(a.y1, b.y1),
        x2=min(a.x2, b.x2),
        y2=min(a.y2, b.y2),
    )


def iou(a: Box, b: Box) -> float:
    inter = intersect(a, b).area
    union = a.area + b.area - inter
    return inter / union if union > 0 else 0.0


def coverage(box: Box, width: float, height: float) -> float:
    frame_area = width * height
    return box.area / frame_area if frame_area > 0 else 0.0


def full_frame(width: float, height: float) -> Box:
    return Box(0, 0, width, height)
