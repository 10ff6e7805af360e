from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class DetectionSource(str, Enum):
    DETECTOR = "detector"
    REFINE = "refine"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class Box:
    """
    Axis-aligned box in pixel coordinates (x1 <= x2, y1 <= y2 for valid boxes).
    """

    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return max(0.0, self.x2 - self.x1)

    @property
    def height(self) -> float:
        return max(0.0, self.y2 - self.y1)

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2


@dataclass(frozen=True)
class DetectionMeta:
    synthetic: bool = False
    adjusted: bool = False
    source: DetectionSource = DetectionSource.DETECTOR
    reason: Optional[str] = None
    # Diagnostic measurements only (e.g. validated bar fractions) as (name, value) pairs.
    metrics: Tuple[Tuple[str, Any], ...] = ()

    def metrics_dict(self) -> Dict[str, Any]:
        return dict(self.metrics)


@dataclass(frozen=True)
class Detection:
    """
    Public detection in original image coordinates.

    Instances are immutable; refinement builds new ones with `dataclasses.replace`.
    """

    label: str
    score: float
    box: Box
    meta: Optional[DetectionMeta] = None
    class_id: Optional[int] = None

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.box.as_xyxy()

    @property
    def is_synthetic(self) -> bool:
        return self.meta is not None and self.meta.synthetic


@dataclass(frozen=True)
class Candidate:
    """
    Decoded anchor in padded model space (center format, raw score).
    """

    cx: float
    cy: float
    w: float
    h: float
    class_id: int
    score: float
    anchor: int = field(default=-1, compare=False)

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        half_w = self.w / 2
        half_h = self.h / 2
        return self.cx - half_w, self.cy - half_h, self.cx + half_w, self.cy + half_h
