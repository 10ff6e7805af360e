"""
Result model for one `analyze` call.

Everything here is a frozen dataclass holding tuples, so results compare
structurally with `==` and cannot be mutated in place.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from doc_kit.types import Box, Detection


TOP_BAR_LABEL = "Top status bar"
BOTTOM_BAR_LABEL = "Bottom nav bar"
BAR_LABELS = (TOP_BAR_LABEL, BOTTOM_BAR_LABEL)


class DocumentType(str, Enum):
    RECEIPT = "Receipt"
    DOCUMENT = "Document"
    SCREENSHOT = "Screenshot"
    UNKNOWN = "Unknown"

    @property
    def detection_label(self) -> Optional[str]:
        """Detector label that represents this type; Unknown has none."""
        return None if self is DocumentType.UNKNOWN else self.value

    @classmethod
    def from_label(cls, label: str) -> Optional["DocumentType"]:
        """Exact label lookup for the three main classes."""
        for t in (cls.RECEIPT, cls.DOCUMENT, cls.SCREENSHOT):
            if t.value == label:
                return t
        return None


def map_label_to_type(label: Optional[str]) -> DocumentType:
    """Loose mapping used for the initial summary: bars count as screenshots."""
    if not label:
        return DocumentType.UNKNOWN
    lowered = label.lower()
    if "receipt" in lowered:
        return DocumentType.RECEIPT
    if "document" in lowered:
        return DocumentType.DOCUMENT
    if "screenshot" in lowered or "bar" in lowered:
        return DocumentType.SCREENSHOT
    return DocumentType.UNKNOWN


@dataclass(frozen=True)
class Quality:
    edge_intensity: float = 0.0
    clarity: str = "medium"
    readability_score: float = 0.0
    is_partial: bool = False


@dataclass(frozen=True)
class Summary:
    document_type: DocumentType = DocumentType.UNKNOWN
    # Score of whatever the decision was based on; not necessarily a probability.
    confidence: float = 0.0
    primary_box: Optional[Box] = None
    quality: Quality = Quality()


@dataclass(frozen=True)
class ImageMeta:
    width: int
    height: int
    format: str = "unknown"
    channels: int = 3

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.width and self.height else 1.0


@dataclass(frozen=True)
class SourceInfo:
    filename: Optional[str] = None
    path: Optional[str] = None


@dataclass(frozen=True)
class AnalysisSignals:
    colors: Tuple[str, ...] = ()
    diagnostics: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ModelInfo:
    detector: str = "yolov8-onnx"
    classes: Tuple[str, ...] = ()
    input_size: int = 800
    conf_threshold: float = 0.1
    iou_threshold: float = 0.45


@dataclass(frozen=True)
class AnalysisResult:
    meta: ImageMeta
    summary: Summary
    detections: Tuple[Detection, ...] = ()
    signals: AnalysisSignals = AnalysisSignals()
    source: SourceInfo = SourceInfo()
    timestamp: str = ""
    model: Optional[ModelInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["meta"]["aspect_ratio"] = self.meta.aspect_ratio
        for det, out in zip(self.detections, payload["detections"]):
            if det.meta is not None:
                out["meta"]["metrics"] = det.meta.metrics_dict()
        return _plain(payload)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value
