from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np

from doc_kit.runtime import DocumentDetector, load_detector
from doc_kit.types import Detection

from .config import RefineConfig
from .image_io import ImageSource, read_image
from .image_signals import clarity_for, dominant_colors, edge_intensity, readability_for
from .refine import refine_analysis
from .result import (
    AnalysisResult,
    AnalysisSignals,
    ImageMeta,
    ModelInfo,
    Quality,
    SourceInfo,
    Summary,
    map_label_to_type,
)


logger = logging.getLogger(__name__)


def initial_summary(detections: Sequence[Detection], edge: float) -> Summary:
    """Summary straight from the detector: the top-scoring box decides the type."""
    top = None
    for d in detections:
        if top is None or d.score > top.score:
            top = d
    return Summary(
        document_type=map_label_to_type(top.label if top is not None else None),
        confidence=top.score if top is not None else 0.0,
        primary_box=top.box if top is not None else None,
        quality=Quality(
            edge_intensity=edge,
            clarity=clarity_for(edge),
            readability_score=readability_for(edge),
            is_partial=False,
        ),
    )


class DocumentAnalyzer:
    """
    Image -> detector -> initial summary -> (optional) refinement.

    One call handles one image; errors from decoding or inference propagate to the
    caller and only affect that image.
    """

    def __init__(
        self,
        detector: DocumentDetector,
        *,
        refine: bool = True,
        refine_cfg: RefineConfig = RefineConfig(),
        detector_name: str = "yolov8-onnx",
        log: Optional[logging.Logger] = None,
    ):
        self.detector = detector
        self.refine = refine
        self.refine_cfg = refine_cfg
        self.detector_name = detector_name
        self.log = log or logger

    @classmethod
    def from_model(cls, model_path: Union[str, Path], **kwargs) -> "DocumentAnalyzer":
        detector_kwargs = {
            k: kwargs.pop(k)
            for k in ("class_names", "root", "letterbox_cfg", "decode_cfg", "onnx_providers", "onnx_input_name")
            if k in kwargs
        }
        return cls(load_detector(model_path, **detector_kwargs), **kwargs)

    @property
    def model_info(self) -> ModelInfo:
        return ModelInfo(
            detector=self.detector_name,
            classes=tuple(self.detector.class_names),
            input_size=self.detector.input_size,
            conf_threshold=self.detector.decode_cfg.conf_threshold,
            iou_threshold=self.detector.decode_cfg.iou_threshold,
        )

    def analyze(self, src: ImageSource, *, refine: Optional[bool] = None) -> AnalysisResult:
        image, meta = read_image(src)
        source = SourceInfo()
        if isinstance(src, (str, Path)):
            source = SourceInfo(filename=Path(src).name, path=str(src))
        return self.analyze_array(image, meta=meta, source=source, refine=refine)

    def analyze_array(
        self,
        image_bgr: np.ndarray,
        *,
        meta: Optional[ImageMeta] = None,
        source: SourceInfo = SourceInfo(),
        refine: Optional[bool] = None,
    ) -> AnalysisResult:
        if meta is None:
            h, w = image_bgr.shape[:2]
            meta = ImageMeta(width=int(w), height=int(h), format="raw", channels=int(image_bgr.shape[2]))

        edge = edge_intensity(image_bgr)
        colors = dominant_colors(image_bgr)
        detections = self.detector(image_bgr)
        self.log.info(
            "%s: %dx%d, %d detections, edge=%.4f",
            source.filename or "<array>",
            meta.width,
            meta.height,
            len(detections),
            edge,
        )

        result = AnalysisResult(
            meta=meta,
            summary=initial_summary(detections, edge),
            detections=tuple(detections),
            signals=AnalysisSignals(colors=tuple(colors)),
            source=source,
            timestamp=datetime.now(timezone.utc).isoformat(),
            model=self.model_info,
        )

        if self.refine if refine is None else refine:
            result = refine_analysis(result, self.refine_cfg, log=self.log)
            self.log.info(
                "%s: refined to %s (%.3f)",
                source.filename or "<array>",
                result.summary.document_type.value,
                result.summary.confidence,
            )
        return result
