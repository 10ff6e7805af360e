"""
Document classification layer built on top of `doc_kit`.

`doc_kit` turns pixels into detections; this package decides what the photo is:
- result model (summary, quality, signals)
- tolerance config for refinement
- the rule-based refinement pipeline
- image signals (edges, dominant colors) and the analyzer that ties it together
"""

from __future__ import annotations

from .config import RefineConfig, RefineTolerances, load_refine_config, refine_config_from_dict
from .refine import refine_analysis
from .result import (
    AnalysisResult,
    AnalysisSignals,
    DocumentType,
    ImageMeta,
    ModelInfo,
    Quality,
    SourceInfo,
    Summary,
    map_label_to_type,
)
from .image_io import read_image
from .analyzer import DocumentAnalyzer, initial_summary

__all__ = [
    "RefineConfig",
    "RefineTolerances",
    "load_refine_config",
    "refine_config_from_dict",
    "refine_analysis",
    "AnalysisResult",
    "AnalysisSignals",
    "DocumentType",
    "ImageMeta",
    "ModelInfo",
    "Quality",
    "SourceInfo",
    "Summary",
    "map_label_to_type",
    "read_image",
    "DocumentAnalyzer",
    "initial_summary",
]
