"""
Detection runtime for document photographs.

Letterbox preparation, raw YOLO-style output decoding, per-class NMS and
coordinate remapping back to original pixels. Framework-agnostic: works with
NumPy arrays emitted by ONNX Runtime. OpenCV is only needed for letterboxing
and drawing.
"""

from .errors import ConfigurationError, ShapeMismatch
from .types import Box, Candidate, Detection, DetectionMeta, DetectionSource
from .geometry import clamp_box, coverage, full_frame, intersect, iou
from .letterbox import LetterboxConfig, PreprocessResult, letterbox, letterbox_geometry, prepare_tensor
from .nms import NMSConfig, nms, suppress
from .postprocess import DecodeConfig, DocumentPostprocessor, decode_output, pick_detection_output, remap_candidate
from .runtime import DocumentDetector, find_project_root, load_detector, resolve_path
from .metadata import load_class_names, resolve_class_names
from .visualize import crop_detection, draw_detections

__all__ = [
    "ConfigurationError",
    "ShapeMismatch",
    "Box",
    "Candidate",
    "Detection",
    "DetectionMeta",
    "DetectionSource",
    "clamp_box",
    "coverage",
    "full_frame",
    "intersect",
    "iou",
    "LetterboxConfig",
    "PreprocessResult",
    "letterbox",
    "letterbox_geometry",
    "prepare_tensor",
    "NMSConfig",
    "nms",
    "suppress",
    "DecodeConfig",
    "DocumentPostprocessor",
    "decode_output",
    "pick_detection_output",
    "remap_candidate",
    "DocumentDetector",
    "find_project_root",
    "load_detector",
    "resolve_path",
    "load_class_names",
    "resolve_class_names",
    "crop_detection",
    "draw_detections",
]
