from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence, Union

import numpy as np

from .errors import ConfigurationError
from .letterbox import LetterboxConfig, PreprocessResult, prepare_tensor
from .metadata import resolve_class_names
from .postprocess import DecodeConfig, DocumentPostprocessor, pick_detection_output
from .types import Detection


PathLike = Union[str, Path]
InferOutput = Union[np.ndarray, Mapping[str, np.ndarray]]

logger = logging.getLogger(__name__)


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", ".git"),
) -> Path:
    """Nearest ancestor of `start` (default: cwd) holding one of `markers`, else `start` itself."""
    here = Path(start if start is not None else Path.cwd()).resolve()
    if here.is_file():
        here = here.parent
    return next((d for d in (here, *here.parents) if any((d / m).exists() for m in markers)), here)


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Absolute paths pass through; relative ones are joined to `root`, or to the
    project root when `root` is "auto" or None, so `models/...` works from any cwd.
    """

    p = Path(path)
    if p.is_absolute():
        return p
    base = find_project_root() if root in ("auto", None) else Path(root).resolve()
    return (base / p).resolve()


class DocumentDetector:
    """
    Plug-and-play pipeline: letterbox -> inference -> decode -> per-class NMS -> remap.

    `infer_fn` receives the (1, 3, T, T) float32 blob and returns either one array or
    a mapping of named outputs. Images are OpenCV-style BGR `np.ndarray`.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], InferOutput],
        class_names: Sequence[str],
        *,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        letterbox_cfg: LetterboxConfig = LetterboxConfig(),
        decode_cfg: DecodeConfig = DecodeConfig(),
    ):
        if not class_names:
            raise ConfigurationError("class_names must not be empty")
        self._infer_fn = infer_fn
        self.class_names = tuple(class_names)
        self.backend = backend
        self.backend_name = backend_name
        self.letterbox_cfg = letterbox_cfg
        self.decode_cfg = decode_cfg
        self.post = DocumentPostprocessor(self.class_names, decode_cfg)

    @property
    def input_size(self) -> int:
        return self.letterbox_cfg.size

    def preprocess(self, image_bgr: np.ndarray) -> PreprocessResult:
        return prepare_tensor(image_bgr, self.letterbox_cfg)

    def __call__(self, image_bgr: np.ndarray) -> List[Detection]:
        prep = self.preprocess(image_bgr)
        raw = self._infer_fn(prep.blob)
        if isinstance(raw, Mapping):
            preds = pick_detection_output(raw, len(self.class_names))
        else:
            preds = raw
        detections = self.post.process(preds, orig_size=prep.orig_size, pad=prep.pad, scale=prep.scale)
        logger.debug("Detected %d objects on %dx%d image", len(detections), *prep.orig_size)
        return detections


def load_detector(
    model_path: PathLike,
    *,
    class_names: Optional[Sequence[str]] = None,
    root: Optional[PathLike] = "auto",
    letterbox_cfg: LetterboxConfig = LetterboxConfig(),
    decode_cfg: DecodeConfig = DecodeConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
) -> DocumentDetector:
    """
    Create a detector for an ONNX model on disk.

    Typical usage:
        detector = load_detector("models/yolo/800-50/best.onnx")  # classes.txt sits beside it

    Args:
        model_path: path to the .onnx file; relative paths resolve against project root by default
        class_names: ordered labels; defaults to `classes.txt` next to the model
        root: base directory for resolving relative model paths ("auto" uses best-effort project root)
    """

    resolved = resolve_path(model_path, root=root)
    if not resolved.exists():
        raise ConfigurationError(f"Model not found: {resolved}")
    if resolved.suffix.lower() != ".onnx":
        raise ConfigurationError(f"Unsupported model format '{resolved.suffix}'; expected .onnx")

    names = resolve_class_names(resolved, class_names)
    logger.info("Loaded %d classes for %s", len(names), resolved.name)

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    ort_backend = OnnxRuntimeBackend(
        resolved,
        OnnxRuntimeBackendConfig(providers=onnx_providers, input_name=onnx_input_name),
    )
    fixed = ort_backend.static_input_size
    if fixed is not None and fixed != letterbox_cfg.size:
        raise ConfigurationError(f"{resolved.name} expects {fixed}x{fixed} input, letterbox size is {letterbox_cfg.size}")
    return DocumentDetector(
        ort_backend.infer,
        names,
        backend=ort_backend,
        backend_name="onnxruntime",
        letterbox_cfg=letterbox_cfg,
        decode_cfg=decode_cfg,
    )
