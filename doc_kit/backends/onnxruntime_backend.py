from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import numpy as np

from ..errors import ConfigurationError


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    - providers: ORT execution providers in priority order; None lets ORT choose
    - input_name: image input to feed when the graph has more than one input
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None


class OnnxRuntimeBackend:
    """
    Runs a detector exported to ONNX on a (1, 3, T, T) float32 blob and returns
    all graph outputs by name.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("onnxruntime is required to load .onnx detectors. Install with `pip install onnxruntime`.") from e

        self.model_path = Path(model_path)
        if not self.model_path.is_file():
            raise ConfigurationError(f"Model not found: {self.model_path}")

        providers = list(cfg.providers) if cfg.providers else None
        self.session = ort.InferenceSession(str(self.model_path), providers=providers)

        inputs = {i.name: i for i in self.session.get_inputs()}
        name = cfg.input_name or next(iter(inputs))
        if name not in inputs:
            raise ConfigurationError(f"Model has no input named {name!r}; available: {sorted(inputs)}")
        self.input_name = name
        self._input_shape = tuple(inputs[name].shape)
        self.output_names = [o.name for o in self.session.get_outputs()]
        logger.info(
            "ONNX model %s: input %s%s, outputs %s, providers %s",
            self.model_path.name,
            self.input_name,
            self._input_shape,
            self.output_names,
            self.session.get_providers(),
        )

    @property
    def static_input_size(self) -> Optional[int]:
        """Square side baked into the graph, or None for dynamic axes."""
        if len(self._input_shape) != 4:
            return None
        h, w = self._input_shape[2:]
        if isinstance(h, int) and h == w:
            return h
        return None

    def infer(self, blob: np.ndarray) -> Dict[str, np.ndarray]:
        outputs = self.session.run(self.output_names, {self.input_name: np.ascontiguousarray(blob, dtype=np.float32)})
        return dict(zip(self.output_names, outputs))
