from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np


_INTERPOLATIONS = ("linear", "area", "cubic", "lanczos")


@dataclass(frozen=True)
class LetterboxConfig:
    size: int = 800
    pad_value: int = 114
    interpolation: str = "linear"

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError("size must be > 0")
        if not (0 <= self.pad_value <= 255):
            raise ValueError("pad_value must be within [0, 255]")
        if self.interpolation not in _INTERPOLATIONS:
            raise ValueError(f"interpolation must be one of {_INTERPOLATIONS}")


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    orig_size: Tuple[int, int]
    scale: float
    pad: Tuple[int, int]


def letterbox_geometry(width: int, height: int, size: int) -> Tuple[float, Tuple[int, int], Tuple[int, int]]:
    """
    Geometry of an aspect-preserving fit of (width, height) into a size x size canvas.

    Returns:
        scale: min(size / width, size / height)
        resized: (new_w, new_h), floored and at least 1 px
        pad: (pad_x, pad_y) left/top offsets; the remainder goes right/bottom
    """

    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image size {width}x{height}")

    scale = min(size / width, size / height)
    new_w = max(1, min(size, int(np.floor(width * scale))))
    new_h = max(1, min(size, int(np.floor(height * scale))))
    pad_x = (size - new_w) // 2
    pad_y = (size - new_h) // 2
    return scale, (new_w, new_h), (pad_x, pad_y)


def letterbox(image: np.ndarray, cfg: LetterboxConfig = LetterboxConfig()):
    """
    Resize preserving aspect ratio and center onto a square canvas filled with `pad_value`.

    Returns:
        padded: (size, size, C) image, same dtype as input
        scale: resize factor applied to both axes
        pad: (pad_x, pad_y) offsets of the resized image inside the canvas
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox(). Install with `pip install opencv-python`.") from e

    h, w = image.shape[:2]
    scale, (new_w, new_h), (pad_x, pad_y) = letterbox_geometry(w, h, cfg.size)

    interpolation = {
        "linear": cv2.INTER_LINEAR,
        "area": cv2.INTER_AREA,
        "cubic": cv2.INTER_CUBIC,
        "lanczos": cv2.INTER_LANCZOS4,
    }[cfg.interpolation]

    if (w, h) != (new_w, new_h):
        image = cv2.resize(image, (new_w, new_h), interpolation=interpolation)

    top, left = pad_y, pad_x
    bottom = cfg.size - new_h - top
    right = cfg.size - new_w - left
    color = (cfg.pad_value,) * (image.shape[2] if image.ndim == 3 else 1)
    padded = cv2.copyMakeBorder(image, top, bottom, left, right, cv2.BORDER_CONSTANT, value=color)

    return padded, scale, (pad_x, pad_y)


def to_planar_tensor(image_bgr: np.ndarray) -> np.ndarray:
    """BGR HWC uint8 -> RGB NCHW float32 in [0, 1] with a batch axis of 1."""
    blob = image_bgr[:, :, ::-1].astype(np.float32) / 255.0
    blob = np.transpose(blob, (2, 0, 1))[None, ...]
    return np.ascontiguousarray(blob)


def prepare_tensor(image_bgr: np.ndarray, cfg: LetterboxConfig = LetterboxConfig()) -> PreprocessResult:
    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    orig_h, orig_w = image_bgr.shape[:2]
    padded, scale, pad = letterbox(image_bgr, cfg)
    return PreprocessResult(blob=to_planar_tensor(padded), orig_size=(orig_w, orig_h), scale=scale, pad=pad)
