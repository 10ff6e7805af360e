"""
OpenCV-backed image codec: decode from path or bytes, normalize to 3-channel BGR.
"""

from __future__ import annotations

from pathlib import Path
from typing import Tuple, Union

import numpy as np

from .result import ImageMeta


ImageSource = Union[str, Path, bytes, bytearray, np.ndarray]

VALID_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".tiff", ".tif", ".bmp")

_SIGNATURES = (
    (b"\xff\xd8\xff", "jpeg"),
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"RIFF", "webp"),
    (b"II*\x00", "tiff"),
    (b"MM\x00*", "tiff"),
    (b"BM", "bmp"),
)


def _cv2():
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for image decoding. Install with `pip install opencv-python`.") from e
    return cv2


def is_valid_image_file(filename: Union[str, Path]) -> bool:
    return Path(filename).suffix.lower() in VALID_EXTENSIONS


def sniff_format(data: bytes) -> str:
    for magic, name in _SIGNATURES:
        if data.startswith(magic):
            return name
    return "unknown"


def to_bgr(image: np.ndarray) -> np.ndarray:
    """Drop alpha / expand grayscale so downstream code always sees (H, W, 3) uint8."""
    cv2 = _cv2()
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    if image.ndim == 3 and image.shape[2] == 1:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.ndim == 3 and image.shape[2] == 3:
        return image
    raise ValueError(f"Unsupported image shape {image.shape}")


def read_image(src: ImageSource) -> Tuple[np.ndarray, ImageMeta]:
    """
    Decode `src` (path, encoded bytes, or an already decoded array) into BGR pixels
    plus basic metadata. Encoded images come out upright: the EXIF orientation tag
    is applied before width and height are measured, so `ImageMeta` reports the
    displayed size. `channels` is the stored channel count (1, 3 or 4).
    """

    cv2 = _cv2()
    if isinstance(src, np.ndarray):
        channels = 1 if src.ndim == 2 else int(src.shape[2])
        image = to_bgr(src)
        fmt = "raw"
    else:
        if isinstance(src, (bytes, bytearray)):
            data = bytes(src)
        else:
            path = Path(src)
            if not path.exists():
                raise FileNotFoundError(f"Could not read image at path: {path}")
            data = path.read_bytes()
        buf = np.frombuffer(data, dtype=np.uint8)
        # IMREAD_COLOR applies the EXIF orientation tag; IMREAD_UNCHANGED does not.
        decoded = cv2.imdecode(buf, cv2.IMREAD_COLOR | cv2.IMREAD_ANYDEPTH)
        if decoded is None:
            raise ValueError("Could not decode image data")
        raw = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
        channels = 3 if raw is None else (1 if raw.ndim == 2 else int(raw.shape[2]))
        if decoded.dtype != np.uint8:
            decoded = cv2.convertScaleAbs(decoded, alpha=255.0 / max(float(decoded.max()), 1.0))
        image = to_bgr(decoded)
        fmt = sniff_format(data)

    h, w = image.shape[:2]
    if w == 0 or h == 0:
        raise ValueError(f"Invalid image size: {w}x{h}")
    return image, ImageMeta(width=int(w), height=int(h), format=fmt, channels=channels)
