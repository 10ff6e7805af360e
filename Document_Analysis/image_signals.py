from __future__ import annotations

from collections import Counter
from typing import List

import numpy as np


# Largest Sobel magnitude for 8-bit input with 3x3 kernels is about 1020.
_MAX_SOBEL = 1020.0


def _fit_inside(image: np.ndarray, max_side: int) -> np.ndarray:
    import cv2  # type: ignore

    h, w = image.shape[:2]
    r = min(1.0, max_side / max(h, w))
    if r >= 1.0:
        return image
    return cv2.resize(image, (max(1, int(round(w * r))), max(1, int(round(h * r)))), interpolation=cv2.INTER_AREA)


def edge_intensity(image_bgr: np.ndarray, max_side: int = 512) -> float:
    """
    Mean Sobel gradient magnitude of a downscaled grayscale copy, normalized to [0, 1].
    Higher means sharper / more textured.
    """
    import cv2  # type: ignore

    gray = cv2.cvtColor(_fit_inside(image_bgr, max_side), cv2.COLOR_BGR2GRAY)
    gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
    mean_grad = float(np.mean(np.hypot(gx, gy)))
    return min(mean_grad / _MAX_SOBEL, 1.0)


def clarity_for(edge: float) -> str:
    if edge < 0.01:
        return "low"
    if edge > 0.05:
        return "high"
    return "medium"


def readability_for(edge: float) -> float:
    return min(edge * 10, 1.0)


def dominant_colors(image_bgr: np.ndarray, top_k: int = 5, max_side: int = 64) -> List[str]:
    """
    Top-k colors of a small copy quantized to 16 levels per channel, as `rgb(r,g,b)`
    bin centers.
    """

    small = _fit_inside(image_bgr, max_side)
    rgb = small[:, :, ::-1].reshape(-1, 3).astype(np.uint8) >> 4
    bins = Counter(map(tuple, rgb.tolist()))
    # Ties broken by bin value so the output is deterministic.
    top = sorted(bins.items(), key=lambda kv: (-kv[1], kv[0]))[:top_k]
    return [f"rgb({r * 16 + 8},{g * 16 + 8},{b * 16 + 8})" for (r, g, b), _ in top]
