from __future__ import annotations

import json
import math
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

from doc_kit.errors import ConfigurationError


@dataclass(frozen=True)
class RefineTolerances:
    # Bar geometry, as fractions of the screenshot container.
    min_bar_width_frac: float = 0.80
    top_bottom_band_frac: float = 0.12
    max_bar_height_frac: float = 0.15
    # Main-type selection.
    class_margin: float = 0.07
    min_primary_area_frac: float = 0.20
    # Screenshot acceptance vs. Document/Receipt alternative.
    screenshot_min_cover_frac: float = 0.80
    screenshot_bar_bonus: float = 0.05
    screenshot_both_bars_bonus: float = 0.03
    screenshot_cover_bonus: float = 0.05
    alt_candidate_max_delta: float = 0.06

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(f"{f.name} must be a number")
            if not math.isfinite(value):
                raise ConfigurationError(f"{f.name} must be finite")
            if value < 0:
                raise ConfigurationError(f"{f.name} must be >= 0")
        for name in (
            "min_bar_width_frac",
            "top_bottom_band_frac",
            "max_bar_height_frac",
            "min_primary_area_frac",
            "screenshot_min_cover_frac",
        ):
            if getattr(self, name) > 1:
                raise ConfigurationError(f"{name} must be within [0, 1]")


@dataclass(frozen=True)
class RefineConfig:
    tol: RefineTolerances = RefineTolerances()
    # Gates every reclassification.
    allow_retype: bool = True
    # Append trace notes to `signals.diagnostics`.
    keep_diagnostics: bool = True


_TOP_LEVEL_KEYS = {"tol", "allow_retype", "keep_diagnostics"}


def refine_config_from_dict(payload: Dict[str, Any]) -> RefineConfig:
    """
    Build a config from a partial mapping; missing knobs keep their defaults.

        {"tol": {"class_margin": 0.1}, "allow_retype": false}
    """

    if not isinstance(payload, dict):
        raise ConfigurationError("Refine config must be a JSON object")
    unknown = sorted(set(payload.keys()) - _TOP_LEVEL_KEYS)
    if unknown:
        raise ConfigurationError(f"Unknown refine config keys: {unknown}")

    tol_payload = payload.get("tol", {})
    if not isinstance(tol_payload, dict):
        raise ConfigurationError("tol must be an object")
    allowed = {f.name for f in fields(RefineTolerances)}
    unknown = sorted(set(tol_payload.keys()) - allowed)
    if unknown:
        raise ConfigurationError(f"Unknown tolerance keys: {unknown}")

    flags: Dict[str, bool] = {}
    for key in ("allow_retype", "keep_diagnostics"):
        if key in payload:
            if not isinstance(payload[key], bool):
                raise ConfigurationError(f"{key} must be a boolean")
            flags[key] = payload[key]

    return RefineConfig(tol=RefineTolerances(**tol_payload), **flags)


def load_refine_config(path: Optional[Union[str, Path]]) -> RefineConfig:
    if path is None:
        return RefineConfig()
    p = Path(path)
    if not p.exists():
        raise ConfigurationError(f"Refine config not found: {p}")
    try:
        payload = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid refine config JSON: {p}") from exc
    return refine_config_from_dict(payload)
