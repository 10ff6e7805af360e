from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Union

from .errors import ConfigurationError


PathLike = Union[str, Path]

CLASSES_FILENAME = "classes.txt"


def load_class_names(path: PathLike) -> List[str]:
    """
    Load the detector's class table from a plain-text file: one label per line,
    line order is the class id, blank lines are ignored.

        Receipt
        Document
        Screenshot
        Top status bar
        Bottom nav bar
    """

    p = Path(path)
    if not p.exists():
        raise ConfigurationError(f"Class names file not found: {p}")

    names = [line.strip() for line in p.read_text(encoding="utf-8").splitlines()]
    names = [n for n in names if n]
    if not names:
        raise ConfigurationError(f"Class names file is empty: {p}")
    return names


def resolve_class_names(model_path: PathLike, class_names: Optional[Sequence[str]] = None) -> List[str]:
    """
    Use `class_names` when given, else `classes.txt` next to the model file.
    """

    if class_names is not None:
        names = [str(n) for n in class_names]
        if not names:
            raise ConfigurationError("class_names must not be empty")
        return names
    return load_class_names(Path(model_path).parent / CLASSES_FILENAME)
