class ConfigurationError(ValueError):
    """Fatal setup problem: empty class table, missing model, bad tolerances."""


class ShapeMismatch(ValueError):
    """Inference output matches neither `[1, 4+C, N]` nor `[1, N, 4+C]`."""
