"""Error taxonomy for the preprocessing and windowing pipeline."""

from typing import Any


class PipelineError(Exception):
    """Base class for every error raised by a pipeline step.

    Args:
        message: Human readable description
        transform: Name of the step that failed (if known)
        field: Name of the field involved (if any)
    """

    def __init__(self, message: str, transform: str | None = None, field: str | None = None):
        self.transform = transform
        self.field = field
        prefix = f"[{transform}] " if transform else ""
        super().__init__(f"{prefix}{message}")


class MissingFieldError(PipelineError):
    """A required input field is absent from the record."""

    def __init__(self, field: str, transform: str | None = None):
        super().__init__(f"required field '{field}' is missing", transform=transform, field=field)


class ShapeMismatchError(PipelineError):
    """A field's time length disagrees with the length the step expects."""

    def __init__(
        self,
        field: str,
        expected: Any,
        actual: Any,
        transform: str | None = None,
    ):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"field '{field}' has time length {actual}, expected {expected}",
            transform=transform,
            field=field,
        )


class InvalidConfigurationError(PipelineError, ValueError):
    """Chain or sampler configured with contradictory or out-of-range options."""


class InsufficientHistoryError(PipelineError):
    """Prediction window needs more history than the series holds and padding is disabled."""


class InvalidQuantileError(ValueError):
    """Quantile level outside the open interval (0, 1)."""

    def __init__(self, q: Any):
        self.q = q
        super().__init__(f"quantile level must be in (0, 1), got {q!r}")
