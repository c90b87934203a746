"""Domain-specific errors for devconf."""

from __future__ import annotations


class DevconfError(Exception):
    """Base error for devconf."""


class ConfigValidationError(DevconfError):
    """Raised when a device record does not conform to its format or semantics."""

    def __init__(self, source: str, message: str, *, field: str | None = None) -> None:
        self.source = source
        self.field = field
        self.description = message
        where = f" ({field})" if field else ""
        super().__init__(f"{source}{where}: {message}")


class PredicateEvaluationError(ConfigValidationError):
    """Raised when a variant condition cannot be evaluated."""

    def __init__(self, source: str, condition: str, message: str, *, field: str | None = None) -> None:
        self.condition = condition
        super().__init__(source, f'Invalid condition "{condition}": {message}', field=field)


class IndexCorruptError(DevconfError):
    """Raised when the persisted index cannot be read or has an unexpected shape."""


class CorpusIOError(DevconfError):
    """Raised when the device record tree or index file cannot be accessed."""
