"""
Exceptions raised by the benchmark harness.
"""

from typing import Iterable


class BenchmarkError(Exception):
    """Base exception for harness errors."""
    pass


class ConfigurationError(BenchmarkError):
    """Raised when a run is requested with unknown names or invalid counts."""

    def __init__(self, message: str, valid: Iterable[str] = ()):
        self.valid = list(valid)
        if self.valid:
            message = f"{message}. Valid: {', '.join(self.valid)}"
        super().__init__(message)


class CaseSetupError(BenchmarkError):
    """Raised when a case's setup fails; the run for that case is void."""

    def __init__(self, strategy: str, case: str, cause: BaseException):
        self.strategy = strategy
        self.case = case
        self.cause = cause
        super().__init__(f"Setup of case '{case}' failed for strategy '{strategy}': {cause!r}")
