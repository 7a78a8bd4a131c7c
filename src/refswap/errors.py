"""Error kinds raised and recorded by the swap engine."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Which stage of the swap lifecycle failed."""

    ESTIMATION = "estimation"
    SUBMISSION = "submission"
    RESOLUTION = "resolution"


class SwapEngineError(Exception):
    """Base class for swap engine errors."""

    kind: ErrorKind

    def __init__(self, message: str = "", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None and not self.message:
            return f"{type(self.cause).__name__}: {self.cause}"
        return self.message


class EstimationError(SwapEngineError):
    """No route, insufficient liquidity or a degenerate amount."""

    kind = ErrorKind.ESTIMATION


class SubmissionError(SwapEngineError):
    """Transaction rejected or failed to broadcast."""

    kind = ErrorKind.SUBMISSION


class ResolutionError(SwapEngineError):
    """Transaction lookup failed."""

    kind = ErrorKind.RESOLUTION
