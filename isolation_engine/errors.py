"""
Error types raised by the modal analysis engine.

Validation problems are always raised before any matrix work starts, so a
caller can tell "fix your input" apart from "the numbers did not solve".
"""

COMPUTATION_ERROR_PREFIX = "Error computing natural frequencies: "


class ModalAnalysisError(ValueError):
    """Base class for every error the engine raises."""


class InvalidInput(ModalAnalysisError):
    """Missing, non-numeric or out-of-range input parameters."""


class ComputationError(ModalAnalysisError):
    """The linear algebra failed for the given (valid) parameters."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(COMPUTATION_ERROR_PREFIX + reason)


class SingularMatrix(ComputationError):
    """The mass matrix could not be inverted."""
