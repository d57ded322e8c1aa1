"""Codeviz custom exceptions."""

from __future__ import annotations


class CodevizError(Exception):
    """Base exception for Codeviz errors."""


class ConfigurationError(CodevizError):
    """A configuration value is out of range or malformed."""


class GrammarParseError(CodevizError):
    """The parser backend rejected the text under one grammar."""

    def __init__(self, message: str, line: int = 1, column: int = 1) -> None:
        super().__init__(message)
        self.line = line
        self.column = column


class SyntaxAnalysisError(CodevizError):
    """Source text could not be turned into a syntax tree."""

    def __init__(self, message: str, issues: list | None = None) -> None:
        super().__init__(message)
        self.issues = issues or []


class AdmissionRejectedError(CodevizError):
    """Input is too large or complex to be processed at all."""

    def __init__(self, message: str, warnings: list[str], suggestions: list[str]) -> None:
        super().__init__(message)
        self.warnings = warnings
        self.suggestions = suggestions


class StageTimeoutError(CodevizError):
    """A pipeline stage did not finish within its budget."""

    def __init__(self, stage: str, budget_s: float) -> None:
        super().__init__(f"Stage '{stage}' timed out after {budget_s:.2f}s")
        self.stage = stage
        self.budget_s = budget_s


class PipelineBusyError(CodevizError):
    """Another run is already active on this pipeline."""


class PipelineCancelledError(CodevizError):
    """The active run observed a cancellation request."""


class RecognitionError(CodevizError):
    """Pattern recognition could not complete."""


class DiagramGenerationError(CodevizError):
    """Diagram generation could not complete."""


class IntegrityError(CodevizError):
    """A connection or edge references a node id that does not exist."""
