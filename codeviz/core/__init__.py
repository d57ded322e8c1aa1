"""
Core module: data models, exceptions and the pipeline stages.

Models (models.py):
    - RecognizedPattern / PatternNode / PatternConnection: idioms found in source
    - ComplexityMetrics / PerformanceMetrics: cost estimate and run timing
    - UserFriendlyError: a failure explained for the end user

Exceptions (exceptions.py):
    - CodevizError: Base exception for all codeviz errors
    - SyntaxAnalysisError, StageTimeoutError, PipelineBusyError, ...

Stages:
    - recognition/: pattern recognition engine and built-in matchers
    - diagram/: diagram generator, style table and layered layout
    - governor.py: admission control, stage budgets, diagram optimization
    - fallback.py: retry, lexical fallback and simplified diagrams
    - pipeline.py: the orchestrator
"""

from codeviz.core.exceptions import (
    AdmissionRejectedError,
    CodevizError,
    ConfigurationError,
    DiagramGenerationError,
    GrammarParseError,
    IntegrityError,
    PipelineBusyError,
    PipelineCancelledError,
    RecognitionError,
    StageTimeoutError,
    SyntaxAnalysisError,
)
from codeviz.core.models import (
    CodeLocation,
    ComplexityLevel,
    ComplexityMetrics,
    ConnectionKind,
    ErrorClass,
    ErrorContext,
    PatternComplexity,
    PatternConnection,
    PatternNode,
    PerformanceMetrics,
    PipelineStage,
    RecognizedPattern,
    Severity,
    SourceUnit,
    UserFriendlyError,
)

__all__ = [
    # Models
    "CodeLocation",
    "ComplexityLevel",
    "ComplexityMetrics",
    "ConnectionKind",
    "ErrorClass",
    "ErrorContext",
    "PatternComplexity",
    "PatternConnection",
    "PatternNode",
    "PerformanceMetrics",
    "PipelineStage",
    "RecognizedPattern",
    "Severity",
    "SourceUnit",
    "UserFriendlyError",
    # Exceptions
    "CodevizError",
    "ConfigurationError",
    "GrammarParseError",
    "SyntaxAnalysisError",
    "AdmissionRejectedError",
    "StageTimeoutError",
    "PipelineBusyError",
    "PipelineCancelledError",
    "RecognitionError",
    "DiagramGenerationError",
    "IntegrityError",
]
