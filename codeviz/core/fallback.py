"""Failure classification, bounded retry and degraded diagrams."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from codeviz.config import PipelineConfig
from codeviz.core.diagram import DiagramData, DiagramGenerator, LayoutConfig, VisualEdge, VisualNode
from codeviz.core.diagram.models import Position
from codeviz.core.diagram.styles import edge_explanation, edge_style, explanation_for, node_style
from codeviz.core.exceptions import (
    AdmissionRejectedError,
    GrammarParseError,
    PipelineBusyError,
    PipelineCancelledError,
    StageTimeoutError,
    SyntaxAnalysisError,
)
from codeviz.core.models import (
    CodeLocation,
    ConnectionKind,
    ErrorClass,
    ErrorContext,
    PatternComplexity,
    PatternConnection,
    PatternNode,
    RecognizedPattern,
    Severity,
    UserFriendlyError,
)
from codeviz.languages.models import ParseIssue

logger = logging.getLogger(__name__)

T = TypeVar("T")

SYNTAX_ANALYZER = "syntax-analyzer"
PATTERN_RECOGNITION = "pattern-recognition"
DIAGRAM_GENERATOR = "diagram-generator"
RESOURCE_GOVERNOR = "resource-governor"
PIPELINE = "pipeline"

MAX_SUGGESTIONS = 4

_LEXICAL_FUNCTIONS = re.compile(r"function\s+(\w+)|const\s+(\w+)\s*=\s*\(")
_LEXICAL_VARIABLES = re.compile(r"(?:let|const|var)\s+(\w+)")

BASIC_STRUCTURE_WARNING = (
    "Showing basic code structure. Some advanced patterns may not be visualized."
)
NOTHING_FOUND_WARNING = (
    "No recognizable code elements found. "
    "Try adding functions, variables, or control structures."
)
SIMPLIFIED_WARNING = "Showing a simplified diagram. Some visual features are unavailable."

SIMPLIFIED_LABELS = {
    "api-call": "API Call",
    "state-action": "Counter",
    "database": "Database",
    "error-handling": "Error Handler",
    "react-component": "Component",
    "component": "Component",
}
_SIMPLIFIED_TYPES = {
    "api-call": "api",
    "state-action": "counter",
    "database": "database",
    "error-handling": "error",
}

REMOVED_FEATURES = {
    "node-generation": ["Advanced node types", "Custom node styling", "Node metadata"],
    "edge-generation": ["Complex connections", "Edge animations", "Connection metadata"],
    "layout": ["Advanced positioning", "Automatic layout", "Node clustering"],
    "rendering": ["Interactive features", "Animations", "Advanced styling"],
}

_DEFAULT_SUGGESTIONS = ["Try again in a moment", "Try with smaller or simpler code"]

_CLASS_MESSAGES = {
    ErrorClass.TIMEOUT: (
        "Operation timed out",
        Severity.MEDIUM,
        [
            "Try with smaller or simpler code",
            "Split the code into smaller parts",
            "Try again in a moment",
        ],
    ),
    ErrorClass.OUT_OF_MEMORY: (
        "Not enough memory to complete operation",
        Severity.HIGH,
        [
            "Try with smaller code samples",
            "Close other applications to free up memory",
            "Try again in a moment",
        ],
    ),
    ErrorClass.TYPE: (
        "Data type error occurred",
        Severity.MEDIUM,
        ["Check your code for type-related issues", "Try with different code structure"],
    ),
    ErrorClass.BUSY: (
        "Another visualization is already running",
        Severity.LOW,
        [
            "Wait for the current visualization to finish",
            "Cancel the running visualization and try again",
        ],
    ),
    ErrorClass.CANCELLED: (
        "Visualization was cancelled",
        Severity.LOW,
        ["Start the visualization again when ready", "Try with smaller or simpler code"],
    ),
}


@dataclass
class FallbackResult:
    """A degraded diagram and what it is missing."""

    diagram: DiagramData
    warnings: list[str] = field(default_factory=list)
    removed_features: list[str] = field(default_factory=list)


def error_code(component: str, error_class: ErrorClass) -> str:
    """``<COMPONENT>_<CLASS>_ERROR``, e.g. PATTERN_RECOGNITION_TIMEOUT_ERROR."""
    parts = (component, error_class.value, "error")
    return "_".join(part.replace("-", "_").upper() for part in parts)


def _capped(suggestions: list[str]) -> tuple[str, ...]:
    result: list[str] = []
    for suggestion in suggestions:
        if suggestion and suggestion not in result:
            result.append(suggestion)
    for suggestion in _DEFAULT_SUGGESTIONS:
        if len(result) >= 2:
            break
        if suggestion not in result:
            result.append(suggestion)
    return tuple(result[:MAX_SUGGESTIONS])


class ErrorHandler:
    """Classifies failures, retries transient ones, builds fallback diagrams."""

    def __init__(
        self,
        config: PipelineConfig | None = None,
        generator: DiagramGenerator | None = None,
    ) -> None:
        self._config = config or PipelineConfig()
        self._generator = generator or DiagramGenerator(
            LayoutConfig(
                node_spacing=self._config.node_spacing,
                level_spacing=self._config.level_spacing,
            )
        )

    def classify(self, error: BaseException) -> ErrorClass:
        if isinstance(error, (GrammarParseError, SyntaxAnalysisError, SyntaxError)):
            return ErrorClass.SYNTAX
        if isinstance(error, AdmissionRejectedError):
            return ErrorClass.ADMISSION_REJECTED
        if isinstance(error, (StageTimeoutError, asyncio.TimeoutError)):
            return ErrorClass.TIMEOUT
        if isinstance(error, (PipelineCancelledError, asyncio.CancelledError)):
            return ErrorClass.CANCELLED
        if isinstance(error, PipelineBusyError):
            return ErrorClass.BUSY
        if isinstance(error, MemoryError):
            return ErrorClass.OUT_OF_MEMORY
        if isinstance(error, TypeError):
            return ErrorClass.TYPE
        return ErrorClass.TRANSIENT

    def is_retryable(self, error: BaseException, component: str) -> bool:
        """Transient failures retry; so do type errors outside the syntax analyzer."""
        error_class = self.classify(error)
        if error_class is ErrorClass.TYPE:
            return component != SYNTAX_ANALYZER
        return error_class in (ErrorClass.TRANSIENT, ErrorClass.TIMEOUT)

    async def retry_stage(
        self,
        component: str,
        stage: Callable[[float], Awaitable[T]],
        budget_s: float,
    ) -> T:
        """Run ``stage(budget)`` with bounded exponential-backoff retry.

        A timeout is retried once with half the budget; other retryable
        failures are retried up to the configured attempt count.
        """
        budget = budget_s
        timeouts = 0

        def should_retry(error: BaseException) -> bool:
            nonlocal budget, timeouts
            if not self.is_retryable(error, component):
                return False
            if self.classify(error) is ErrorClass.TIMEOUT:
                if timeouts:
                    return False
                timeouts += 1
                budget /= 2
            return True

        def log_retry(retry_state: RetryCallState) -> None:
            outcome = retry_state.outcome
            logger.warning(
                "Retrying %s after attempt %d failed: %s",
                component,
                retry_state.attempt_number,
                outcome.exception() if outcome is not None else "unknown error",
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._config.retry_attempts),
            wait=wait_exponential(
                multiplier=self._config.retry_base_delay_s,
                max=self._config.retry_max_delay_s,
            ),
            retry=retry_if_exception(should_retry),
            before_sleep=log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await stage(budget)
        return result

    def to_user_error(
        self,
        error: BaseException,
        component: str,
        operation: str,
    ) -> UserFriendlyError:
        """Explain a terminal failure without exposing the technical error."""
        error_class = self.classify(error)
        if isinstance(error, SyntaxAnalysisError) and error.issues:
            return self.parse_error_to_user_error(error.issues[0])

        if error_class is ErrorClass.ADMISSION_REJECTED:
            message = str(error)
            severity = Severity.MEDIUM
            suggestions = list(getattr(error, "suggestions", []))
        elif error_class is ErrorClass.SYNTAX:
            message = "Code has syntax errors"
            severity = Severity.HIGH
            suggestions = [
                "Check the syntax around the error location",
                "Try using a code formatter to identify structural issues",
            ]
        elif error_class in _CLASS_MESSAGES:
            message, severity, suggestions = _CLASS_MESSAGES[error_class]
        else:
            message = f"Error in {component}"
            severity = Severity.MEDIUM
            suggestions = ["Try again in a moment", "Try with simpler code"]

        return UserFriendlyError(
            code=error_code(component, error_class),
            message=message,
            description=f"{message} while performing {operation} in {component}",
            suggestions=_capped(suggestions),
            severity=severity,
            context=ErrorContext(
                component=component,
                operation=operation,
                line=getattr(error, "line", None),
                column=getattr(error, "column", None),
            ),
            error_class=error_class,
            technical_error=error,
        )

    def parse_error_to_user_error(self, issue: ParseIssue) -> UserFriendlyError:
        suggestions = [issue.suggestion] if issue.suggestion else []
        if "Unexpected" in issue.message:
            suggestions += [
                "Check for missing or extra punctuation marks",
                "Verify that all brackets and parentheses are properly closed",
            ]
        elif "Unterminated" in issue.message:
            suggestions += [
                "Check for unclosed strings or comments",
                "Make sure all quotes are properly paired",
            ]
        else:
            suggestions += [
                "Check the syntax around the error location",
                "Try using a code formatter to identify structural issues",
            ]
        suggestions += [
            "Try simplifying the code to isolate the issue",
            "Use a code editor with syntax highlighting to spot errors",
        ]

        if issue.kind == "syntax":
            message, severity = "Code has syntax errors", Severity.HIGH
        elif issue.kind == "semantic":
            message, severity = "Code structure issue detected", Severity.MEDIUM
        else:
            message, severity = "Code quality warning", Severity.LOW

        return UserFriendlyError(
            code=error_code(SYNTAX_ANALYZER, ErrorClass.SYNTAX),
            message=message,
            description=issue.message,
            suggestions=_capped(suggestions),
            severity=severity,
            context=ErrorContext(
                component=SYNTAX_ANALYZER,
                operation="parse",
                line=issue.line,
                column=issue.column,
            ),
            error_class=ErrorClass.SYNTAX,
        )

    def lexical_fallback(self, text: str) -> FallbackResult:
        """Minimal diagram of function and variable names found by regex."""
        functions: list[str] = []
        for found in _LEXICAL_FUNCTIONS.finditer(text):
            name = found.group(1) or found.group(2)
            if name not in functions:
                functions.append(name)
        variables = [
            name
            for name in dict.fromkeys(_LEXICAL_VARIABLES.findall(text))
            if name not in functions
        ]
        if not functions and not variables:
            return FallbackResult(diagram=DiagramData.empty(), warnings=[NOTHING_FOUND_WARNING])

        pattern_id = "fallback-basic-structure"
        nodes = [
            PatternNode(
                id=f"{pattern_id}-node-{index}",
                type=kind,
                label=name,
                location=CodeLocation.empty(),
                properties={"is_fallback": True},
            )
            for index, (kind, name) in enumerate(
                [("function", f) for f in functions] + [("variable", v) for v in variables]
            )
        ]
        connections = [
            PatternConnection(
                id=f"{pattern_id}-conn-{index}",
                source_id=a.id,
                target_id=b.id,
                kind=ConnectionKind.CONTROL_FLOW,
                label="relates to",
            )
            for index, (a, b) in enumerate(zip(nodes, nodes[1:]))
        ]
        pattern = RecognizedPattern(
            id=pattern_id,
            type="basic-structure",
            confidence=0.5,
            complexity=PatternComplexity.SIMPLE,
            location=CodeLocation.empty(),
            nodes=nodes,
            connections=connections,
            variables=variables,
            functions=functions,
            metadata={"root_node_id": nodes[0].id},
        )
        logger.warning("Using lexical fallback with %d elements", len(nodes))
        return FallbackResult(
            diagram=self._generator.generate([pattern]),
            warnings=[BASIC_STRUCTURE_WARNING],
        )

    def simplified_diagram(
        self, patterns: list[RecognizedPattern], stage: str = "node-generation"
    ) -> FallbackResult:
        """One node per pattern in a plain chain."""
        removed = list(REMOVED_FEATURES.get(stage, REMOVED_FEATURES["rendering"]))
        spacing = self._config.level_spacing
        nodes = []
        for index, pattern in enumerate(patterns):
            subtype = _SIMPLIFIED_TYPES.get(pattern.type, "component")
            nodes.append(
                VisualNode(
                    id=f"simple-{pattern.id}",
                    type=subtype,
                    position=Position(x=0, y=index * spacing),
                    label=SIMPLIFIED_LABELS.get(pattern.type, "Code Element"),
                    explanation=explanation_for(subtype),
                    style=node_style(subtype),
                    pattern_id=pattern.id,
                    pattern_type=pattern.type,
                    location=pattern.location,
                )
            )
        edges = [
            VisualEdge(
                id=f"simple-edge-{index}",
                source=a.id,
                target=b.id,
                kind=ConnectionKind.CONTROL_FLOW,
                label="flows to",
                explanation=edge_explanation(ConnectionKind.CONTROL_FLOW),
                style=edge_style(ConnectionKind.CONTROL_FLOW),
                pattern_id=a.pattern_id,
                pattern_type=a.pattern_type,
                location=a.location,
            )
            for index, (a, b) in enumerate(zip(nodes, nodes[1:]))
        ]
        logger.warning("Using simplified diagram for %d patterns", len(patterns))
        return FallbackResult(
            diagram=DiagramData(nodes=tuple(nodes), edges=tuple(edges), layout=self._generator.layout),
            warnings=[SIMPLIFIED_WARNING],
            removed_features=removed,
        )
