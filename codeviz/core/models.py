"""Data models for Codeviz."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from codeviz.core.exceptions import IntegrityError


class Severity(Enum):
    """How badly a failure affects the user."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ComplexityLevel(Enum):
    """Coarse size/complexity bucket for a source snippet."""

    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"
    VERY_COMPLEX = "very-complex"


class PatternComplexity(Enum):
    """Complexity of a single recognized pattern."""

    SIMPLE = "simple"
    COMPLEX = "complex"


class ConnectionKind(Enum):
    """Semantics of a connection between two pattern nodes."""

    DATA_FLOW = "data-flow"
    CONTROL_FLOW = "control-flow"
    EVENT = "event"
    ERROR_PATH = "error-path"
    SUCCESS_PATH = "success-path"


class ErrorClass(Enum):
    """Failure taxonomy used for retry and reporting decisions."""

    SYNTAX = "syntax"
    ADMISSION_REJECTED = "admission-rejected"
    TIMEOUT = "timeout"
    TRANSIENT = "transient"
    CANCELLED = "cancelled"
    BUSY = "busy"
    OUT_OF_MEMORY = "out-of-memory"
    TYPE = "type"


class PipelineStage(Enum):
    """Orchestrator states."""

    IDLE = "idle"
    PARSING = "parsing"
    PATTERN_RECOGNITION = "pattern-recognition"
    VISUALIZATION = "visualization"
    OPTIMIZATION = "optimization"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CodeLocation:
    """A source span: character offsets, 1-based lines, 0-based columns."""

    start: int
    end: int
    start_line: int
    end_line: int
    start_column: int
    end_column: int

    @classmethod
    def empty(cls) -> CodeLocation:
        """Location used for synthesized nodes with no source counterpart."""
        return cls(start=0, end=0, start_line=1, end_line=1, start_column=0, end_column=0)

    def to_dict(self) -> dict[str, int]:
        return {
            "start": self.start,
            "end": self.end,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "start_column": self.start_column,
            "end_column": self.end_column,
        }


@dataclass(frozen=True)
class SourceUnit:
    """Raw source text plus the language it was detected as."""

    text: str
    language: str


@dataclass
class PatternNode:
    """One participant in a recognized pattern."""

    id: str
    type: str
    label: str
    location: CodeLocation
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class PatternConnection:
    """A labeled link between two nodes of the same pattern."""

    id: str
    source_id: str
    target_id: str
    kind: ConnectionKind
    label: str
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class RecognizedPattern:
    """A scored, user-facing idiom found in the source."""

    id: str
    type: str
    confidence: float
    complexity: PatternComplexity
    location: CodeLocation
    nodes: list[PatternNode]
    connections: list[PatternConnection]
    variables: list[str] = field(default_factory=list)
    functions: list[str] = field(default_factory=list)
    context: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        node_ids = {node.id for node in self.nodes}
        for connection in self.connections:
            if connection.source_id not in node_ids or connection.target_id not in node_ids:
                raise IntegrityError(
                    f"Connection {connection.id} in {self.id} references an unknown node"
                )

    @property
    def root_node(self) -> PatternNode | None:
        """The node the pattern was anchored on, if any."""
        root_id = self.metadata.get("root_node_id")
        for node in self.nodes:
            if node.id == root_id:
                return node
        return self.nodes[0] if self.nodes else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "confidence": round(self.confidence, 4),
            "complexity": self.complexity.value,
            "location": self.location.to_dict(),
            "variables": list(self.variables),
            "functions": list(self.functions),
            "nodes": [
                {"id": n.id, "type": n.type, "label": n.label, "location": n.location.to_dict()}
                for n in self.nodes
            ],
            "connections": [
                {
                    "id": c.id,
                    "source": c.source_id,
                    "target": c.target_id,
                    "kind": c.kind.value,
                    "label": c.label,
                }
                for c in self.connections
            ],
        }


@dataclass(frozen=True)
class ComplexityMetrics:
    """Cheap lexical measurements used for admission and budgeting."""

    line_count: int
    function_count: int
    variable_count: int
    max_nesting_depth: int
    import_count: int
    hook_count: int
    estimated_processing_ms: int
    level: ComplexityLevel

    def to_dict(self) -> dict[str, Any]:
        return {
            "line_count": self.line_count,
            "function_count": self.function_count,
            "variable_count": self.variable_count,
            "max_nesting_depth": self.max_nesting_depth,
            "import_count": self.import_count,
            "hook_count": self.hook_count,
            "estimated_processing_ms": self.estimated_processing_ms,
            "level": self.level.value,
        }


@dataclass
class PerformanceMetrics:
    """Timing for one pipeline run."""

    complexity: ComplexityMetrics
    started_at: float = field(default_factory=time.perf_counter)
    ended_at: float | None = None
    stage_times: dict[str, float] = field(default_factory=dict)

    @property
    def duration(self) -> float | None:
        """Run duration in seconds, once finished."""
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at

    def record_stage(self, stage: str, elapsed: float) -> None:
        self.stage_times[stage] = elapsed

    def finish(self) -> None:
        if self.ended_at is None:
            self.ended_at = time.perf_counter()

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration_s": self.duration,
            "stage_times_s": dict(self.stage_times),
            "complexity": self.complexity.to_dict(),
        }


@dataclass(frozen=True)
class ErrorContext:
    """Where a failure happened."""

    component: str
    operation: str
    line: int | None = None
    column: int | None = None


@dataclass(frozen=True)
class UserFriendlyError:
    """A failure explained for the end user.

    The technical error is kept for diagnostics but is only serialized when
    explicitly requested.
    """

    code: str
    message: str
    description: str
    suggestions: tuple[str, ...]
    severity: Severity
    context: ErrorContext
    error_class: ErrorClass = ErrorClass.TRANSIENT
    technical_error: BaseException | None = field(default=None, repr=False, compare=False)

    def to_dict(self, include_technical: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "description": self.description,
            "suggestions": list(self.suggestions),
            "severity": self.severity.value,
            "class": self.error_class.value,
            "context": {
                "component": self.context.component,
                "operation": self.context.operation,
                "line": self.context.line,
                "column": self.context.column,
            },
        }
        if include_technical and self.technical_error is not None:
            data["technical_error"] = repr(self.technical_error)
        return data
