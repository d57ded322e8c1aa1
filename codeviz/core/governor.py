"""Resource governor: admission control, stage budgets, diagram optimization."""

from __future__ import annotations

import asyncio
import functools
import logging
import re
from collections.abc import Callable
from concurrent.futures import Executor
from dataclasses import dataclass, field, replace
from typing import Any, TypeVar

from codeviz.config import PipelineConfig
from codeviz.core.diagram.models import DiagramData
from codeviz.core.exceptions import StageTimeoutError
from codeviz.core.models import ComplexityLevel, ComplexityMetrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FUNCTIONS = re.compile(
    r"(?:function\s+\w+"
    r"|const\s+\w+\s*=\s*(?:\([^)]*\)\s*=>|\([^)]*\)\s*=>\s*{)"
    r"|class\s+\w+\s*{[^}]*\w+\s*\([^)]*\)\s*{)"
)
_VARIABLES = re.compile(r"(?:let|const|var)\s+\w+")
_IMPORTS = re.compile(r"import\s+.*?from\s+['\"][^'\"]+['\"]")
_HOOKS = re.compile(r"use[A-Z]\w*")

# level -> (lines, functions, nesting, hooks) lower bounds, checked in order
_LEVEL_THRESHOLDS = [
    (ComplexityLevel.VERY_COMPLEX, (500, 20, 6, 10)),
    (ComplexityLevel.COMPLEX, (200, 10, 4, 5)),
    (ComplexityLevel.MEDIUM, (50, 5, 2, 2)),
]
ESTIMATED_MS = {
    ComplexityLevel.SIMPLE: 1000,
    ComplexityLevel.MEDIUM: 3000,
    ComplexityLevel.COMPLEX: 8000,
    ComplexityLevel.VERY_COMPLEX: 15000,
}
DEEP_NESTING = 8

STAGES = ("parse", "recognition", "generation")


def max_brace_depth(text: str) -> int:
    depth = deepest = 0
    for char in text:
        if char == "{":
            depth += 1
            deepest = max(deepest, depth)
        elif char == "}":
            depth = max(depth - 1, 0)
    return deepest


def complexity_level(lines: int, functions: int, nesting: int, hooks: int) -> ComplexityLevel:
    for level, (max_lines, max_functions, max_nesting, max_hooks) in _LEVEL_THRESHOLDS:
        if (
            lines > max_lines
            or functions > max_functions
            or nesting > max_nesting
            or hooks > max_hooks
        ):
            return level
    return ComplexityLevel.SIMPLE


@dataclass
class AdmissionDecision:
    """Whether to run the pipeline, plus advice surfaced either way."""

    should_process: bool
    complexity: ComplexityMetrics
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "should_process": self.should_process,
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
            "complexity": self.complexity.to_dict(),
        }


@dataclass
class OptimizationResult:
    diagram: DiagramData
    optimizations: list[str] = field(default_factory=list)


class ResourceGovernor:
    """Bounds the work a pipeline run may do."""

    def __init__(self, config: PipelineConfig | None = None) -> None:
        self._config = config or PipelineConfig()

    @property
    def config(self) -> PipelineConfig:
        return self._config

    def analyze_complexity(self, text: str) -> ComplexityMetrics:
        """Cheap lexical measurements. Pure and synchronous."""
        lines = sum(1 for line in text.split("\n") if line.strip())
        functions = len(_FUNCTIONS.findall(text))
        nesting = max_brace_depth(text)
        hooks = len(_HOOKS.findall(text))
        level = complexity_level(lines, functions, nesting, hooks)
        return ComplexityMetrics(
            line_count=lines,
            function_count=functions,
            variable_count=len(_VARIABLES.findall(text)),
            max_nesting_depth=nesting,
            import_count=len(_IMPORTS.findall(text)),
            hook_count=hooks,
            estimated_processing_ms=ESTIMATED_MS[level],
            level=level,
        )

    def should_process(self, metrics: ComplexityMetrics) -> AdmissionDecision:
        limit = self._config.max_code_lines
        if metrics.line_count > limit:
            return AdmissionDecision(
                should_process=False,
                complexity=metrics,
                warnings=[f"Code is too large ({metrics.line_count} lines, max {limit})"],
                suggestions=[
                    "Try splitting the code into smaller parts",
                    "Focus on key functionality for visualization",
                ],
            )

        decision = AdmissionDecision(should_process=True, complexity=metrics)
        if metrics.level is ComplexityLevel.VERY_COMPLEX:
            decision.warnings.append("Very complex code detected - processing may be slow")
            decision.suggestions.extend(
                [
                    "Consider simplifying the code structure",
                    "Remove unnecessary nested functions or conditions",
                ]
            )
        elif metrics.level is ComplexityLevel.COMPLEX:
            decision.warnings.append("Complex code detected - processing may take longer")
            decision.suggestions.append("Large code files may have simplified visualizations")

        if metrics.max_nesting_depth > DEEP_NESTING:
            decision.warnings.append("Deeply nested code may be simplified in visualization")
            decision.suggestions.append("Consider reducing nesting levels for better visualization")
        return decision

    def stage_budget(self, stage: str, metrics: ComplexityMetrics) -> float:
        """Deadline in seconds: a share of the estimate, capped and floored."""
        if stage not in STAGES:
            raise ValueError(f"Unknown stage: {stage}")
        fraction = getattr(self._config, f"{stage}_budget_fraction")
        cap = getattr(self._config, f"{stage}_budget_cap_s")
        budget = min(metrics.estimated_processing_ms / 1000 * fraction, cap)
        return max(budget, self._config.min_stage_budget_s)

    def run_time_left(self, elapsed_s: float) -> float:
        """Seconds remaining of the whole-run limit after ``elapsed_s``."""
        return max(self._config.max_processing_time_s - elapsed_s, 0.0)

    async def run_with_deadline(
        self,
        stage: str,
        func: Callable[..., T],
        *args: Any,
        budget_s: float,
        executor: Executor | None = None,
    ) -> T:
        """Run a synchronous stage in ``executor``, abandoning it past the deadline.

        The worker thread is not interrupted; its result is discarded.
        """
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(executor, functools.partial(func, *args))
        try:
            return await asyncio.wait_for(future, timeout=budget_s)
        except asyncio.TimeoutError as e:
            logger.warning("Stage %s exceeded its %.2fs budget", stage, budget_s)
            raise StageTimeoutError(stage, budget_s) from e

    def optimize_diagram(self, diagram: DiagramData) -> OptimizationResult:
        """Cap node count and shorten long labels. Applying it twice changes nothing."""
        notes: list[str] = []
        nodes = list(diagram.nodes)
        edges = list(diagram.edges)

        limit = self._config.max_diagram_nodes
        if len(nodes) > limit:
            notes.append(f"Reduced nodes from {len(nodes)} to {limit} for better performance")
            nodes = nodes[:limit]
            kept = {node.id for node in nodes}
            remaining = [e for e in edges if e.source in kept and e.target in kept]
            if len(remaining) < len(edges):
                notes.append(f"Removed {len(edges) - len(remaining)} connections to hidden nodes")
            edges = remaining

        max_length = self._config.max_label_length
        shortened = 0
        for index, node in enumerate(nodes):
            if len(node.label) > max_length:
                nodes[index] = replace(
                    node,
                    label=node.label[: max_length - 3] + "...",
                    original_label=node.full_label,
                )
                shortened += 1
        if shortened:
            notes.append(f"Shortened {shortened} long labels")

        if not notes:
            return OptimizationResult(diagram=diagram)
        for note in notes:
            logger.debug("Optimization: %s", note)
        return OptimizationResult(
            diagram=DiagramData(nodes=tuple(nodes), edges=tuple(edges), layout=diagram.layout),
            optimizations=notes,
        )
