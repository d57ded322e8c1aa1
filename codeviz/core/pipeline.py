"""Orchestrator: one cancellable, progress-reporting run at a time."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from codeviz.config import PipelineConfig
from codeviz.core.diagram import DiagramData, DiagramGenerator, LayoutConfig
from codeviz.core.exceptions import (
    AdmissionRejectedError,
    IntegrityError,
    PipelineBusyError,
    PipelineCancelledError,
    StageTimeoutError,
)
from codeviz.core.fallback import (
    DIAGRAM_GENERATOR,
    PATTERN_RECOGNITION,
    PIPELINE,
    RESOURCE_GOVERNOR,
    SYNTAX_ANALYZER,
    ErrorHandler,
)
from codeviz.core.governor import AdmissionDecision, ResourceGovernor
from codeviz.core.models import (
    ComplexityMetrics,
    PerformanceMetrics,
    PipelineStage,
    RecognizedPattern,
    UserFriendlyError,
)
from codeviz.core.recognition import RecognitionEngine
from codeviz.languages import EcmaScriptAnalyzer, ParseResult, ValidationResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]

PROGRESS = {
    PipelineStage.PARSING: 0,
    PipelineStage.PATTERN_RECOGNITION: 25,
    PipelineStage.VISUALIZATION: 50,
    PipelineStage.OPTIMIZATION: 75,
    PipelineStage.DONE: 100,
}


@dataclass
class VisualizationResult:
    """Outcome of one run. Failures are reported here, never raised."""

    success: bool
    diagram: DiagramData | None = None
    patterns: list[RecognizedPattern] = field(default_factory=list)
    errors: list[UserFriendlyError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    optimizations: list[str] = field(default_factory=list)
    fallback_used: bool = False
    cancelled: bool = False
    metrics: PerformanceMetrics | None = None
    language: str | None = None

    def to_dict(self, include_technical: bool = False) -> dict[str, Any]:
        return {
            "success": self.success,
            "cancelled": self.cancelled,
            "fallback_used": self.fallback_used,
            "language": self.language,
            "diagram": self.diagram.to_dict() if self.diagram is not None else None,
            "patterns": [p.to_dict() for p in self.patterns],
            "errors": [e.to_dict(include_technical) for e in self.errors],
            "warnings": list(self.warnings),
            "optimizations": list(self.optimizations),
            "metrics": self.metrics.to_dict() if self.metrics is not None else None,
        }


@dataclass
class ValidationReport:
    """Syntax check plus admission advice, without running the pipeline."""

    validation: ValidationResult
    admission: AdmissionDecision
    available_patterns: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.validation.to_dict(),
            "admission": self.admission.to_dict(),
            "available_patterns": list(self.available_patterns),
        }


@dataclass
class RunHandle:
    """A scheduled run. Present ``token`` to ``cancel`` to stop it."""

    token: str | None
    task: asyncio.Task[VisualizationResult]


@dataclass
class _Run:
    token: str
    cancel_requested: bool = False
    executor: ThreadPoolExecutor | None = None


class VisualizationPipeline:
    """Source text in, diagram out.

    Stages: parsing -> pattern-recognition -> visualization -> optimization.
    Only one run may be active; a second request is rejected as busy.
    Cancellation is checked between stages.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        analyzer: EcmaScriptAnalyzer | None = None,
        engine: RecognitionEngine | None = None,
        generator: DiagramGenerator | None = None,
        governor: ResourceGovernor | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.analyzer = analyzer or EcmaScriptAnalyzer()
        self.engine = engine or RecognitionEngine(
            confidence_threshold=self.config.confidence_threshold
        )
        self.generator = generator or DiagramGenerator(
            LayoutConfig(
                node_spacing=self.config.node_spacing,
                level_spacing=self.config.level_spacing,
            )
        )
        self.governor = governor or ResourceGovernor(self.config)
        self.errors = error_handler or ErrorHandler(self.config, self.generator)

        self._active: _Run | None = None
        self._stage = PipelineStage.IDLE

    @property
    def stage(self) -> PipelineStage:
        return self._stage

    @property
    def is_running(self) -> bool:
        return self._active is not None

    def analyze_complexity(self, text: str) -> ComplexityMetrics:
        return self.governor.analyze_complexity(text)

    def validate(self, text: str) -> ValidationReport:
        return ValidationReport(
            validation=self.analyzer.validate_syntax(text),
            admission=self.governor.should_process(self.governor.analyze_complexity(text)),
            available_patterns=self.engine.registered_pattern_types(),
        )

    async def visualize(
        self, text: str, on_progress: ProgressCallback | None = None
    ) -> VisualizationResult:
        run = self._claim()
        if run is None:
            return self._busy_result()
        return await self._drive(run, text, on_progress)

    def start(self, text: str, on_progress: ProgressCallback | None = None) -> RunHandle:
        """Schedule a run on the current event loop without waiting for it.

        If a run is already active, the returned task resolves to a busy
        result and the handle has no token.
        """
        loop = asyncio.get_running_loop()
        run = self._claim()
        if run is None:
            return RunHandle(token=None, task=loop.create_task(self._busy_async()))
        task = loop.create_task(self._drive(run, text, on_progress))
        return RunHandle(token=run.token, task=task)

    def cancel(self, token: str | None = None) -> bool:
        """Request cancellation of the active run.

        Returns False when nothing is running or the token does not match.
        """
        run = self._active
        if run is None or (token is not None and token != run.token):
            return False
        run.cancel_requested = True
        logger.debug("Cancellation requested for run %s", run.token)
        return True

    def visualize_sync(
        self, text: str, on_progress: ProgressCallback | None = None
    ) -> VisualizationResult:
        return asyncio.run(self.visualize(text, on_progress))

    def _claim(self) -> _Run | None:
        if self._active is not None:
            return None
        self._active = _Run(token=uuid.uuid4().hex)
        return self._active

    def _busy_result(self) -> VisualizationResult:
        error = PipelineBusyError("A visualization is already in progress")
        return VisualizationResult(
            success=False,
            errors=[self.errors.to_user_error(error, PIPELINE, "visualize")],
        )

    async def _busy_async(self) -> VisualizationResult:
        return self._busy_result()

    async def _drive(
        self, run: _Run, text: str, on_progress: ProgressCallback | None
    ) -> VisualizationResult:
        run.executor = ThreadPoolExecutor(thread_name_prefix="codeviz-stage")
        try:
            return await self._execute(run, text, on_progress)
        finally:
            # Abandoned stages may still be running; do not wait for them.
            run.executor.shutdown(wait=False, cancel_futures=True)
            self._active = None

    def _enter(
        self, run: _Run, stage: PipelineStage, on_progress: ProgressCallback | None
    ) -> None:
        if run.cancel_requested:
            raise PipelineCancelledError(f"Cancelled before {stage.value}")
        self._stage = stage
        logger.debug("Entering stage %s", stage.value)
        if on_progress is not None:
            try:
                on_progress(stage.value, PROGRESS[stage])
            except Exception:
                logger.warning("Progress callback failed", exc_info=True)

    async def _timed(
        self,
        run: _Run,
        metrics: PerformanceMetrics,
        stage: PipelineStage,
        budget_key: str,
        component: str,
        func: Callable[..., Any],
        *args: Any,
    ) -> Any:
        budget = self.governor.stage_budget(budget_key, metrics.complexity)
        started = time.perf_counter()

        async def attempt(budget_s: float) -> Any:
            # Every attempt also fits in what is left of the whole run.
            left = self.governor.run_time_left(time.perf_counter() - metrics.started_at)
            if left <= 0:
                raise StageTimeoutError(stage.value, 0.0)
            return await self.governor.run_with_deadline(
                stage.value, func, *args, budget_s=min(budget_s, left), executor=run.executor
            )

        try:
            return await self.errors.retry_stage(component, attempt, budget)
        finally:
            metrics.record_stage(stage.value, time.perf_counter() - started)

    async def _execute(
        self, run: _Run, text: str, on_progress: ProgressCallback | None
    ) -> VisualizationResult:
        metrics = PerformanceMetrics(complexity=self.governor.analyze_complexity(text))
        result = VisualizationResult(success=False, metrics=metrics)
        component, operation = RESOURCE_GOVERNOR, "admission"

        try:
            decision = self.governor.should_process(metrics.complexity)
            result.warnings.extend(decision.warnings)
            if not decision.should_process:
                raise AdmissionRejectedError(
                    decision.warnings[0], decision.warnings, decision.suggestions
                )

            component, operation = SYNTAX_ANALYZER, "parse"
            self._enter(run, PipelineStage.PARSING, on_progress)
            parsed: ParseResult = await self._timed(
                run, metrics, PipelineStage.PARSING, "parse", component, self.analyzer.parse, text
            )
            unit = parsed.unit
            result.language = unit.language
            parsed.raise_for_errors()

            component, operation = PATTERN_RECOGNITION, "recognize_patterns"
            self._enter(run, PipelineStage.PATTERN_RECOGNITION, on_progress)
            diagram: DiagramData | None = None
            try:
                result.patterns = await self._timed(
                    run,
                    metrics,
                    PipelineStage.PATTERN_RECOGNITION,
                    "recognition",
                    component,
                    self.engine.recognize_patterns,
                    parsed.tree,
                    unit.text,
                )
            except (PipelineCancelledError, asyncio.CancelledError):
                raise
            except Exception as e:
                logger.warning("Pattern recognition failed, using lexical fallback: %s", e)
                fallback = self.errors.lexical_fallback(text)
                diagram = fallback.diagram
                result.fallback_used = True
                result.warnings.extend(fallback.warnings)

            component, operation = DIAGRAM_GENERATOR, "generate"
            self._enter(run, PipelineStage.VISUALIZATION, on_progress)
            if diagram is None:
                try:
                    diagram = await self._timed(
                        run,
                        metrics,
                        PipelineStage.VISUALIZATION,
                        "generation",
                        component,
                        self.generator.generate,
                        result.patterns,
                    )
                except (PipelineCancelledError, asyncio.CancelledError):
                    raise
                except Exception as e:
                    logger.warning("Diagram generation failed, simplifying: %s", e)
                    stage = "edge-generation" if isinstance(e, IntegrityError) else "node-generation"
                    fallback = self.errors.simplified_diagram(result.patterns, stage)
                    diagram = fallback.diagram
                    result.fallback_used = True
                    result.warnings.extend(fallback.warnings)
                    result.warnings.extend(
                        f"Removed feature: {feature}" for feature in fallback.removed_features
                    )

            component, operation = RESOURCE_GOVERNOR, "optimize_diagram"
            self._enter(run, PipelineStage.OPTIMIZATION, on_progress)
            optimized = self.governor.optimize_diagram(diagram)
            result.diagram = optimized.diagram
            result.optimizations = optimized.optimizations

            self._enter(run, PipelineStage.DONE, on_progress)
            result.success = True
            return result

        except PipelineCancelledError:
            logger.debug("Run %s cancelled", run.token)
            self._stage = PipelineStage.CANCELLED
            result.cancelled = True
            result.diagram = None
            return result
        except Exception as e:
            logger.warning("Visualization failed in %s: %s", component, e)
            self._stage = PipelineStage.FAILED
            result.errors.append(self.errors.to_user_error(e, component, operation))
            return result
        finally:
            metrics.finish()
