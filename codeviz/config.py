"""Pipeline configuration: module defaults overridable from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields

from codeviz.core.exceptions import ConfigurationError

ENV_PREFIX = "CODEVIZ_"

DEFAULT_CONFIDENCE_THRESHOLD = 0.6
DEFAULT_MAX_CODE_LINES = 2000
DEFAULT_MAX_DIAGRAM_NODES = 100
DEFAULT_MAX_LABEL_LENGTH = 50
DEFAULT_MAX_PROCESSING_TIME_S = 30.0

DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY_S = 1.0
DEFAULT_RETRY_MAX_DELAY_S = 10.0

# (fraction of the estimated processing time, hard cap in seconds)
DEFAULT_PARSE_BUDGET = (0.3, 10.0)
DEFAULT_RECOGNITION_BUDGET = (0.4, 15.0)
DEFAULT_GENERATION_BUDGET = (0.3, 10.0)
DEFAULT_MIN_STAGE_BUDGET_S = 1.0

DEFAULT_NODE_SPACING = 150
DEFAULT_LEVEL_SPACING = 200


@dataclass(frozen=True)
class PipelineConfig:
    """Tunable limits for one pipeline instance."""

    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    max_code_lines: int = DEFAULT_MAX_CODE_LINES
    max_diagram_nodes: int = DEFAULT_MAX_DIAGRAM_NODES
    max_label_length: int = DEFAULT_MAX_LABEL_LENGTH
    max_processing_time_s: float = DEFAULT_MAX_PROCESSING_TIME_S

    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_base_delay_s: float = DEFAULT_RETRY_BASE_DELAY_S
    retry_max_delay_s: float = DEFAULT_RETRY_MAX_DELAY_S

    parse_budget_fraction: float = DEFAULT_PARSE_BUDGET[0]
    parse_budget_cap_s: float = DEFAULT_PARSE_BUDGET[1]
    recognition_budget_fraction: float = DEFAULT_RECOGNITION_BUDGET[0]
    recognition_budget_cap_s: float = DEFAULT_RECOGNITION_BUDGET[1]
    generation_budget_fraction: float = DEFAULT_GENERATION_BUDGET[0]
    generation_budget_cap_s: float = DEFAULT_GENERATION_BUDGET[1]
    min_stage_budget_s: float = DEFAULT_MIN_STAGE_BUDGET_S

    node_spacing: int = DEFAULT_NODE_SPACING
    level_spacing: int = DEFAULT_LEVEL_SPACING

    def __post_init__(self) -> None:
        if not 0 <= self.confidence_threshold <= 1:
            raise ConfigurationError("Confidence threshold must be between 0 and 1")
        for name in (
            "max_code_lines",
            "max_diagram_nodes",
            "max_label_length",
            "max_processing_time_s",
            "retry_attempts",
            "min_stage_budget_s",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if self.max_label_length < 4:
            raise ConfigurationError("max_label_length must leave room for an ellipsis")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> PipelineConfig:
        """Build a config, overriding defaults with CODEVIZ_* variables."""
        env = os.environ if environ is None else environ
        overrides: dict[str, float | int] = {}
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            cast = int if f.type in ("int", int) else float
            try:
                overrides[f.name] = cast(raw)
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}"
                ) from e
        return cls(**overrides)
