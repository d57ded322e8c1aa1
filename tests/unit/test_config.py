"""Tests for pipeline configuration."""

import pytest

from codeviz.config import PipelineConfig
from codeviz.core.exceptions import ConfigurationError


class TestPipelineConfig:
    """Tests for defaults and validation."""

    def test_defaults(self) -> None:
        config = PipelineConfig()

        assert config.confidence_threshold == 0.6
        assert config.max_code_lines == 2000
        assert config.max_diagram_nodes == 100
        assert config.max_label_length == 50
        assert config.retry_attempts == 3

    def test_threshold_out_of_range(self) -> None:
        with pytest.raises(ConfigurationError):
            PipelineConfig(confidence_threshold=1.5)

    def test_limits_must_be_positive(self) -> None:
        with pytest.raises(ConfigurationError):
            PipelineConfig(max_diagram_nodes=0)


class TestFromEnv:
    """Tests for CODEVIZ_* overrides."""

    def test_overrides(self) -> None:
        config = PipelineConfig.from_env(
            {
                "CODEVIZ_CONFIDENCE_THRESHOLD": "0.8",
                "CODEVIZ_MAX_CODE_LINES": "500",
                "UNRELATED": "x",
            }
        )

        assert config.confidence_threshold == 0.8
        assert config.max_code_lines == 500
        assert isinstance(config.max_code_lines, int)

    def test_empty_values_are_ignored(self) -> None:
        config = PipelineConfig.from_env({"CODEVIZ_MAX_LABEL_LENGTH": ""})

        assert config.max_label_length == 50

    def test_invalid_value(self) -> None:
        with pytest.raises(ConfigurationError, match="CODEVIZ_MAX_CODE_LINES"):
            PipelineConfig.from_env({"CODEVIZ_MAX_CODE_LINES": "lots"})

    def test_reads_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CODEVIZ_MAX_DIAGRAM_NODES", "40")

        assert PipelineConfig.from_env().max_diagram_nodes == 40
