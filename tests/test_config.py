"""Tests for configuration loading and validation."""

from pathlib import Path

import yaml

from diagramdoc.utils.config import (
    DEFAULT_PLANTUML_ERROR_INDICATORS,
    AnalysisConfig,
    APIConfig,
    AppConfig,
    DiagramConfig,
    LoggingConfig,
    MermaidConfig,
    OutputConfig,
    PlantUMLConfig,
    load_config,
)


class TestAPIConfig:
    """Tests for APIConfig defaults."""

    def test_defaults(self) -> None:
        config = APIConfig()
        assert config.provider == "anthropic"
        assert config.max_tokens == 4096
        assert config.temperature == 0.2
        assert config.repair_max_tokens == 1024
        assert config.repair_temperature == 0.1
        assert config.retry_max_attempts == 3


class TestAppConfigDefaults:
    """Tests for AppConfig with all defaults."""

    def test_default_construction(self) -> None:
        config = AppConfig()
        assert isinstance(config.api, APIConfig)
        assert isinstance(config.analysis, AnalysisConfig)
        assert isinstance(config.diagrams, DiagramConfig)
        assert isinstance(config.output, OutputConfig)
        assert isinstance(config.logging, LoggingConfig)

    def test_source_budget(self) -> None:
        assert AppConfig().analysis.max_source_chars == 12000

    def test_diagram_defaults(self) -> None:
        config = DiagramConfig()
        assert config.max_retries == 2
        assert isinstance(config.mermaid, MermaidConfig)
        assert isinstance(config.plantuml, PlantUMLConfig)
        assert config.mermaid.command == ["mmdc"]

    def test_plantuml_indicators_are_independent_copies(self) -> None:
        first = PlantUMLConfig()
        first.error_indicators.append("FATAL")
        assert "FATAL" not in PlantUMLConfig().error_indicators
        assert tuple(PlantUMLConfig().error_indicators) == DEFAULT_PLANTUML_ERROR_INDICATORS


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_load_default_config(self) -> None:
        config = load_config()
        assert isinstance(config, AppConfig)
        assert config.api.provider == "anthropic"
        assert config.diagrams.max_retries == 2
        assert "^^^^^" in config.diagrams.plantuml.error_indicators

    def test_default_error_pattern_matches_newline_boundary(self) -> None:
        import re

        config = load_config()
        pattern = re.compile(config.diagrams.plantuml.error_pattern, re.IGNORECASE)
        match = pattern.search("line one\nSyntax Error?\nnext")
        assert match is not None
        assert match.group(0) == "Syntax Error?"

    def test_load_from_explicit_path(self, tmp_path: Path) -> None:
        config_data = {
            "api": {"provider": "openai", "model": "gpt-4.1", "max_tokens": 2048},
            "analysis": {"max_source_chars": 500},
            "diagrams": {
                "max_retries": 4,
                "mermaid": {"command": "npx -p @mermaid-js/mermaid-cli mmdc"},
                "plantuml": {
                    "server_url": "http://localhost:8080",
                    "error_indicators": ["Syntax Error"],
                },
            },
            "logging": {"level": "DEBUG"},
        }
        config_file = tmp_path / "test_config.yaml"
        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

        config = load_config(str(config_file))
        assert config.api.provider == "openai"
        assert config.api.model == "gpt-4.1"
        assert config.api.max_tokens == 2048
        assert config.analysis.max_source_chars == 500
        assert config.diagrams.max_retries == 4
        assert config.diagrams.mermaid.command == [
            "npx",
            "-p",
            "@mermaid-js/mermaid-cli",
            "mmdc",
        ]
        assert config.diagrams.plantuml.server_url == "http://localhost:8080"
        assert config.diagrams.plantuml.error_indicators == ["Syntax Error"]
        assert config.logging.level == "DEBUG"

    def test_load_nonexistent_returns_defaults(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "nonexistent.yaml"))
        assert isinstance(config, AppConfig)
        assert config.api.provider == "anthropic"

    def test_load_empty_file_returns_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        config = load_config(str(config_file))
        assert isinstance(config, AppConfig)
        assert config.diagrams.plantuml.timeout == 15.0
