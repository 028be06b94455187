"""Configuration loader for the diagram documentation generator.

Loads settings from configs/config.yaml and provides typed access
to all configuration sections via dataclasses.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "configs" / "config.yaml"

# Environment variable holding the credential for each provider
API_KEY_ENV_VARS: dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}

DEFAULT_PLANTUML_ERROR_INDICATORS: tuple[str, ...] = (
    "cannot include",
    "syntax error",
    "Error",
    "^^^^^",
)
DEFAULT_PLANTUML_ERROR_PATTERN = r"cannot [^\n]+|syntax error[^\n]*|Error[^\n]*"


@dataclass
class APIConfig:
    """Configuration for the generative model client."""

    provider: str = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    temperature: float = 0.2
    repair_max_tokens: int = 1024
    repair_temperature: float = 0.1
    rate_limit_rpm: int = 50
    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0


@dataclass
class AnalysisConfig:
    """Configuration for the source analysis request."""

    max_source_chars: int = 12000


@dataclass
class MermaidConfig:
    """Configuration for the Mermaid CLI validator."""

    command: list[str] = field(default_factory=lambda: ["mmdc"])
    timeout: float = 30.0
    theme: str = "dark"


@dataclass
class PlantUMLConfig:
    """Configuration for the remote PlantUML validator."""

    server_url: str = "https://www.plantuml.com/plantuml"
    timeout: float = 15.0
    error_indicators: list[str] = field(
        default_factory=lambda: list(DEFAULT_PLANTUML_ERROR_INDICATORS)
    )
    error_pattern: str = DEFAULT_PLANTUML_ERROR_PATTERN


@dataclass
class DiagramConfig:
    """Configuration for diagram validation and repair."""

    max_retries: int = 2
    mermaid: MermaidConfig = field(default_factory=MermaidConfig)
    plantuml: PlantUMLConfig = field(default_factory=PlantUMLConfig)


@dataclass
class OutputConfig:
    """Configuration for documentation output."""

    output_dir: str = "docs/generated"


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


@dataclass
class AppConfig:
    """Top-level application configuration."""

    api: APIConfig = field(default_factory=APIConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    diagrams: DiagramConfig = field(default_factory=DiagramConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _build_mermaid_config(data: dict) -> MermaidConfig:
    """Build a MermaidConfig from a dictionary.

    The command may be given as a single string or as an argument list.

    Args:
        data: Dictionary with Mermaid validator settings.

    Returns:
        A configured MermaidConfig instance.
    """
    command = data.get("command", ["mmdc"])
    if isinstance(command, str):
        command = command.split()
    return MermaidConfig(
        command=list(command),
        timeout=data.get("timeout", 30.0),
        theme=data.get("theme", "dark"),
    )


def _build_plantuml_config(data: dict) -> PlantUMLConfig:
    """Build a PlantUMLConfig from a dictionary.

    Args:
        data: Dictionary with PlantUML validator settings.

    Returns:
        A configured PlantUMLConfig instance.
    """
    return PlantUMLConfig(
        server_url=data.get("server_url", "https://www.plantuml.com/plantuml"),
        timeout=data.get("timeout", 15.0),
        error_indicators=list(
            data.get("error_indicators", DEFAULT_PLANTUML_ERROR_INDICATORS)
        ),
        error_pattern=data.get("error_pattern", DEFAULT_PLANTUML_ERROR_PATTERN),
    )


def _build_diagram_config(data: dict) -> DiagramConfig:
    """Build a DiagramConfig from a dictionary.

    Args:
        data: Dictionary with diagram settings.

    Returns:
        A configured DiagramConfig instance.
    """
    return DiagramConfig(
        max_retries=data.get("max_retries", 2),
        mermaid=_build_mermaid_config(data.get("mermaid") or {}),
        plantuml=_build_plantuml_config(data.get("plantuml") or {}),
    )


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load application configuration from a YAML file.

    Reads the YAML config file and constructs a fully typed AppConfig
    object. Falls back to defaults for any missing values. API keys are
    read from the environment, never from the config file.

    Args:
        config_path: Path to the YAML config file. If None, uses the
            default path at configs/config.yaml.

    Returns:
        A fully populated AppConfig instance.

    Raises:
        yaml.YAMLError: If the config file contains invalid YAML.
    """
    path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.warning("Config file not found at %s, using defaults", path)
        return AppConfig()

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    logger.info("Loaded configuration from %s", path)

    api_data = raw.get("api", {})
    provider = api_data.get("provider", "anthropic")
    key_var = API_KEY_ENV_VARS.get(provider)
    if key_var and not os.getenv(key_var):
        logger.warning("%s not set in environment", key_var)

    api_config = APIConfig(
        provider=provider,
        model=api_data.get("model", "claude-sonnet-4-20250514"),
        max_tokens=api_data.get("max_tokens", 4096),
        temperature=api_data.get("temperature", 0.2),
        repair_max_tokens=api_data.get("repair_max_tokens", 1024),
        repair_temperature=api_data.get("repair_temperature", 0.1),
        rate_limit_rpm=api_data.get("rate_limit_rpm", 50),
        retry_max_attempts=api_data.get("retry_max_attempts", 3),
        retry_base_delay=api_data.get("retry_base_delay", 1.0),
    )

    analysis_data = raw.get("analysis", {})
    analysis_config = AnalysisConfig(
        max_source_chars=analysis_data.get("max_source_chars", 12000),
    )

    output_data = raw.get("output", {})
    output_config = OutputConfig(
        output_dir=output_data.get("output_dir", "docs/generated"),
    )

    logging_data = raw.get("logging", {})
    logging_config = LoggingConfig(
        level=logging_data.get("level", "INFO"),
        format=logging_data.get(
            "format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ),
        file=logging_data.get("file"),
    )

    return AppConfig(
        api=api_config,
        analysis=analysis_config,
        diagrams=_build_diagram_config(raw.get("diagrams", {})),
        output=output_config,
        logging=logging_config,
    )
