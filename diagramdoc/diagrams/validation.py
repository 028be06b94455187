"""Common types for diagram grammar validation."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

from diagramdoc.parsers.document import DiagramKind
from diagramdoc.utils.config import DiagramConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of checking one diagram against its grammar.

    Attributes:
        valid: Whether the diagram parsed.
        error_message: Grammar or transport error when invalid.
    """

    valid: bool
    error_message: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationOutcome":
        return cls(valid=True)

    @classmethod
    def failure(cls, message: str) -> "ValidationOutcome":
        return cls(valid=False, error_message=message)


class DiagramValidator(ABC):
    """Checks diagram source text against one grammar."""

    @abstractmethod
    async def validate(self, definition: str) -> ValidationOutcome:
        """Validate a diagram definition.

        Implementations never raise; every failure is reported as an
        invalid outcome.
        """


class ValidatorRegistry:
    """Maps diagram kinds to the validator that checks them.

    Kinds without a registered validator are not checked.
    """

    def __init__(self, validators: Optional[dict[DiagramKind, DiagramValidator]] = None) -> None:
        self._validators: dict[DiagramKind, DiagramValidator] = dict(validators or {})

    def register(self, kind: DiagramKind, validator: DiagramValidator) -> None:
        self._validators[kind] = validator

    def get(self, kind: DiagramKind) -> Optional[DiagramValidator]:
        return self._validators.get(kind)

    @classmethod
    def default(
        cls,
        config: Optional[DiagramConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "ValidatorRegistry":
        """Build a registry with the Mermaid and PlantUML validators.

        Args:
            config: Diagram configuration. Uses defaults if not provided.
            http_client: Optional shared client for the PlantUML server.

        Returns:
            A registry covering both supported grammars.
        """
        from diagramdoc.diagrams.mermaid import MermaidValidator
        from diagramdoc.diagrams.plantuml import PlantUMLValidator

        config = config or DiagramConfig()
        return cls(
            {
                DiagramKind.MERMAID: MermaidValidator(config.mermaid),
                DiagramKind.PLANTUML: PlantUMLValidator(config.plantuml, client=http_client),
            }
        )
