"""Validate-and-repair loop for model-generated diagrams.

Each diagram runs through a small state machine. Failed validations
are sent back to the model with the error for a corrected version,
up to a retry budget. A diagram that never validates is still
returned with its most recent text, marked invalid, so no model
output is silently dropped.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from diagramdoc.diagrams.validation import DiagramValidator, ValidatorRegistry
from diagramdoc.generators.llm_client import LLMClient
from diagramdoc.generators.template_manager import TemplateManager
from diagramdoc.parsers.document import DiagramKind, DiagramSpec, fence_tag
from diagramdoc.utils.config import APIConfig

logger = logging.getLogger(__name__)

_LEADING_FENCE = re.compile(r"^```[\w+-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?```$")

UNKNOWN_VALIDATION_ERROR = "Diagram failed validation"


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang line and a trailing ``` from model output."""
    stripped = text.strip()
    stripped = _LEADING_FENCE.sub("", stripped, count=1)
    stripped = _TRAILING_FENCE.sub("", stripped, count=1)
    return stripped.strip()


class RepairState(Enum):
    """States of the per-diagram repair loop."""

    VALIDATING = "validating"
    NEEDS_REPAIR = "needs_repair"
    REPAIRING = "repairing"
    VALID = "valid"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self in (RepairState.VALID, RepairState.EXHAUSTED)


@dataclass(frozen=True)
class RepairedDiagram:
    """Final state of one diagram after validation and repair.

    Attributes:
        kind: Grammar family of the diagram.
        final_text: The last source text tried.
        slot_index: Placeholder index in the document body.
        valid: Whether the loop ended in the VALID state.
        last_error: Most recent validation error, None when valid.
        attempts: Number of repair calls made.
        declared_type: The type string as the model declared it.
    """

    kind: DiagramKind
    final_text: str
    slot_index: int
    valid: bool
    last_error: Optional[str] = None
    attempts: int = 0
    declared_type: str = ""

    @property
    def fence_tag(self) -> str:
        return fence_tag(self.kind, self.declared_type)


@dataclass
class _RepairRun:
    """Working state for one diagram while it moves through the loop."""

    spec: DiagramSpec
    text: str
    state: RepairState = RepairState.VALIDATING
    attempts: int = 0
    last_error: Optional[str] = None

    def result(self) -> RepairedDiagram:
        valid = self.state is RepairState.VALID
        return RepairedDiagram(
            kind=self.spec.kind,
            final_text=self.text,
            slot_index=self.spec.slot_index,
            valid=valid,
            last_error=None if valid else (self.last_error or UNKNOWN_VALIDATION_ERROR),
            attempts=self.attempts,
            declared_type=self.spec.declared_type,
        )


class DiagramRepairer:
    """Validates diagrams and asks the model to fix the ones that fail.

    Diagrams are processed one at a time, in order. Failures never
    raise; they end in the EXHAUSTED state and are reported on the
    returned RepairedDiagram.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        registry: Optional[ValidatorRegistry] = None,
        template_manager: Optional[TemplateManager] = None,
        api_config: Optional[APIConfig] = None,
        max_retries: int = 2,
    ) -> None:
        """Initialize the repairer.

        Args:
            llm_client: Client used for repair requests.
            registry: Validators by diagram kind. Defaults to Mermaid
                and PlantUML with default settings.
            template_manager: Source of the repair prompts.
            api_config: Supplies repair temperature and token ceiling.
            max_retries: Maximum repair calls per diagram.
        """
        self.llm = llm_client
        self.registry = registry or ValidatorRegistry.default()
        self.templates = template_manager or TemplateManager()
        self.api_config = api_config or APIConfig()
        self.max_retries = max_retries

    async def repair_all(self, specs: Iterable[DiagramSpec]) -> list[RepairedDiagram]:
        """Run every diagram through the loop, one after another."""
        specs = list(specs)
        results = []
        for number, spec in enumerate(specs, start=1):
            logger.info(
                "Checking diagram %d/%d (%s, slot %d)",
                number,
                len(specs),
                spec.declared_type or spec.kind.value,
                spec.slot_index,
            )
            results.append(await self.repair(spec))
        return results

    async def repair(self, spec: DiagramSpec) -> RepairedDiagram:
        """Validate one diagram, repairing it while retries remain.

        Args:
            spec: The diagram as parsed from the model output.

        Returns:
            The diagram's final text and validity.
        """
        run = _RepairRun(spec=spec, text=spec.source_text)
        validator = self.registry.get(spec.kind)

        if spec.kind is DiagramKind.UNKNOWN or validator is None:
            logger.info("No validator for diagram type '%s', skipping", spec.declared_type)
            run.state = RepairState.VALID

        while not run.state.is_terminal:
            if run.state is RepairState.VALIDATING:
                await self._validate(run, validator)
            elif run.state is RepairState.NEEDS_REPAIR:
                self._schedule_repair(run)
            elif run.state is RepairState.REPAIRING:
                await self._request_fix(run)

        result = run.result()
        if not result.valid:
            logger.warning(
                "Diagram at slot %d still invalid after %d repair attempts: %s",
                result.slot_index,
                result.attempts,
                result.last_error,
            )
        return result

    async def _validate(self, run: _RepairRun, validator: DiagramValidator) -> None:
        """VALIDATING -> VALID | NEEDS_REPAIR."""
        outcome = await validator.validate(run.text)
        if outcome.valid:
            run.last_error = None
            run.state = RepairState.VALID
            return
        run.last_error = outcome.error_message or UNKNOWN_VALIDATION_ERROR
        logger.debug("Slot %d failed validation: %s", run.spec.slot_index, run.last_error)
        run.state = RepairState.NEEDS_REPAIR

    def _schedule_repair(self, run: _RepairRun) -> None:
        """NEEDS_REPAIR -> REPAIRING | EXHAUSTED."""
        if run.attempts < self.max_retries:
            run.state = RepairState.REPAIRING
        else:
            run.state = RepairState.EXHAUSTED

    async def _request_fix(self, run: _RepairRun) -> None:
        """REPAIRING -> VALIDATING | EXHAUSTED."""
        diagram_type = run.spec.declared_type or run.spec.kind.value
        logger.warning(
            "Requesting fix for %s diagram at slot %d (attempt %d/%d)",
            diagram_type,
            run.spec.slot_index,
            run.attempts + 1,
            self.max_retries,
        )
        try:
            result = await self.llm.generate(
                self.templates.render_repair_prompt(
                    diagram_type=diagram_type,
                    code=run.text,
                    error=run.last_error or UNKNOWN_VALIDATION_ERROR,
                ),
                system=self.templates.render_repair_system(diagram_type=diagram_type),
                max_tokens=self.api_config.repair_max_tokens,
                temperature=self.api_config.repair_temperature,
            )
        except Exception:
            logger.exception("Failed to fix diagram at slot %d", run.spec.slot_index)
            run.state = RepairState.EXHAUSTED
            return

        run.text = strip_code_fences(result.content)
        run.attempts += 1
        run.state = RepairState.VALIDATING
