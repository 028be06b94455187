"""Typed analysis documents parsed from model JSON output.

The model is asked for a JSON object with a ``markdown`` body template
and a ``diagrams`` list. Output that is not strictly valid JSON gets
one syntactic repair pass before the parse is abandoned.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from json_repair import repair_json

from diagramdoc.utils.errors import ParseError

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{DIAGRAM_(\d+)\}\}")


def placeholder_token(slot_index: int) -> str:
    """Return the placeholder token for a diagram slot."""
    return f"{{{{DIAGRAM_{slot_index}}}}}"


class DiagramKind(Enum):
    """Diagram grammar families the pipeline knows about."""

    MERMAID = "mermaid"
    PLANTUML = "plantuml"
    UNKNOWN = "unknown"

    @classmethod
    def from_declared(cls, declared: Any) -> "DiagramKind":
        """Map a declared diagram type string to a kind.

        Args:
            declared: The ``type`` value from the model output.

        Returns:
            The matching kind, or UNKNOWN for unrecognized values.
        """
        if not isinstance(declared, str):
            return cls.UNKNOWN
        return _KIND_ALIASES.get(declared.strip().lower(), cls.UNKNOWN)


_KIND_ALIASES: dict[str, DiagramKind] = {
    "mermaid": DiagramKind.MERMAID,
    "plantuml": DiagramKind.PLANTUML,
    "puml": DiagramKind.PLANTUML,
    "uml": DiagramKind.PLANTUML,
}


@dataclass(frozen=True)
class DiagramSpec:
    """A single diagram as declared by the model.

    Attributes:
        kind: Grammar family of the diagram.
        source_text: Diagram source code.
        slot_index: Placeholder index in the document body.
        declared_type: The type string exactly as the model gave it.
    """

    kind: DiagramKind
    source_text: str
    slot_index: int
    declared_type: str = ""

    @property
    def fence_tag(self) -> str:
        """Language tag used when the diagram is fenced in Markdown."""
        return fence_tag(self.kind, self.declared_type)


def fence_tag(kind: DiagramKind, declared_type: str = "") -> str:
    """Markdown code fence language tag for a diagram.

    Known kinds use their canonical name so renderers pick them up;
    unknown kinds keep whatever type the model declared.
    """
    if kind is not DiagramKind.UNKNOWN:
        return kind.value
    return declared_type.strip() or "text"


@dataclass(frozen=True)
class AnalysisDocument:
    """A parsed analysis: body template plus ordered diagrams.

    Attributes:
        body: Markdown with ``{{DIAGRAM_n}}`` placeholder tokens.
        diagrams: Diagrams in the order the model listed them.
    """

    body: str
    diagrams: tuple[DiagramSpec, ...] = field(default_factory=tuple)

    def referenced_slots(self) -> list[int]:
        """Slot indices referenced by placeholders in the body."""
        return [int(match) for match in PLACEHOLDER_PATTERN.findall(self.body)]


def _load_json(raw_text: str) -> Any:
    """Parse JSON strictly, then once more after syntactic repair.

    Raises:
        ParseError: If both attempts fail.
    """
    try:
        return json.loads(raw_text)
    except json.JSONDecodeError as strict_error:
        logger.warning("Strict JSON parse failed (%s), attempting repair", strict_error)

    try:
        repaired = repair_json(raw_text)
        if not isinstance(repaired, str) or not repaired.strip():
            raise ValueError("repair produced no JSON")
        return json.loads(repaired)
    except (ValueError, TypeError) as repair_error:
        logger.error("Failed to parse JSON after repair: %s", repair_error)
        raise ParseError(
            "Model output is not valid JSON",
            raw_text=raw_text,
            details={"error": str(repair_error)},
        ) from repair_error


def _coerce_position(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None


def _build_diagram(entry: Any, index: int) -> DiagramSpec:
    if not isinstance(entry, dict):
        logger.warning("Diagram %d is a %s, not an object", index, type(entry).__name__)
        return DiagramSpec(
            kind=DiagramKind.UNKNOWN,
            source_text=entry if isinstance(entry, str) else "",
            slot_index=index,
        )

    declared = entry.get("type")
    code = entry.get("code")
    position = _coerce_position(entry.get("position"))
    return DiagramSpec(
        kind=DiagramKind.from_declared(declared),
        source_text=code if isinstance(code, str) else "",
        slot_index=position if position is not None else index,
        declared_type=declared if isinstance(declared, str) else "",
    )


def parse_document(raw_text: str) -> AnalysisDocument:
    """Parse model output into an AnalysisDocument.

    A missing or non-list ``diagrams`` field yields a document with no
    diagrams instead of failing, so a usable body is still returned.

    Args:
        raw_text: Text expected to hold a JSON object with ``markdown``
            and ``diagrams`` fields.

    Returns:
        The parsed document.

    Raises:
        ParseError: If the text cannot be parsed, is not a JSON
            object, or lacks a ``markdown`` string.
    """
    data = _load_json(raw_text)

    if not isinstance(data, dict):
        raise ParseError(
            "Model output is not a JSON object",
            raw_text=raw_text,
            details={"type": type(data).__name__},
        )

    body = data.get("markdown")
    if not isinstance(body, str) or not body:
        raise ParseError("Model output has no 'markdown' field", raw_text=raw_text)

    entries = data.get("diagrams")
    if not isinstance(entries, list):
        logger.warning("Model output has no diagram list, continuing without diagrams")
        entries = []

    diagrams = [_build_diagram(entry, index) for index, entry in enumerate(entries)]

    logger.info("Parsed document with %d diagrams", len(diagrams))
    return AnalysisDocument(body=body, diagrams=tuple(diagrams))
