"""Markdown assembly and output for analysis documents.

Substitutes repaired diagrams into the body template's placeholder
slots and writes the finished document to disk.
"""

import logging
from pathlib import Path
from typing import Sequence

from diagramdoc.diagrams.repair import RepairedDiagram
from diagramdoc.parsers.document import PLACEHOLDER_PATTERN, placeholder_token

logger = logging.getLogger(__name__)


def render_diagram_block(diagram: RepairedDiagram) -> str:
    """Render a diagram as a fenced Markdown code block."""
    return f"```{diagram.fence_tag}\n{diagram.final_text}\n```"


def assemble_document(body: str, diagrams: Sequence[RepairedDiagram]) -> str:
    """Substitute diagrams into their placeholders and clean up the rest.

    Each diagram replaces the first occurrence of its slot's token,
    whether or not it validated. Tokens left without a diagram are
    removed. Diagrams whose slot never appears are dropped.

    Args:
        body: Markdown template with ``{{DIAGRAM_n}}`` tokens.
        diagrams: Repaired diagrams in document order.

    Returns:
        The final Markdown text.
    """
    document = body
    for diagram in diagrams:
        token = placeholder_token(diagram.slot_index)
        if token not in document:
            logger.debug("No placeholder for diagram slot %d", diagram.slot_index)
            continue
        document = document.replace(token, render_diagram_block(diagram), 1)

    document, leftover = PLACEHOLDER_PATTERN.subn("", document)
    if leftover:
        logger.info("Removed %d placeholders with no matching diagram", leftover)
    return document


class MarkdownWriter:
    """Writes assembled analysis documents as Markdown files."""

    def __init__(self, output_dir: str = "docs/generated") -> None:
        """Initialize the Markdown writer.

        Args:
            output_dir: Directory where Markdown files will be written.
        """
        self.output_dir = Path(output_dir)

    def write_document(self, source_name: str, content: str) -> Path:
        """Write a document named after its source file.

        ``pkg/app.py`` becomes ``pkg_app.md`` in the output directory.

        Args:
            source_name: Name or path of the analyzed source file.
            content: Final Markdown text.

        Returns:
            Path to the written file.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        md_path = self.output_dir / f"{self._safe_name(source_name)}.md"
        md_path.write_text(content, encoding="utf-8")
        logger.info("Wrote analysis document: %s", md_path)
        return md_path

    def _safe_name(self, source_name: str) -> str:
        """Convert a source path into a flat file stem."""
        path = Path(source_name)
        stem = str(path.with_suffix("")) if path.name else ""
        safe = stem.replace("/", "_").replace("\\", "_").strip("._")
        return safe or "document"
