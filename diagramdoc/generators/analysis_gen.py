"""Analysis document generation for a single source file.

Runs the full request pipeline: prompt the model for a JSON analysis,
parse it, validate and repair each diagram, and assemble the final
Markdown.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from diagramdoc.diagrams.repair import DiagramRepairer, RepairedDiagram
from diagramdoc.diagrams.validation import ValidatorRegistry
from diagramdoc.generators.llm_client import LLMClient
from diagramdoc.generators.template_manager import TemplateManager
from diagramdoc.output.markdown import assemble_document
from diagramdoc.parsers.document import parse_document
from diagramdoc.utils.config import AppConfig, load_config
from diagramdoc.utils.errors import ExtractionError

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Outcome of analyzing one source file.

    Attributes:
        file_name: Declared name of the analyzed file.
        markdown: Final Markdown with diagrams embedded.
        diagrams: Every diagram the model produced, after repair,
            including ones with no placeholder in the body.
        truncated: Whether the source was cut to the character budget.
    """

    file_name: str
    markdown: str
    diagrams: list[RepairedDiagram] = field(default_factory=list)
    truncated: bool = False

    @property
    def invalid_diagrams(self) -> list[RepairedDiagram]:
        """Diagrams that never passed validation."""
        return [d for d in self.diagrams if not d.valid]


class AnalysisGenerator:
    """Turns one source file into a Markdown analysis with diagrams.

    Only document-level problems raise: a missing credential, a reply
    with no text, or a reply that cannot be parsed. Diagram problems
    are reported on the result.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        template_manager: Optional[TemplateManager] = None,
        config: Optional[AppConfig] = None,
        registry: Optional[ValidatorRegistry] = None,
    ) -> None:
        """Initialize the analysis generator.

        Args:
            llm_client: The LLM client for API calls.
            template_manager: Template manager for prompts.
            config: Application configuration.
            registry: Diagram validators. Built from config if omitted.
        """
        self.llm = llm_client
        self.templates = template_manager or TemplateManager()
        self.config = config or load_config()
        self.repairer = DiagramRepairer(
            llm_client,
            registry=registry or ValidatorRegistry.default(self.config.diagrams),
            template_manager=self.templates,
            api_config=self.config.api,
            max_retries=self.config.diagrams.max_retries,
        )

    def prepare_source(self, code: str) -> tuple[str, bool]:
        """Cut source code to the configured character budget.

        Returns:
            The possibly shortened code and whether it was cut.
        """
        limit = self.config.analysis.max_source_chars
        if len(code) <= limit:
            return code, False
        logger.debug("Truncating source from %d to %d chars", len(code), limit)
        return code[:limit], True

    async def analyze(self, file_name: str, code: str) -> AnalysisResult:
        """Generate the analysis document for one source file.

        Args:
            file_name: Declared name of the file.
            code: The file's text content.

        Returns:
            The assembled analysis and its repaired diagrams.

        Raises:
            ConfigurationError: If the model client is not configured.
            ExtractionError: If the model returned no text.
            ParseError: If the model output is not a usable document.
        """
        snippet, truncated = self.prepare_source(code)
        prompt = self.templates.render_analysis_prompt(file_name=file_name, code=snippet)

        logger.info("Requesting analysis for %s (%d chars)", file_name, len(snippet))
        result = await self.llm.generate(
            prompt,
            system=self.templates.render_analysis_system(),
            max_tokens=self.config.api.max_tokens,
            temperature=self.config.api.temperature,
            json_mode=True,
        )
        if not result.content:
            raise ExtractionError(
                "No response text returned from the model",
                {"model": result.model, "stop_reason": result.stop_reason},
            )

        document = parse_document(result.content)
        repaired = await self.repairer.repair_all(document.diagrams)
        markdown = assemble_document(document.body, repaired)

        invalid = sum(1 for d in repaired if not d.valid)
        logger.info(
            "Analysis for %s complete: %d diagrams, %d invalid",
            file_name,
            len(repaired),
            invalid,
        )
        return AnalysisResult(
            file_name=file_name,
            markdown=markdown,
            diagrams=repaired,
            truncated=truncated,
        )
