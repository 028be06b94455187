"""Template manager for loading and rendering Jinja2 prompt templates.

Prompts for the analysis request and for diagram repair requests live
as Jinja2 templates in the templates/ directory.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

logger = logging.getLogger(__name__)

_DEFAULT_TEMPLATES_DIR = Path(__file__).parent.parent.parent / "templates"


class TemplateManager:
    """Loads and renders Jinja2 prompt templates.

    Templates are loaded from a configurable directory. Missing
    template variables raise instead of rendering as empty text.
    """

    def __init__(self, templates_dir: Optional[str] = None) -> None:
        """Initialize the template manager.

        Args:
            templates_dir: Path to the templates directory. Uses the
                default templates/ directory if not specified.
        """
        self._templates_path = (
            Path(templates_dir) if templates_dir else _DEFAULT_TEMPLATES_DIR
        )

        if not self._templates_path.exists():
            logger.warning("Templates directory not found: %s", self._templates_path)

        self._env = Environment(
            loader=FileSystemLoader(str(self._templates_path)),
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        logger.debug("Template manager initialized with: %s", self._templates_path)

    def render_analysis_system(self) -> str:
        """Render the system instruction for the analysis request."""
        return self._render("analysis_system.j2")

    def render_analysis_prompt(self, file_name: str, code: str) -> str:
        """Render the analysis prompt for one source file.

        Args:
            file_name: Declared name of the uploaded file.
            code: File content, already truncated by the caller.

        Returns:
            Rendered prompt string ready for LLM submission.
        """
        return self._render("analysis.j2", file_name=file_name, code=code)

    def render_repair_system(self, diagram_type: str) -> str:
        """Render the system instruction for a diagram repair request.

        Args:
            diagram_type: Diagram type as the model declared it.
        """
        return self._render("diagram_repair_system.j2", diagram_type=diagram_type)

    def render_repair_prompt(self, diagram_type: str, code: str, error: str) -> str:
        """Render a diagram repair prompt.

        Args:
            diagram_type: Diagram type as the model declared it.
            code: The diagram source that failed validation.
            error: The validation error message.

        Returns:
            Rendered prompt string ready for LLM submission.
        """
        return self._render(
            "diagram_repair.j2",
            diagram_type=diagram_type,
            code=code,
            error=error,
        )

    def _render(self, template_name: str, **kwargs: Any) -> str:
        """Render a template with the given context variables.

        Raises:
            TemplateNotFound: If the template file does not exist.
        """
        template = self._env.get_template(template_name)
        rendered = template.render(**kwargs)
        logger.debug("Rendered template %s (%d chars)", template_name, len(rendered))
        return rendered

    def list_templates(self) -> list[str]:
        """List all available template files."""
        return self._env.list_templates()
