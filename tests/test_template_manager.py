"""Tests for the Jinja2 template manager."""

import pytest
from jinja2 import TemplateNotFound, UndefinedError

from diagramdoc.generators.template_manager import TemplateManager


@pytest.fixture
def manager() -> TemplateManager:
    """Create a TemplateManager with the default templates directory."""
    return TemplateManager()


class TestTemplateManagerInit:
    """Tests for TemplateManager initialization."""

    def test_default_templates_dir(self) -> None:
        manager = TemplateManager()
        assert manager._templates_path.exists()

    def test_custom_templates_dir(self, tmp_path) -> None:
        (tmp_path / "test.j2").write_text("Hello {{ name }}")
        manager = TemplateManager(templates_dir=str(tmp_path))
        assert manager._templates_path == tmp_path
        assert manager._render("test.j2", name="diagrams") == "Hello diagrams"

    def test_list_templates(self, manager: TemplateManager) -> None:
        templates = manager.list_templates()
        assert "analysis.j2" in templates
        assert "analysis_system.j2" in templates
        assert "diagram_repair.j2" in templates
        assert "diagram_repair_system.j2" in templates

    def test_missing_template(self, tmp_path) -> None:
        manager = TemplateManager(templates_dir=str(tmp_path))
        with pytest.raises(TemplateNotFound):
            manager.render_analysis_system()

    def test_missing_variable_raises(self, tmp_path) -> None:
        (tmp_path / "test.j2").write_text("Hello {{ name }}")
        manager = TemplateManager(templates_dir=str(tmp_path))
        with pytest.raises(UndefinedError):
            manager._render("test.j2")


class TestAnalysisPrompts:
    """Tests for analysis prompt rendering."""

    def test_system_describes_json_contract(self, manager: TemplateManager) -> None:
        system = manager.render_analysis_system()
        assert '"markdown"' in system
        assert '"diagrams"' in system
        assert "{{DIAGRAM_0}}" in system

    def test_prompt_includes_name_and_code(self, manager: TemplateManager) -> None:
        code = "def charge(order):\n    return order.total"
        prompt = manager.render_analysis_prompt(file_name="billing.py", code=code)
        assert "File name: billing.py" in prompt
        assert code in prompt

    def test_code_with_braces_is_not_interpreted(self, manager: TemplateManager) -> None:
        code = "template = '{{ user }}'"
        prompt = manager.render_analysis_prompt(file_name="t.py", code=code)
        assert code in prompt


class TestRepairPrompts:
    """Tests for diagram repair prompt rendering."""

    def test_repair_system(self, manager: TemplateManager) -> None:
        system = manager.render_repair_system("mermaid")
        assert "Fix mermaid diagram syntax errors" in system
        assert "no code fences" in system

    def test_repair_prompt(self, manager: TemplateManager) -> None:
        prompt = manager.render_repair_prompt(
            "plantuml", "@startuml\nA ->\n@enduml", "Syntax Error?"
        )
        assert prompt.startswith("The following plantuml diagram has a syntax error:")
        assert "@startuml\nA ->\n@enduml" in prompt
        assert "Error: Syntax Error?" in prompt
        assert prompt.rstrip().endswith("Provide the corrected diagram code:")
