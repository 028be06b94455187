"""Tests for the structured document parser."""

import json

import pytest

from diagramdoc.parsers.document import (
    AnalysisDocument,
    DiagramKind,
    DiagramSpec,
    fence_tag,
    parse_document,
    placeholder_token,
)
from diagramdoc.utils.errors import ParseError


def _payload(**overrides) -> dict:
    data = {
        "markdown": "# Overview\n\n{{DIAGRAM_0}}\n\nText\n\n{{DIAGRAM_1}}",
        "diagrams": [
            {"type": "mermaid", "code": "graph TD; A-->B", "position": 0},
            {"type": "plantuml", "code": "@startuml\nA->B\n@enduml", "position": 1},
        ],
    }
    data.update(overrides)
    return data


class TestDiagramKind:
    """Tests for mapping declared types to kinds."""

    @pytest.mark.parametrize(
        "declared, kind",
        [
            ("mermaid", DiagramKind.MERMAID),
            ("plantuml", DiagramKind.PLANTUML),
            ("puml", DiagramKind.PLANTUML),
            ("uml", DiagramKind.PLANTUML),
            (" PlantUML ", DiagramKind.PLANTUML),
            ("graphviz", DiagramKind.UNKNOWN),
            (None, DiagramKind.UNKNOWN),
            (3, DiagramKind.UNKNOWN),
        ],
    )
    def test_aliases(self, declared, kind) -> None:
        assert DiagramKind.from_declared(declared) is kind

    def test_fence_tags(self) -> None:
        assert fence_tag(DiagramKind.PLANTUML, "puml") == "plantuml"
        assert fence_tag(DiagramKind.UNKNOWN, "graphviz") == "graphviz"
        assert fence_tag(DiagramKind.UNKNOWN, "") == "text"


class TestParseDocument:
    """Tests for parse_document on well-formed input."""

    def test_strict_json(self) -> None:
        doc = parse_document(json.dumps(_payload()))
        assert isinstance(doc, AnalysisDocument)
        assert doc.body.startswith("# Overview")
        assert len(doc.diagrams) == 2
        assert doc.diagrams[0] == DiagramSpec(
            kind=DiagramKind.MERMAID,
            source_text="graph TD; A-->B",
            slot_index=0,
            declared_type="mermaid",
        )
        assert doc.diagrams[1].kind is DiagramKind.PLANTUML
        assert doc.diagrams[1].source_text == "@startuml\nA->B\n@enduml"

    def test_diagram_count_matches_input(self) -> None:
        entries = [{"type": "mermaid", "code": f"graph TD; N{i}"} for i in range(5)]
        doc = parse_document(json.dumps(_payload(diagrams=entries)))
        assert len(doc.diagrams) == 5

    def test_position_defaults_to_index(self) -> None:
        entries = [
            {"type": "mermaid", "code": "a"},
            {"type": "mermaid", "code": "b", "position": 7},
            {"type": "uml", "code": "c", "position": "not a number"},
        ]
        doc = parse_document(json.dumps(_payload(diagrams=entries)))
        assert [d.slot_index for d in doc.diagrams] == [0, 7, 2]

    def test_numeric_string_position(self) -> None:
        entries = [{"type": "mermaid", "code": "a", "position": "3"}]
        doc = parse_document(json.dumps(_payload(diagrams=entries)))
        assert doc.diagrams[0].slot_index == 3

    @pytest.mark.parametrize("position", ["\u00b2", "-1", "1.5", " "])
    def test_non_decimal_string_position_defaults_to_index(self, position) -> None:
        entries = [{"type": "mermaid", "code": "a"}, {"type": "mermaid", "code": "b", "position": position}]
        doc = parse_document(json.dumps(_payload(diagrams=entries)))
        assert doc.diagrams[1].slot_index == 1

    def test_unknown_type_kept(self) -> None:
        entries = [{"type": "graphviz", "code": "digraph { a -> b }"}]
        doc = parse_document(json.dumps(_payload(diagrams=entries)))
        assert doc.diagrams[0].kind is DiagramKind.UNKNOWN
        assert doc.diagrams[0].fence_tag == "graphviz"

    def test_missing_diagrams_is_empty(self) -> None:
        data = _payload()
        del data["diagrams"]
        doc = parse_document(json.dumps(data))
        assert doc.diagrams == ()

    def test_non_list_diagrams_is_empty(self) -> None:
        doc = parse_document(json.dumps(_payload(diagrams={"type": "mermaid"})))
        assert doc.diagrams == ()

    def test_non_object_entries_kept_as_unknown(self) -> None:
        entries = ["graph TD; A-->B", {"type": "mermaid", "code": "x"}, 42]
        doc = parse_document(json.dumps(_payload(diagrams=entries)))
        assert len(doc.diagrams) == 3
        assert doc.diagrams[0] == DiagramSpec(
            kind=DiagramKind.UNKNOWN, source_text="graph TD; A-->B", slot_index=0
        )
        assert doc.diagrams[1].kind is DiagramKind.MERMAID
        assert doc.diagrams[1].slot_index == 1
        assert doc.diagrams[2].source_text == ""
        assert doc.diagrams[2].fence_tag == "text"

    def test_referenced_slots(self) -> None:
        doc = parse_document(json.dumps(_payload()))
        assert doc.referenced_slots() == [0, 1]
        assert placeholder_token(1) == "{{DIAGRAM_1}}"

    def test_document_is_frozen(self) -> None:
        doc = parse_document(json.dumps(_payload()))
        with pytest.raises(AttributeError):
            doc.body = "changed"  # type: ignore[misc]


class TestRepairParse:
    """Tests for the repair pass on malformed input."""

    def test_trailing_comma(self) -> None:
        broken = '{"markdown": "Body {{DIAGRAM_0}}", "diagrams": [{"type": "mermaid", "code": "graph TD; A-->B", "position": 0},],}'
        fixed = '{"markdown": "Body {{DIAGRAM_0}}", "diagrams": [{"type": "mermaid", "code": "graph TD; A-->B", "position": 0}]}'
        assert parse_document(broken) == parse_document(fixed)

    def test_unescaped_control_character(self) -> None:
        broken = '{"markdown": "line one\nline two", "diagrams": []}'
        fixed = '{"markdown": "line one\\nline two", "diagrams": []}'
        assert parse_document(broken) == parse_document(fixed)

    def test_missing_closing_bracket(self) -> None:
        doc = parse_document('{"markdown": "Body", "diagrams": [{"type": "mermaid", "code": "graph LR; A-->B"}')
        assert doc.body == "Body"
        assert len(doc.diagrams) == 1


class TestParseFailures:
    """Tests for fatal parse errors."""

    def test_missing_markdown(self) -> None:
        with pytest.raises(ParseError, match="markdown"):
            parse_document(json.dumps({"diagrams": []}))

    def test_empty_markdown(self) -> None:
        with pytest.raises(ParseError):
            parse_document(json.dumps({"markdown": "", "diagrams": []}))

    def test_not_an_object(self) -> None:
        with pytest.raises(ParseError, match="not a JSON object"):
            parse_document(json.dumps(["markdown"]))

    def test_unparseable_text_keeps_raw(self) -> None:
        raw = "I am sorry, I cannot help with that."
        with pytest.raises(ParseError) as exc_info:
            parse_document(raw)
        assert exc_info.value.raw_text == raw
        assert "raw_text" in exc_info.value.details
