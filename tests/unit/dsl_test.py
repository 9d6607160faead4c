"""Unit tests for the Gorch DSL scanner."""

from datetime import datetime, timezone

from gorch_index.core.dsl import (
    LineIndex,
    ParsedDsl,
    SymbolKind,
    TokenKind,
    extract_declarations,
    registration_blocks,
    tokenize,
)
from gorch_index.models import Position

URI = "flows/registry.gorch"


class TestTokenize:
    def test_skips_whitespace_and_comments(self) -> None:
        tokens = tokenize('// line\nREGISTER /* block\ncomment */ ("x")')
        assert [t.value for t in tokens] == ["REGISTER", "(", "x", ")"]

    def test_string_contents_are_unescaped(self) -> None:
        (token,) = tokenize(r'"a\"b\\"')
        assert token.kind is TokenKind.STRING
        assert token.value == 'a"b\\'
        assert token.closed is True

    def test_unterminated_string_is_not_closed(self) -> None:
        tokens = tokenize('"open\nNEXT')
        assert tokens[0].kind is TokenKind.STRING
        assert tokens[0].closed is False
        assert tokens[1].value == "NEXT"

    def test_numbers_and_identifiers(self) -> None:
        kinds = [t.kind for t in tokenize("op_1 42 ,")]
        assert kinds == [TokenKind.IDENT, TokenKind.NUMBER, TokenKind.PUNCT]


class TestLineIndex:
    def test_position_and_offset(self) -> None:
        lines = LineIndex("ab\ncde\n")
        assert lines.position(4) == Position(line=1, character=1)
        assert lines.offset(Position(line=1, character=1)) == 4

    def test_offset_clamps_to_line_end(self) -> None:
        lines = LineIndex("ab\ncde")
        assert lines.offset(Position(line=0, character=99)) == 2
        assert lines.offset(Position(line=9, character=0)) == 6


class TestOperators:
    def test_extracts_every_entry(self, registry_dsl: str) -> None:
        operators = extract_declarations(registry_dsl, URI).operators
        assert [op.name for op in operators] == ["fetch", "ParseOp", "store"]
        assert [op.sequence for op in operators] == [1, 2, 0]
        assert {op.package_path for op in operators} == {"github.com/acme/flows/ops"}
        assert all(op.document_uri == URI for op in operators)

    def test_three_argument_form_uses_struct_name(self, registry_dsl: str) -> None:
        parse = extract_declarations(registry_dsl, URI).operators[1]
        assert parse.name == "ParseOp"
        assert parse.struct_name == "ParseOp"
        assert parse.relative_path == "parse/parse.go"

    def test_struct_name_span_excludes_quotes(self, registry_dsl: str) -> None:
        fetch = extract_declarations(registry_dsl, URI).operators[0]
        assert fetch.struct_name_span.start == Position(line=1, character=32)
        assert fetch.struct_name_span.end == Position(line=1, character=39)
        assert fetch.span.start == Position(line=1, character=4)

    def test_uses_given_discovery_time(self, registry_dsl: str) -> None:
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        operators = extract_declarations(registry_dsl, URI, stamp).operators
        assert {op.discovered_at for op in operators} == {stamp}

    def test_malformed_entries_are_skipped(self) -> None:
        text = (
            'REGISTER("pkg") {\n'
            '    OPERATOR("a.go", 5)\n'
            '    OPERATOR("b.go", "B", "b", "seven")\n'
            '    OPERATOR("c.go", "", 3)\n'
            '    OPERATOR("d.go", "D", 4)\n'
            "}\n"
        )
        operators = extract_declarations(text, URI).operators
        assert [op.name for op in operators] == ["D"]

    def test_entries_outside_registration_are_ignored(self) -> None:
        text = 'OPERATOR("a.go", "A", 1)\nREGISTER("pkg") {\n    OPERATOR("b.go", "B", 2)\n}\n'
        assert [op.name for op in extract_declarations(text, URI).operators] == ["B"]

    def test_commented_entries_are_ignored(self) -> None:
        text = 'REGISTER("pkg") {\n    // OPERATOR("a.go", "Hidden", 1)\n    OPERATOR("b.go", "B", 2)\n}\n'
        assert [op.name for op in extract_declarations(text, URI).operators] == ["B"]

    def test_unclosed_block_runs_to_end_of_document(self) -> None:
        text = 'REGISTER("pkg") {\n    OPERATOR("a.go", "A", 1)\n    OPERATOR("b.go", "B", 2)\n'
        (block,) = registration_blocks(text)
        assert block.closed is False
        assert block.end == len(text)
        assert [op.name for op in extract_declarations(text, URI).operators] == ["A", "B"]

    def test_multiple_registration_blocks(self) -> None:
        text = 'REGISTER("one") {\n OPERATOR("a.go", "A", 1)\n}\nREGISTER("two") {\n OPERATOR("b.go", "B", 2)\n}\n'
        operators = extract_declarations(text, URI).operators
        assert [(op.name, op.package_path) for op in operators] == [("A", "one"), ("B", "two")]

    def test_malformed_register_header_is_skipped(self) -> None:
        assert registration_blocks('REGISTER(pkg) {\n OPERATOR("a.go", "A", 1)\n}\n') == []


class TestFragments:
    def test_extracts_fragments(self, flow_dsl: str) -> None:
        (fragment,) = extract_declarations(flow_dsl, "flows/main.gorch").fragments
        assert fragment.name == "common"
        assert fragment.span.start == Position(line=0, character=0)
        assert fragment.span.end == Position(line=3, character=1)
        assert fragment.name_span.start == Position(line=0, character=10)

    def test_nested_fragments_are_found(self) -> None:
        text = 'FRAGMENT("outer") {\n    FRAGMENT("inner") {\n        a()\n    }\n}\n'
        names = [f.name for f in extract_declarations(text, URI).fragments]
        assert names == ["outer", "inner"]


class TestUsages:
    def test_expansions(self, flow_dsl: str) -> None:
        (expansion,) = ParsedDsl(flow_dsl).expansions()
        assert expansion.name == "common"
        assert expansion.span.start == Position(line=6, character=4)

    def test_operator_calls_skip_keywords(self, flow_dsl: str) -> None:
        names = [call.name for call in ParsedDsl(flow_dsl).operator_calls()]
        assert names == ["fetch", "ParseOp", "store"]

    def test_calls_inside_registration_are_ignored(self) -> None:
        text = 'REGISTER("pkg") {\n    helper()\n}\nSTART("m") {\n    used()\n}\n'
        assert [call.name for call in ParsedDsl(text).operator_calls()] == ["used"]

    def test_calls_inside_comments_are_ignored(self) -> None:
        text = 'START("m") {\n    // ghost()\n    real()\n}\n'
        assert [call.name for call in ParsedDsl(text).operator_calls()] == ["real"]


class TestSymbolAt:
    def test_struct_name_argument(self, registry_dsl: str) -> None:
        target = ParsedDsl(registry_dsl).symbol_at(Position(line=1, character=35))
        assert target is not None
        assert target.kind is SymbolKind.STRUCT
        assert target.name == "FetchOp"

    def test_unfold_argument(self, flow_dsl: str) -> None:
        target = ParsedDsl(flow_dsl).symbol_at(Position(line=6, character=13))
        assert target is not None
        assert target.kind is SymbolKind.FRAGMENT
        assert target.name == "common"

    def test_keyword(self, flow_dsl: str) -> None:
        target = ParsedDsl(flow_dsl).symbol_at(Position(line=5, character=2))
        assert target is not None
        assert target.kind is SymbolKind.KEYWORD
        assert target.name == "START"

    def test_operator_call(self, flow_dsl: str) -> None:
        target = ParsedDsl(flow_dsl).symbol_at(Position(line=1, character=6))
        assert target is not None
        assert target.kind is SymbolKind.OPERATOR
        assert target.name == "fetch"

    def test_cursor_at_end_of_identifier(self, flow_dsl: str) -> None:
        target = ParsedDsl(flow_dsl).symbol_at(Position(line=1, character=9))
        assert target is not None
        assert target.name == "fetch"

    def test_other_strings_resolve_to_nothing(self, registry_dsl: str) -> None:
        assert ParsedDsl(registry_dsl).symbol_at(Position(line=0, character=12)) is None

    def test_whitespace_resolves_to_nothing(self, flow_dsl: str) -> None:
        assert ParsedDsl(flow_dsl).symbol_at(Position(line=4, character=0)) is None
