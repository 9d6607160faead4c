"""Tokenizer and bracket-counting scanner for Gorch DSL documents.

The scanner understands just enough of the language to find registration
blocks, operator entries, fragment definitions, fragment expansions and
operator calls. Text that does not match one of these shapes is skipped
without raising.
"""

from __future__ import annotations

import logging
import re
from bisect import bisect_right
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from gorch_index.core.keywords import is_keyword
from gorch_index.models import FragmentDeclaration, OperatorDeclaration, Position, Span

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(
    r"""
      (?P<ws>\s+)
    | (?P<comment>//[^\n]*|/\*.*?(?:\*/|\Z))
    | (?P<string>"(?P<body>(?:[^"\\\n]|\\.)*)(?P<quote>"?))
    | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<number>\d+)
    | (?P<punct>.)
    """,
    re.VERBOSE | re.DOTALL,
)
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


class TokenKind(str, Enum):
    IDENT = "ident"
    STRING = "string"
    NUMBER = "number"
    PUNCT = "punct"


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    value: str
    start: int
    end: int
    closed: bool = True

    def is_punct(self, char: str) -> bool:
        return self.kind is TokenKind.PUNCT and self.value == char


def tokenize(text: str) -> list[Token]:
    """Split *text* into tokens, dropping whitespace and comments.

    String tokens carry their unescaped contents; ``closed`` is False when the
    closing quote is missing on the same line.
    """
    tokens: list[Token] = []
    for match in _TOKEN_RE.finditer(text):
        group = match.lastgroup
        if group in ("ws", "comment"):
            continue
        if group == "string":
            body = _ESCAPE_RE.sub(r"\1", match.group("body"))
            closed = bool(match.group("quote"))
            tokens.append(Token(TokenKind.STRING, body, match.start(), match.end(), closed))
        else:
            tokens.append(Token(TokenKind(group), match.group(), match.start(), match.end()))
    return tokens


class LineIndex:
    """Converts between character offsets and line/character positions."""

    def __init__(self, text: str) -> None:
        self._length = len(text)
        self._starts = [0] + [m.end() for m in re.finditer("\n", text)]

    def position(self, offset: int) -> Position:
        offset = max(0, min(offset, self._length))
        line = bisect_right(self._starts, offset) - 1
        return Position(line=line, character=offset - self._starts[line])

    def offset(self, position: Position) -> int:
        if position.line >= len(self._starts):
            return self._length
        line_start = self._starts[position.line]
        if position.line + 1 < len(self._starts):
            line_end = self._starts[position.line + 1] - 1
        else:
            line_end = self._length
        return min(line_start + position.character, line_end)

    def span(self, start: int, end: int) -> Span:
        return Span(start=self.position(start), end=self.position(end))


# ---------------------------------------------------------------------------
# Scan results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Block:
    """A keyword block such as ``REGISTER("x") { ... }`` with brace-balanced extent."""

    keyword: str
    name: str
    start: int
    end: int
    span: Span
    name_span: Span
    closed: bool

    def contains_offset(self, offset: int) -> bool:
        return self.start <= offset <= self.end


@dataclass(frozen=True, slots=True)
class Expansion:
    name: str
    span: Span
    name_span: Span


@dataclass(frozen=True, slots=True)
class OperatorCall:
    name: str
    span: Span


@dataclass(frozen=True, slots=True)
class DslDeclarations:
    operators: list[OperatorDeclaration]
    fragments: list[FragmentDeclaration]


class SymbolKind(str, Enum):
    STRUCT = "struct"
    FRAGMENT = "fragment"
    OPERATOR = "operator"
    KEYWORD = "keyword"


@dataclass(frozen=True, slots=True)
class SymbolTarget:
    """What the cursor points at: a name and the kind of declaration to look for."""

    kind: SymbolKind
    name: str
    span: Span


@dataclass(frozen=True, slots=True)
class _OperatorEntry:
    block: Block
    relative_path: Token
    struct_name: Token
    operator_name: Token | None
    sequence: Token
    start: int
    end: int


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


class ParsedDsl:
    """A tokenized DSL document with lazily computed structure."""

    def __init__(self, text: str, uri: str = "") -> None:
        self.text = text
        self.uri = uri
        self.lines = LineIndex(text)
        self._tokens = tokenize(text)
        self._registrations: list[Block] | None = None
        self._entries: list[_OperatorEntry] | None = None

    # -- structure ---------------------------------------------------------

    def registration_blocks(self) -> list[Block]:
        if self._registrations is None:
            self._registrations = list(self._blocks("REGISTER", nested=False))
        return list(self._registrations)

    def fragment_blocks(self) -> list[Block]:
        return list(self._blocks("FRAGMENT", nested=True))

    def in_registration(self, offset: int) -> bool:
        return any(block.contains_offset(offset) for block in self.registration_blocks())

    def expansions(self) -> list[Expansion]:
        found: list[Expansion] = []
        tokens = self._tokens
        for i, tok in enumerate(tokens):
            if tok.kind is not TokenKind.IDENT or tok.value != "UNFOLD":
                continue
            name = self._string_call(i)
            if name is None:
                continue
            close = tokens[i + 3]
            found.append(
                Expansion(
                    name=name.value,
                    span=self.lines.span(tok.start, close.end),
                    name_span=self._string_span(name),
                )
            )
        return found

    def operator_calls(self) -> list[OperatorCall]:
        """Identifiers directly followed by ``(`` outside registration blocks."""
        calls: list[OperatorCall] = []
        tokens = self._tokens
        for tok, nxt in zip(tokens, tokens[1:]):
            if tok.kind is not TokenKind.IDENT or not nxt.is_punct("("):
                continue
            if is_keyword(tok.value) or self.in_registration(tok.start):
                continue
            calls.append(OperatorCall(name=tok.value, span=self.lines.span(tok.start, tok.end)))
        return calls

    # -- declarations ------------------------------------------------------

    def operators(self, discovered_at: datetime | None = None) -> list[OperatorDeclaration]:
        stamp = discovered_at or datetime.now(timezone.utc)
        declarations: list[OperatorDeclaration] = []
        for entry in self._operator_entries():
            name_token = entry.operator_name or entry.struct_name
            declarations.append(
                OperatorDeclaration(
                    name=name_token.value,
                    struct_name=entry.struct_name.value,
                    package_path=entry.block.name,
                    relative_path=entry.relative_path.value,
                    sequence=int(entry.sequence.value),
                    document_uri=self.uri,
                    span=self.lines.span(entry.start, entry.end),
                    struct_name_span=self._string_span(entry.struct_name),
                    discovered_at=stamp,
                )
            )
        return declarations

    def fragments(self) -> list[FragmentDeclaration]:
        return [
            FragmentDeclaration(name=block.name, document_uri=self.uri, span=block.span, name_span=block.name_span)
            for block in self.fragment_blocks()
        ]

    def declarations(self, discovered_at: datetime | None = None) -> DslDeclarations:
        return DslDeclarations(operators=self.operators(discovered_at), fragments=self.fragments())

    # -- cursor ------------------------------------------------------------

    def symbol_at(self, position: Position) -> SymbolTarget | None:
        """Classify the token under *position*.

        Returns a struct target for the struct-name argument of an operator
        entry, a fragment target for the name inside ``UNFOLD``, a keyword
        target for reserved words and an operator target for any other bare
        identifier outside registration blocks.
        """
        offset = self.lines.offset(position)
        token = self._token_at(offset)
        if token is None:
            return None

        if token.kind is TokenKind.STRING:
            for entry in self._operator_entries():
                if entry.struct_name is token:
                    return SymbolTarget(SymbolKind.STRUCT, token.value, self._string_span(token))
            for expansion_name in self._expansion_name_tokens():
                if expansion_name is token:
                    return SymbolTarget(SymbolKind.FRAGMENT, token.value, self._string_span(token))
            return None

        if token.kind is not TokenKind.IDENT:
            return None
        span = self.lines.span(token.start, token.end)
        if is_keyword(token.value):
            return SymbolTarget(SymbolKind.KEYWORD, token.value, span)
        if self.in_registration(token.start):
            return None
        return SymbolTarget(SymbolKind.OPERATOR, token.value, span)

    # -- internals ---------------------------------------------------------

    def _blocks(self, keyword: str, nested: bool) -> Iterator[Block]:
        tokens = self._tokens
        i = 0
        while i < len(tokens):
            tok = tokens[i]
            if tok.kind is not TokenKind.IDENT or tok.value != keyword:
                i += 1
                continue
            name = self._string_call(i)
            if name is None or i + 4 >= len(tokens) or not tokens[i + 4].is_punct("{"):
                logger.debug("Skipping malformed %s at offset %d in %s", keyword, tok.start, self.uri)
                i += 1
                continue
            close = self._matching_brace(i + 4)
            end = tokens[close].end if close is not None else len(self.text)
            yield Block(
                keyword=keyword,
                name=name.value,
                start=tok.start,
                end=end,
                span=self.lines.span(tok.start, end),
                name_span=self._string_span(name),
                closed=close is not None,
            )
            if nested or close is None:
                i += 5
            else:
                i = close + 1

    def _matching_brace(self, open_index: int) -> int | None:
        depth = 0
        for j in range(open_index, len(self._tokens)):
            tok = self._tokens[j]
            if tok.is_punct("{"):
                depth += 1
            elif tok.is_punct("}"):
                depth -= 1
                if depth == 0:
                    return j
        return None

    def _string_call(self, i: int) -> Token | None:
        """Return the string argument of ``KEYWORD("name")`` starting at token *i*."""
        tokens = self._tokens
        if i + 3 >= len(tokens):
            return None
        open_paren, arg, close_paren = tokens[i + 1], tokens[i + 2], tokens[i + 3]
        if not open_paren.is_punct("(") or not close_paren.is_punct(")"):
            return None
        if arg.kind is not TokenKind.STRING or not arg.closed or not arg.value:
            return None
        return arg

    def _operator_entries(self) -> list[_OperatorEntry]:
        if self._entries is None:
            self._entries = []
            for block in self.registration_blocks():
                self._entries.extend(self._entries_in(block))
        return self._entries

    def _entries_in(self, block: Block) -> Iterator[_OperatorEntry]:
        tokens = self._tokens
        for i, tok in enumerate(tokens):
            if tok.start <= block.start or tok.start >= block.end:
                continue
            if tok.kind is not TokenKind.IDENT or tok.value != "OPERATOR":
                continue
            entry = self._parse_entry(block, i)
            if entry is None:
                logger.debug("Skipping malformed OPERATOR at offset %d in %s", tok.start, self.uri)
                continue
            yield entry

    def _parse_entry(self, block: Block, i: int) -> _OperatorEntry | None:
        # OPERATOR ( "rel" , "Struct" [, "name"] , 12 )
        tokens = self._tokens
        window = tokens[i + 1 : i + 11]
        if len(window) < 7 or not window[0].is_punct("("):
            return None
        args: list[Token] = []
        j = 1
        while j < len(window):
            arg = window[j]
            if arg.kind not in (TokenKind.STRING, TokenKind.NUMBER):
                return None
            args.append(arg)
            if j + 1 >= len(window):
                return None
            sep = window[j + 1]
            if sep.is_punct(")"):
                break
            if not sep.is_punct(","):
                return None
            j += 2
        else:
            return None

        if len(args) not in (3, 4) or args[-1].kind is not TokenKind.NUMBER:
            return None
        strings = args[:-1]
        if any(arg.kind is not TokenKind.STRING or not arg.closed or not arg.value for arg in strings):
            return None
        close = window[j + 1]
        return _OperatorEntry(
            block=block,
            relative_path=strings[0],
            struct_name=strings[1],
            operator_name=strings[2] if len(strings) == 3 else None,
            sequence=args[-1],
            start=tokens[i].start,
            end=close.end,
        )

    def _expansion_name_tokens(self) -> Iterator[Token]:
        for i, tok in enumerate(self._tokens):
            if tok.kind is TokenKind.IDENT and tok.value == "UNFOLD":
                name = self._string_call(i)
                if name is not None:
                    yield name

    def _token_at(self, offset: int) -> Token | None:
        # A word ending at the cursor beats punctuation starting there.
        candidate: Token | None = None
        for tok in self._tokens:
            if tok.start > offset:
                break
            if tok.start <= offset < tok.end:
                if tok.kind is TokenKind.PUNCT and candidate is not None:
                    return candidate
                return tok
            if tok.end == offset and tok.kind is not TokenKind.PUNCT:
                candidate = tok
        return candidate

    def _string_span(self, tok: Token) -> Span:
        end = tok.end - 1 if tok.closed else tok.end
        return self.lines.span(tok.start + 1, end)


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def extract_declarations(text: str, uri: str, discovered_at: datetime | None = None) -> DslDeclarations:
    """Collect operator and fragment declarations from one DSL document."""
    return ParsedDsl(text, uri).declarations(discovered_at)


def registration_blocks(text: str) -> list[Block]:
    return ParsedDsl(text).registration_blocks()
