from functools import lru_cache
from pathlib import PurePath, PurePosixPath
from urllib.parse import unquote, urlparse

from tree_sitter import Node, Query, QueryCursor, Tree
from tree_sitter_language_pack import get_language, get_parser

from gorch_index.models import Position, Span, StructDeclaration

_ENTRY_PACKAGE = "main"

_STRUCT_QUERY = """
(type_spec
  name: (type_identifier) @name
  type: (struct_type)) @spec
"""


@lru_cache(maxsize=1)
def _struct_query() -> Query:
    return Query(get_language("go"), _STRUCT_QUERY)


def _parse(source: str) -> tuple[Tree, bytes]:
    source_bytes = source.encode("utf-8")
    return get_parser("go").parse(source_bytes), source_bytes


def _struct_specs(root: Node) -> list[tuple[Node, Node]]:
    """Return ``(type_spec, name)`` pairs for every struct type, in source order."""
    specs: list[tuple[Node, Node]] = []
    for _, captures in QueryCursor(_struct_query()).matches(root):
        spec, name = captures.get("spec"), captures.get("name")
        if spec and name:
            specs.append((spec[0], name[0]))
    specs.sort(key=lambda pair: pair[0].start_byte)
    return specs


def _package_name(root: Node) -> str | None:
    for child in root.children:
        if child.type != "package_clause":
            continue
        for part in child.children:
            if part.type == "package_identifier" and part.text is not None:
                return part.text.decode("utf-8")
    return None


def _directory_name(path: str | PurePath, uri: str | None) -> str:
    name = PurePath(path).parent.name
    if name or uri is None:
        return name
    # Files at the workspace root take the root directory's name.
    return PurePosixPath(unquote(urlparse(uri).path)).parent.name


def _package_path(root: Node, path: str | PurePath, uri: str | None = None) -> str:
    name = _package_name(root)
    if name is None or name == _ENTRY_PACKAGE:
        return _directory_name(path, uri)
    return name


def package_path_for(source: str, path: str | PurePath, uri: str | None = None) -> str:
    """Return the grouping package of a Go file.

    ``package main`` carries no grouping information, so the enclosing
    directory name is used for it and for files without a package clause.
    """
    tree, _ = _parse(source)
    return _package_path(tree.root_node, path, uri)


class _Points:
    """Maps tree-sitter byte points to character positions."""

    def __init__(self, source_bytes: bytes) -> None:
        self._lines = source_bytes.split(b"\n")

    def position(self, point: tuple[int, int]) -> Position:
        row, column = point
        line = self._lines[row] if row < len(self._lines) else b""
        return Position(line=row, character=len(line[:column].decode("utf-8", errors="replace")))

    def span(self, node: Node) -> Span:
        return Span(start=self.position(tuple(node.start_point)), end=self.position(tuple(node.end_point)))


def extract_structs(
    source: str,
    uri: str,
    relative_path: str,
    last_modified: float = 0.0,
) -> list[StructDeclaration]:
    """Extract every ``type <Name> struct { ... }`` declared in a Go file."""
    tree, source_bytes = _parse(source)
    package_path = _package_path(tree.root_node, relative_path, uri)
    points = _Points(source_bytes)

    structs: list[StructDeclaration] = []
    for spec, name_node in _struct_specs(tree.root_node):
        if name_node.text is None:
            continue
        definition = source_bytes[spec.start_byte : spec.end_byte].decode("utf-8", errors="replace")
        structs.append(
            StructDeclaration(
                name=name_node.text.decode("utf-8"),
                package_path=package_path,
                document_uri=uri,
                relative_path=relative_path,
                span=points.span(spec),
                last_modified=last_modified,
                definition=f"type {definition}",
            )
        )
    return structs


def find_struct(
    source: str,
    name: str,
    uri: str,
    relative_path: str,
    last_modified: float = 0.0,
) -> StructDeclaration | None:
    for struct in extract_structs(source, uri, relative_path, last_modified):
        if struct.name == name:
            return struct
    return None
