from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Position(_Frozen):
    """Zero-based line/character position inside a document."""

    line: int = Field(ge=0)
    character: int = Field(ge=0)


class Span(_Frozen):
    start: Position
    end: Position

    def contains(self, position: Position) -> bool:
        start = (self.start.line, self.start.character)
        end = (self.end.line, self.end.character)
        return start <= (position.line, position.character) <= end


class DocumentKind(str, Enum):
    DSL = "dsl"
    HOST = "host"


class SourceDocument(_Frozen):
    uri: str
    kind: DocumentKind
    text: str
    revision: int = 0


class OperatorDeclaration(_Frozen):
    name: str
    struct_name: str
    package_path: str
    relative_path: str
    sequence: int = Field(ge=0)
    document_uri: str
    span: Span
    struct_name_span: Span
    discovered_at: datetime


class FragmentDeclaration(_Frozen):
    name: str
    document_uri: str
    span: Span
    name_span: Span


class StructDeclaration(_Frozen):
    name: str
    package_path: str
    document_uri: str
    relative_path: str
    span: Span
    last_modified: float
    definition: str = ""


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class DiagnosticCode(str, Enum):
    DUPLICATE_NAME = "duplicate-name"
    DUPLICATE_SEQUENCE = "duplicate-sequence"
    UNREGISTERED_OPERATOR = "unregistered-operator"
    FRAGMENT_NOT_FOUND = "fragment-not-found"
    STRUCT_NOT_FOUND = "struct-not-found"


class Diagnostic(_Frozen):
    severity: Severity
    code: DiagnosticCode
    message: str
    document_uri: str
    span: Span


class RebuildResult(_Frozen):
    success: bool
    operator_count: int = 0
    fragment_count: int = 0
    struct_count: int = 0
    duration_ms: float = 0.0
    errors: list[str] = Field(default_factory=list)
    version: int = 0


class Location(_Frozen):
    uri: str
    span: Span


class Hover(_Frozen):
    contents: str
    span: Span | None = None
