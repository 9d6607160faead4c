from dataclasses import dataclass
from pathlib import PurePosixPath

from gorch_index.errors import DocumentReadError
from gorch_index.models import DocumentKind, SourceDocument

_KIND_BY_SUFFIX = {
    ".gorch": DocumentKind.DSL,
    ".go": DocumentKind.HOST,
}


@dataclass
class InMemoryDocument:
    text: str
    revision: int
    modified: float


class InMemoryDocumentStore:
    """Document store backed by a dict, keyed by workspace-relative paths."""

    def __init__(self, documents: dict[str, str] | None = None) -> None:
        self.documents: dict[str, InMemoryDocument] = {}
        self.unreadable: set[str] = set()
        self._clock = 0
        for uri, text in (documents or {}).items():
            self.put(uri, text)

    def put(self, uri: str, text: str) -> None:
        self._clock += 1
        self.documents[uri] = InMemoryDocument(text=text, revision=self._clock, modified=float(self._clock))

    def delete(self, uri: str) -> None:
        self.documents.pop(uri, None)

    def kind_of(self, uri: str) -> DocumentKind | None:
        return _KIND_BY_SUFFIX.get(PurePosixPath(uri).suffix)

    def relative_path(self, uri: str) -> str:
        return uri

    async def list_documents(self, kind: DocumentKind) -> list[str]:
        return sorted(uri for uri in self.documents if self.kind_of(uri) is kind)

    async def read(self, uri: str) -> SourceDocument:
        kind = self.kind_of(uri)
        document = self.documents.get(uri)
        if kind is None or document is None:
            raise DocumentReadError(uri, "no such document")
        if uri in self.unreadable:
            raise DocumentReadError(uri, "permission denied")
        return SourceDocument(uri=uri, kind=kind, text=document.text, revision=document.revision)

    async def last_modified(self, uri: str) -> float:
        document = self.documents.get(uri)
        if document is None:
            raise DocumentReadError(uri, "no such document")
        return document.modified
