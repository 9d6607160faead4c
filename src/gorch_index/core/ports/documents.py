from typing import Protocol

from gorch_index.models import DocumentKind, SourceDocument


class DocumentStore(Protocol):
    async def list_documents(self, kind: DocumentKind) -> list[str]: ...

    async def read(self, uri: str) -> SourceDocument: ...

    async def last_modified(self, uri: str) -> float: ...

    def relative_path(self, uri: str) -> str: ...

    def kind_of(self, uri: str) -> DocumentKind | None: ...
