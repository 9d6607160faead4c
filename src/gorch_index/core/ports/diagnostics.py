from typing import Protocol

from gorch_index.models import Diagnostic


class DiagnosticSink(Protocol):
    def publish(self, uri: str, diagnostics: list[Diagnostic]) -> None: ...

    def clear(self, uri: str) -> None: ...
