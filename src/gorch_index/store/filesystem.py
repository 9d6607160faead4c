import asyncio
import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

from gorch_index.errors import DocumentReadError
from gorch_index.models import DocumentKind, SourceDocument

logger = logging.getLogger(__name__)

DSL_SUFFIX = ".gorch"
HOST_SUFFIX = ".go"

_KIND_BY_SUFFIX = {
    DSL_SUFFIX: DocumentKind.DSL,
    HOST_SUFFIX: DocumentKind.HOST,
}


def path_to_uri(path: str | Path) -> str:
    return Path(path).resolve().as_uri()


def uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme and parsed.scheme != "file":
        raise ValueError(f"Unsupported URI scheme: {uri}")
    return Path(unquote(parsed.path)) if parsed.scheme else Path(uri)


class FilesystemDocumentStore:
    """Serve ``.gorch`` and ``.go`` files below a workspace root."""

    def __init__(self, root: str | Path, exclude_dirs: tuple[str, ...] = ("node_modules", ".git", "vendor")) -> None:
        self.root = Path(root).resolve()
        self._exclude_dirs = frozenset(exclude_dirs)

    def kind_of(self, uri: str) -> DocumentKind | None:
        return _KIND_BY_SUFFIX.get(uri_to_path(uri).suffix)

    def relative_path(self, uri: str) -> str:
        path = uri_to_path(uri)
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()

    async def list_documents(self, kind: DocumentKind) -> list[str]:
        suffix = DSL_SUFFIX if kind is DocumentKind.DSL else HOST_SUFFIX
        paths = await asyncio.to_thread(self._glob, suffix)
        logger.debug("Found %d %s file(s) under %s", len(paths), suffix, self.root)
        return [path.as_uri() for path in paths]

    async def read(self, uri: str) -> SourceDocument:
        kind = self.kind_of(uri)
        if kind is None:
            raise DocumentReadError(uri, "unsupported file type")
        path = uri_to_path(uri)
        try:
            text, revision = await asyncio.to_thread(self._read, path)
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentReadError(uri, str(exc)) from exc
        return SourceDocument(uri=uri, kind=kind, text=text, revision=revision)

    async def last_modified(self, uri: str) -> float:
        try:
            stat = await asyncio.to_thread(uri_to_path(uri).stat)
        except OSError as exc:
            raise DocumentReadError(uri, str(exc)) from exc
        return stat.st_mtime

    def _glob(self, suffix: str) -> list[Path]:
        return sorted(
            path
            for path in self.root.rglob(f"*{suffix}")
            if path.is_file() and not self._exclude_dirs.intersection(path.relative_to(self.root).parts[:-1])
        )

    @staticmethod
    def _read(path: Path) -> tuple[str, int]:
        text = path.read_text(encoding="utf-8")
        return text, path.stat().st_mtime_ns
