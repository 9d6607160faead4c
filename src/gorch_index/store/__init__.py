from gorch_index.store.filesystem import FilesystemDocumentStore, path_to_uri, uri_to_path
from gorch_index.store.memory import InMemoryDocument, InMemoryDocumentStore

__all__ = [
    "FilesystemDocumentStore",
    "InMemoryDocument",
    "InMemoryDocumentStore",
    "path_to_uri",
    "uri_to_path",
]
