class GorchIndexError(Exception):
    """Base class for errors raised by gorch-index."""


class DocumentReadError(GorchIndexError):
    def __init__(self, uri: str, reason: str) -> None:
        super().__init__(f"Failed to read {uri}: {reason}")
        self.uri = uri
        self.reason = reason


class SettingsError(GorchIndexError, ValueError):
    pass


REBUILD_BUSY_MESSAGE = "Index rebuild already in progress"
