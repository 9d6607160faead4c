import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gorch_index.errors import SettingsError

_DEFAULT_EXCLUDES = ("node_modules", ".git", "vendor")

_ENV_FIELDS = {
    "GORCH_INDEX_DEBOUNCE_SECONDS": "debounce_seconds",
    "GORCH_INDEX_TRAILING_REBUILD": "trailing_rebuild",
    "GORCH_INDEX_USE_GOPLS": "use_gopls",
}


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    root: Path = Field(default_factory=Path.cwd)
    debounce_seconds: float = Field(default=1.0, ge=0.0)
    trailing_rebuild: bool = False
    use_gopls: bool = True
    exclude_dirs: tuple[str, ...] = _DEFAULT_EXCLUDES


def load_settings(root: str | Path | None = None) -> Settings:
    """Build ``Settings`` from ``GORCH_INDEX_*`` environment variables.

    An explicit *root* wins over ``GORCH_INDEX_ROOT``. Unset variables keep
    the model defaults.
    """
    values: dict[str, Any] = {
        "root": Path(root or os.getenv("GORCH_INDEX_ROOT") or Path.cwd()).resolve(),
    }
    for env_name, field in _ENV_FIELDS.items():
        raw = os.getenv(env_name)
        if raw is not None:
            values[field] = raw.strip()
    excludes = os.getenv("GORCH_INDEX_EXCLUDE")
    if excludes is not None:
        values["exclude_dirs"] = tuple(part.strip() for part in excludes.split(",") if part.strip())
    try:
        return Settings.model_validate(values)
    except ValidationError as exc:
        raise SettingsError(str(exc)) from exc
