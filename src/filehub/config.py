import os
import re
from dataclasses import dataclass
from pathlib import Path

_KIB = 1024
_MIB = 1024 * _KIB

_SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*([kmg]?)i?b?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"": 1, "k": _KIB, "m": _MIB, "g": 1024 * _MIB}


def parse_size(value: str) -> int:
    """Parse ``"2048"``, ``"512K"``, ``"5MiB"`` or ``"1g"`` into bytes."""
    match = _SIZE_PATTERN.match(value)
    if match is None:
        raise ValueError(f"Invalid byte size: {value!r}")
    number, unit = match.groups()
    return int(number) * _SIZE_UNITS[unit.lower()]


def _env_size(name: str, default: int) -> int:
    size = _env_optional_size(name)
    return default if size is None else size


def _env_optional_size(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return parse_size(raw)


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    remote_url: str | None = None
    principal_email: str | None = None
    inline_threshold: int = 1 * _MIB
    local_ceiling: int = 5 * _MIB
    inline_capacity: int | None = 5 * _MIB
    device_capacity: int | None = None
    sync_debounce: float = 1.0
    preview_chars: int = 500

    @property
    def local_db_path(self) -> Path:
        return self.data_dir / "filehub.sqlite3"

    @property
    def folders_path(self) -> Path:
        return self.data_dir / "folders.json"

    @property
    def device_dir(self) -> Path:
        return self.data_dir / "blobs"

    @classmethod
    def from_env(cls) -> "Settings":
        data_dir = Path(os.getenv("FILEHUB_DATA_DIR", "~/.filehub")).expanduser()
        inline_threshold = _env_size("FILEHUB_INLINE_THRESHOLD", 1 * _MIB)
        local_ceiling = _env_size("FILEHUB_LOCAL_CEILING", 5 * inline_threshold)
        return cls(
            data_dir=data_dir,
            remote_url=os.getenv("FILEHUB_REMOTE_URL") or None,
            principal_email=os.getenv("FILEHUB_PRINCIPAL_EMAIL") or None,
            inline_threshold=inline_threshold,
            local_ceiling=local_ceiling,
            inline_capacity=_env_size("FILEHUB_INLINE_CAPACITY", 5 * _MIB),
            device_capacity=_env_optional_size("FILEHUB_DEVICE_CAPACITY"),
            sync_debounce=float(os.getenv("FILEHUB_SYNC_DEBOUNCE", "1.0")),
            preview_chars=int(os.getenv("FILEHUB_PREVIEW_CHARS", "500")),
        )
