from pathlib import Path

import pytest

from filehub.config import Settings, parse_size


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("2048", 2048), ("512K", 512 * 1024), ("5MiB", 5 * 1024 * 1024), ("1g", 1024**3), (" 3 MB ", 3 * 1024 * 1024)],
)
def test_parse_size(raw: str, expected: int) -> None:
    assert parse_size(raw) == expected


def test_parse_size_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_size("lots")


def test_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "FILEHUB_REMOTE_URL",
        "FILEHUB_PRINCIPAL_EMAIL",
        "FILEHUB_INLINE_THRESHOLD",
        "FILEHUB_LOCAL_CEILING",
        "FILEHUB_INLINE_CAPACITY",
        "FILEHUB_DEVICE_CAPACITY",
        "FILEHUB_SYNC_DEBOUNCE",
        "FILEHUB_PREVIEW_CHARS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("FILEHUB_DATA_DIR", str(tmp_path))

    settings = Settings.from_env()

    assert settings.data_dir == tmp_path
    assert settings.remote_url is None
    assert settings.inline_threshold == 1024 * 1024
    assert settings.local_ceiling == 5 * 1024 * 1024
    assert settings.device_capacity is None
    assert settings.sync_debounce == 1.0
    assert settings.local_db_path == tmp_path / "filehub.sqlite3"
    assert settings.device_dir == tmp_path / "blobs"


def test_ceiling_follows_threshold(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FILEHUB_INLINE_THRESHOLD", "100K")
    monkeypatch.delenv("FILEHUB_LOCAL_CEILING", raising=False)

    assert Settings.from_env().local_ceiling == 500 * 1024


def test_blank_sizes_fall_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FILEHUB_INLINE_THRESHOLD", " ")
    monkeypatch.setenv("FILEHUB_INLINE_CAPACITY", "")
    monkeypatch.setenv("FILEHUB_DEVICE_CAPACITY", "2G")
    monkeypatch.delenv("FILEHUB_LOCAL_CEILING", raising=False)

    settings = Settings.from_env()

    assert settings.inline_threshold == 1024 * 1024
    assert settings.local_ceiling == 5 * 1024 * 1024
    assert settings.inline_capacity == 5 * 1024 * 1024
    assert settings.device_capacity == 2 * 1024**3
