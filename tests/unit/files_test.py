import pytest

from filehub.core.files import build_text_preview, file_category, format_file_size, sniff_mime


@pytest.mark.parametrize(
    ("name", "declared", "expected"),
    [
        ("notes.txt", None, "text/plain"),
        ("photo.png", None, "image/png"),
        ("unknown.zzz", None, "application/octet-stream"),
        ("notes.txt", "text/markdown", "text/markdown"),
    ],
)
def test_sniff_mime(name: str, declared: str | None, expected: str) -> None:
    assert sniff_mime(name, declared) == expected


@pytest.mark.parametrize(
    ("mime_type", "category"),
    [
        ("image/jpeg", "image"),
        ("text/html", "html"),
        ("text/plain", "text"),
        ("application/json", "text"),
        ("application/pdf", "pdf"),
        ("video/mp4", "video"),
        ("audio/mpeg", "audio"),
        ("application/zip", "other"),
    ],
)
def test_file_category(mime_type: str, category: str) -> None:
    assert file_category(mime_type) == category


def test_preview_is_truncated_text() -> None:
    assert build_text_preview(b"x" * 800, "text/plain") == "x" * 500
    assert build_text_preview(b"abc", "text/plain", limit=2) == "ab"


def test_preview_tolerates_invalid_utf8() -> None:
    preview = build_text_preview(b"ok \xff\xfe", "application/json")
    assert preview is not None
    assert preview.startswith("ok ")


def test_binary_has_no_preview() -> None:
    assert build_text_preview(b"\x00\x01", "image/png") is None


@pytest.mark.parametrize(
    ("size", "expected"),
    [(0, "0 B"), (512, "512 B"), (1536, "1.5 KB"), (1024 * 1024, "1 MB"), (5 * 1024**3, "5 GB")],
)
def test_format_file_size(size: int, expected: str) -> None:
    assert format_file_size(size) == expected
