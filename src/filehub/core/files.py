import mimetypes
from typing import Literal

FileCategory = Literal["image", "text", "html", "pdf", "video", "audio", "other"]

_DEFAULT_MIME = "application/octet-stream"
_SIZE_UNITS = ("B", "KB", "MB", "GB")


def sniff_mime(name: str, declared: str | None = None) -> str:
    """Prefer the declared type, fall back to the extension, then octet-stream."""
    if declared:
        return declared
    guess, _ = mimetypes.guess_type(name)
    return guess or _DEFAULT_MIME


def is_text_mime(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type == "application/json"


def file_category(mime_type: str) -> FileCategory:
    if mime_type.startswith("image/"):
        return "image"
    if "html" in mime_type:
        return "html"
    if is_text_mime(mime_type):
        return "text"
    if mime_type == "application/pdf":
        return "pdf"
    if mime_type.startswith("video/"):
        return "video"
    if mime_type.startswith("audio/"):
        return "audio"
    return "other"


def build_text_preview(data: bytes, mime_type: str, limit: int = 500) -> str | None:
    """Return the first ``limit`` characters of a text file, else ``None``."""
    if not is_text_mime(mime_type):
        return None
    return data.decode("utf-8", errors="replace")[:limit]


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 B"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    text = f"{value:.1f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[unit]}"
