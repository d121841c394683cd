"""Shared helpers: line reading, filename classification and directory listing."""

from __future__ import annotations

import os
from typing import IO, AnyStr

MEDIA = "Media"
TEXT = "Text"
BUFFER_SIZE = 256

MEDIA_EXTENSIONS = (".png", ".jpg", ".jpeg", ".bmp", ".tga", ".wav")
TEXT_EXTENSIONS = (".txt", ".md", ".log", ".csv")


def read_until(stream: IO[AnyStr], end: str) -> str | None:
    """Read characters from ``stream`` up to the delimiter ``end``.

    The delimiter is consumed but not returned. Returns ``None`` when the
    stream is already at end of file, and whatever was read when end of
    file comes before the delimiter. Binary streams are decoded as UTF-8.
    """
    marker = None
    pieces = []
    while True:
        char = stream.read(1)
        if not char:
            if not pieces:
                return None
            break
        if marker is None:
            marker = end.encode() if isinstance(char, bytes) else end
        if char == marker:
            break
        pieces.append(char)

    if not pieces:
        return ""
    joined = pieces[0][:0].join(pieces)
    if isinstance(joined, bytes):
        return joined.decode("utf-8", errors="replace")
    return joined


def remove_ampersand(text: str) -> str:
    """Return ``text`` without any ``&`` characters."""
    return text.replace("&", "")


def has_extension(filename: str, extension: str) -> bool:
    """Tell whether the part of ``filename`` from its last dot equals ``extension``."""
    dot = filename.rfind(".")
    return dot >= 0 and filename[dot:] == extension


def list_files(directory: str, extension: str, base: str = "users") -> list[str]:
    """List the entries of ``base + directory`` whose name ends in ``extension``.

    The directory path is the plain concatenation of ``base`` and
    ``directory``. Raises ``OSError`` when the directory cannot be opened.
    """
    path = f"{base}{directory}"
    return sorted(
        name
        for name in os.listdir(path)
        if name not in (".", "..") and has_extension(name, extension)
    )


def file_type(filename: str) -> str | None:
    """Classify ``filename`` as ``"Media"`` or ``"Text"`` by its extension, else ``None``."""
    dot = filename.rfind(".")
    if dot < 0:
        return None
    extension = filename[dot:]
    if extension in MEDIA_EXTENSIONS:
        return MEDIA
    if extension in TEXT_EXTENSIONS:
        return TEXT
    return None


def strip_line_end(text: str) -> str:
    """Drop a trailing newline or carriage return, and a carriage return just before the end."""
    length = len(text)
    result = text
    if length > 0 and text[-1] in "\n\r":
        result = text[:-1]
    if length > 1 and text[-2] == "\r":
        result = text[:-2]
    return result