"""
Content type detection for uploads.

Extension lookup comes first; magic-byte sniffing of the leading bytes is the
fallback for extensionless or unknown names.
"""

import mimetypes
import posixpath
from typing import Optional

DEFAULT_CONTENT_TYPE = "application/octet-stream"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

# only the leading bytes are inspected
SNIFF_LENGTH = 512

_SIGNATURES = (
    (b"%PDF-", "application/pdf"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"Rar!\x1a\x07", "application/x-rar-compressed"),
    (b"7z\xbc\xaf\x27\x1c", "application/x-7z-compressed"),
    (b"OggS\x00", "application/ogg"),
    (b"ID3", "audio/mpeg"),
    (b"fLaC", "audio/flac"),
    (b"\x1aE\xdf\xa3", "video/webm"),
    (b"wOFF", "font/woff"),
    (b"wOF2", "font/woff2"),
    (b"%!PS-Adobe-", "application/postscript"),
)

_TEXT_SIGNATURES = (
    (b"<?xml", "text/xml; charset=utf-8"),
    (b"<!doctype html", "text/html; charset=utf-8"),
    (b"<html", "text/html; charset=utf-8"),
)


def guess_by_extension(path: str) -> Optional[str]:
    """Look up the content type from the file extension"""
    ext = posixpath.splitext(path)[1].lower()
    if not ext:
        return None
    return mimetypes.types_map.get(ext) or mimetypes.guess_type("file" + ext)[0]


def sniff_content_type(data: bytes) -> str:
    """
    Detect content type from magic bytes.

    Args:
        data: leading bytes of the payload (at least ``SNIFF_LENGTH`` if available)

    Returns:
        detected MIME type, ``text/plain`` for UTF-8 text and
        ``application/octet-stream`` otherwise
    """
    head = data[:SNIFF_LENGTH]
    if not head:
        return TEXT_CONTENT_TYPE

    for signature, content_type in _SIGNATURES:
        if head.startswith(signature):
            return content_type

    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    if head[:4] == b"RIFF" and head[8:12] == b"WAVE":
        return "audio/wave"
    if head[4:8] == b"ftyp":
        return "video/mp4"

    stripped = head.lstrip(b" \t\r\n")
    lowered = stripped.lower()
    for signature, content_type in _TEXT_SIGNATURES:
        if lowered.startswith(signature):
            return content_type

    if b"\x00" in head:
        return DEFAULT_CONTENT_TYPE
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as e:
        # a multi-byte character cut at the sniff boundary is still text
        if e.start < len(head) - 3:
            return DEFAULT_CONTENT_TYPE
    return TEXT_CONTENT_TYPE


def detect_content_type(path: str, data: bytes) -> str:
    """Extension lookup first, sniffing as fallback"""
    return guess_by_extension(path) or sniff_content_type(data)
