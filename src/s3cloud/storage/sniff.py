"""Content sniffing for uploaded payloads.

Infers a MIME type from the leading bytes of a payload when the client does
not supply one. Detection is deterministic and based on magic bytes only
(never on the key's extension), so the same bytes always yield the same
type at upload time and at read time.

Detection order:
    1. HTML / XML markers (after leading whitespace)
    2. Exact and masked binary signatures
    3. text/plain if no binary control bytes are present
    4. application/octet-stream otherwise
"""

from __future__ import annotations

SNIFF_LEN = 512

DEFAULT_CONTENT_TYPE = "application/octet-stream"
TEXT_PLAIN = "text/plain; charset=utf-8"
TEXT_HTML = "text/html; charset=utf-8"
TEXT_XML = "text/xml; charset=utf-8"

_WHITESPACE = b"\t\n\x0c\r "
_TAG_TERMINATORS = b" >"

_HTML_MARKERS: tuple[bytes, ...] = (
    b"<!DOCTYPE HTML",
    b"<HTML",
    b"<HEAD",
    b"<SCRIPT",
    b"<IFRAME",
    b"<H1",
    b"<DIV",
    b"<FONT",
    b"<TABLE",
    b"<A",
    b"<STYLE",
    b"<TITLE",
    b"<B",
    b"<BODY",
    b"<BR",
    b"<P",
    b"<!--",
)

_PREFIX_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"%PDF-", "application/pdf"),
    (b"%!PS-Adobe-", "application/postscript"),
    (b"\xfe\xff", "text/plain; charset=utf-16be"),
    (b"\xff\xfe", "text/plain; charset=utf-16le"),
    (b"\xef\xbb\xbf", TEXT_PLAIN),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"\x00\x00\x02\x00", "image/x-icon"),
    (b"BM", "image/bmp"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"ID3", "audio/mpeg"),
    (b"OggS\x00", "application/ogg"),
    (b"MThd\x00\x00\x00\x06", "audio/midi"),
    (b"\x1a\x45\xdf\xa3", "video/webm"),
    (b"wOFF", "font/woff"),
    (b"wOF2", "font/woff2"),
    (b"OTTO", "font/otf"),
    (b"\x00\x01\x00\x00", "font/ttf"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"PK\x03\x04", "application/zip"),
    (b"Rar!\x1a\x07\x00", "application/x-rar-compressed"),
    (b"Rar!\x1a\x07\x01\x00", "application/x-rar-compressed"),
    (b"\x00asm", "application/wasm"),
)

# RIFF containers: "RIFF" + 4 length bytes + form type.
_RIFF_FORMS: tuple[tuple[bytes, str], ...] = (
    (b"WEBPVP", "image/webp"),
    (b"WAVE", "audio/wave"),
    (b"AVI ", "video/avi"),
)

_BINARY_BYTES = frozenset(
    list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20))
)


def _lstrip_whitespace(data: bytes) -> bytes:
    return data.lstrip(_WHITESPACE)


def _is_html(data: bytes) -> bool:
    """Check for a case-insensitive HTML tag followed by a tag terminator."""
    for marker in _HTML_MARKERS:
        if len(data) <= len(marker):
            continue
        if data[: len(marker)].upper() != marker:
            continue
        if data[len(marker)] in _TAG_TERMINATORS:
            return True
    return False


def _match_riff(data: bytes) -> str | None:
    if len(data) < 12 or data[:4] != b"RIFF":
        return None
    for form, content_type in _RIFF_FORMS:
        if data[8 : 8 + len(form)] == form:
            return content_type
    return None


def _is_mp4(data: bytes) -> bool:
    """ISO base media files declare an "ftyp" box at offset 4."""
    if len(data) < 12 or data[4:8] != b"ftyp":
        return False
    box_size = int.from_bytes(data[:4], "big")
    return box_size >= 12 and box_size % 4 == 0


def _is_aiff(data: bytes) -> bool:
    return len(data) >= 12 and data[:4] == b"FORM" and data[8:12] == b"AIFF"


def detect_content_type(data: bytes) -> str:
    """Detect the MIME type of a payload from its leading bytes.

    Args:
        data: Leading payload bytes; only the first SNIFF_LEN bytes are used.

    Returns:
        MIME type string; never empty.
    """
    head = data[:SNIFF_LEN]

    stripped = _lstrip_whitespace(head)
    if _is_html(stripped):
        return TEXT_HTML
    if stripped.startswith(b"<?xml"):
        return TEXT_XML

    for signature, content_type in _PREFIX_SIGNATURES:
        if head.startswith(signature):
            return content_type

    riff_type = _match_riff(head)
    if riff_type is not None:
        return riff_type
    if _is_aiff(head):
        return "audio/aiff"
    if _is_mp4(head):
        return "video/mp4"

    if not any(byte in _BINARY_BYTES for byte in head):
        return TEXT_PLAIN

    return DEFAULT_CONTENT_TYPE
