"""Tests for magic-byte content type detection."""

from __future__ import annotations

import pytest

from s3cloud.storage.sniff import (
    DEFAULT_CONTENT_TYPE,
    SNIFF_LEN,
    TEXT_HTML,
    TEXT_PLAIN,
    TEXT_XML,
    detect_content_type,
)


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        (b"\x89PNG\r\n\x1a\n\x00\x00\x00\r", "image/png"),
        (b"\xff\xd8\xff\xe0\x00\x10JFIF", "image/jpeg"),
        (b"GIF89a\x01\x00", "image/gif"),
        (b"%PDF-1.7\n", "application/pdf"),
        (b"PK\x03\x04\x14\x00", "application/zip"),
        (b"\x1f\x8b\x08\x00", "application/x-gzip"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        (b"RIFF\x00\x00\x00\x00WAVEfmt ", "audio/wave"),
        (b"\x00\x00\x00\x18ftypmp42", "video/mp4"),
        (b"FORM\x00\x00\x00\x00AIFF", "audio/aiff"),
    ],
)
def test_binary_signatures(data: bytes, expected: str) -> None:
    assert detect_content_type(data) == expected


class TestMarkup:
    def test_html_after_whitespace(self) -> None:
        assert detect_content_type(b"  \n<!DOCTYPE html><html>") == TEXT_HTML

    def test_html_is_case_insensitive(self) -> None:
        assert detect_content_type(b"<body>hi</body>") == TEXT_HTML

    def test_tag_needs_terminator(self) -> None:
        # "<b" followed by a letter is not a tag we recognize
        assert detect_content_type(b"<bogus") == TEXT_PLAIN

    def test_xml_declaration(self) -> None:
        assert detect_content_type(b'<?xml version="1.0"?><a/>') == TEXT_XML


class TestFallbacks:
    def test_plain_text(self) -> None:
        assert detect_content_type(b"hello, world\n") == TEXT_PLAIN

    def test_empty_payload_is_text(self) -> None:
        assert detect_content_type(b"") == TEXT_PLAIN

    def test_control_bytes_are_binary(self) -> None:
        assert detect_content_type(b"abc\x00\x01def") == DEFAULT_CONTENT_TYPE

    def test_only_leading_bytes_are_inspected(self) -> None:
        data = b"a" * SNIFF_LEN + b"\x00"

        assert detect_content_type(data) == TEXT_PLAIN

