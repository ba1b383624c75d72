"""Content-type sniffing over the leading bytes of an upload.

Follows the WHATWG MIME sniffing rules as used by HTTP servers: a fixed,
ordered table of signatures is tried against at most the first 512 bytes,
and the first match wins.
"""

import logging
from typing import BinaryIO, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

SNIFF_LEN = 512

OCTET_STREAM = "application/octet-stream"
TEXT_PLAIN = "text/plain; charset=utf-8"

_WHITESPACE = b"\t\n\x0c\r "
_TAG_TERMINATORS = b" >"


def _first_non_ws(data: bytes) -> int:
    index = 0
    while index < len(data) and data[index] in _WHITESPACE:
        index += 1
    return index


def _exact(sig: bytes, ctype: str) -> Callable[[bytes, int], Optional[str]]:
    def match(data: bytes, first_non_ws: int) -> Optional[str]:
        return ctype if data.startswith(sig) else None
    return match


def _masked(pattern: bytes, mask: bytes, ctype: str, skip_ws: bool = False) -> Callable[[bytes, int], Optional[str]]:
    def match(data: bytes, first_non_ws: int) -> Optional[str]:
        if skip_ws:
            data = data[first_non_ws:]
        if len(data) < len(pattern):
            return None
        for pat_byte, mask_byte, data_byte in zip(pattern, mask, data):
            if data_byte & mask_byte != pat_byte:
                return None
        return ctype
    return match


def _html(tag: bytes) -> Callable[[bytes, int], Optional[str]]:
    # Letters in the tag match case-insensitively; the tag must be followed by
    # a space or '>'.
    def match(data: bytes, first_non_ws: int) -> Optional[str]:
        data = data[first_non_ws:]
        if len(data) < len(tag) + 1:
            return None
        for tag_byte, data_byte in zip(tag, data):
            if 0x41 <= tag_byte <= 0x5A:
                data_byte &= 0xDF
            if tag_byte != data_byte:
                return None
        if data[len(tag)] not in _TAG_TERMINATORS:
            return None
        return "text/html; charset=utf-8"
    return match


def _mp4(data: bytes, first_non_ws: int) -> Optional[str]:
    if len(data) < 12:
        return None
    box_size = int.from_bytes(data[:4], "big")
    if len(data) < box_size or box_size % 4 != 0:
        return None
    if data[4:8] != b"ftyp":
        return None
    for start in range(8, box_size, 4):
        if start == 12:
            # Bytes 12..15 hold the minor version, not a brand.
            continue
        if data[start:start + 3] == b"mp4":
            return "video/mp4"
    return None


def _text(data: bytes, first_non_ws: int) -> Optional[str]:
    for byte in data[first_non_ws:]:
        if byte <= 0x08 or byte == 0x0B or 0x0E <= byte <= 0x1A or 0x1C <= byte <= 0x1F:
            return None
    return TEXT_PLAIN


_RIFF_MASK = b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff"

SIGNATURES: List[Callable[[bytes, int], Optional[str]]] = [
    _html(b"<!DOCTYPE HTML"),
    _html(b"<HTML"),
    _html(b"<HEAD"),
    _html(b"<SCRIPT"),
    _html(b"<IFRAME"),
    _html(b"<H1"),
    _html(b"<DIV"),
    _html(b"<FONT"),
    _html(b"<TABLE"),
    _html(b"<A"),
    _html(b"<STYLE"),
    _html(b"<TITLE"),
    _html(b"<B"),
    _html(b"<BODY"),
    _html(b"<BR"),
    _html(b"<P"),
    _html(b"<!--"),
    _masked(b"<?xml", b"\xff\xff\xff\xff\xff", "text/xml; charset=utf-8", skip_ws=True),
    _exact(b"%PDF-", "application/pdf"),
    _exact(b"%!PS-Adobe-", "application/postscript"),
    # UTF BOMs
    _masked(b"\xfe\xff\x00\x00", b"\xff\xff\x00\x00", "text/plain; charset=utf-16be"),
    _masked(b"\xff\xfe\x00\x00", b"\xff\xff\x00\x00", "text/plain; charset=utf-16le"),
    _masked(b"\xef\xbb\xbf\x00", b"\xff\xff\xff\x00", TEXT_PLAIN),
    # Images
    _exact(b"\x00\x00\x01\x00", "image/x-icon"),
    _exact(b"\x00\x00\x02\x00", "image/x-icon"),
    _exact(b"BM", "image/bmp"),
    _exact(b"GIF87a", "image/gif"),
    _exact(b"GIF89a", "image/gif"),
    _masked(b"RIFF\x00\x00\x00\x00WEBPVP", _RIFF_MASK + b"\xff\xff", "image/webp"),
    _exact(b"\x89PNG\x0d\x0a\x1a\x0a", "image/png"),
    _exact(b"\xff\xd8\xff", "image/jpeg"),
    # Audio and video
    _masked(b"FORM\x00\x00\x00\x00AIFF", _RIFF_MASK, "audio/aiff"),
    _masked(b"ID3", b"\xff\xff\xff", "audio/mpeg"),
    _masked(b"OggS\x00", b"\xff\xff\xff\xff\xff", "application/ogg"),
    _masked(b"MThd\x00\x00\x00\x06", b"\xff\xff\xff\xff\xff\xff\xff\xff", "audio/midi"),
    _masked(b"RIFF\x00\x00\x00\x00AVI ", _RIFF_MASK, "video/avi"),
    _masked(b"RIFF\x00\x00\x00\x00WAVE", _RIFF_MASK, "audio/wave"),
    _mp4,
    _exact(b"\x1a\x45\xdf\xa3", "video/webm"),
    # Fonts
    _masked(b"\x00" * 34 + b"LP", b"\x00" * 34 + b"\xff\xff", "application/vnd.ms-fontobject"),
    _exact(b"\x00\x01\x00\x00", "font/ttf"),
    _exact(b"OTTO", "font/otf"),
    _exact(b"ttcf", "font/collection"),
    _exact(b"wOFF", "font/woff"),
    _exact(b"wOF2", "font/woff2"),
    # Archives
    _exact(b"\x1f\x8b\x08", "application/x-gzip"),
    _exact(b"PK\x03\x04", "application/zip"),
    _exact(b"Rar!\x1a\x07\x00", "application/x-rar-compressed"),
    _exact(b"Rar!\x1a\x07\x01\x00", "application/x-rar-compressed"),
    _exact(b"\x00\x61\x73\x6d", "application/wasm"),
    _text,
]


def detect_content_type(data: bytes) -> str:
    """Return the best-guess content type for the leading bytes of a file.

    Only the first 512 bytes are considered. Falls back to
    ``application/octet-stream`` when nothing matches.
    """
    data = bytes(data[:SNIFF_LEN])
    first_non_ws = _first_non_ws(data)
    for signature in SIGNATURES:
        ctype = signature(data, first_non_ws)
        if ctype:
            return ctype
    return OCTET_STREAM


def _read_prefix(stream: BinaryIO) -> bytes:
    buff = b""
    while len(buff) < SNIFF_LEN:
        chunk = stream.read(SNIFF_LEN - len(buff))
        if not chunk:
            break
        buff += chunk
    return buff


def sniff_stream(stream: BinaryIO) -> Tuple[str, bytes]:
    """Sniff ``stream`` without losing any of its bytes.

    Seekable streams are rewound to where they started and an empty replay
    prefix is returned. For other streams the consumed bytes are returned so
    the caller can write them ahead of the rest of the stream.
    """
    seekable = getattr(stream, "seekable", None)
    if seekable is not None and seekable():
        start = stream.tell()
        head = _read_prefix(stream)
        stream.seek(start)
        return detect_content_type(head), b""

    head = _read_prefix(stream)
    return detect_content_type(head), head
