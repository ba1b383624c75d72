"""Shared fixtures: raw ASGI requests and hand-built multipart bodies."""

import base64
from typing import Iterable, Optional, Tuple

import pytest
from starlette.requests import Request


BOUNDARY = "uploadkit-test-boundary"

# 1x1 transparent PNG
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01" + b"\x00" * 200
GIF_BYTES = b"GIF89a\x01\x00\x01\x00\x80\x00\x00" + b"\xff" * 32


def build_multipart(parts: Iterable[Tuple[str, Optional[str], bytes, Optional[str]]]) -> Tuple[bytes, str]:
    """Encode ``(field, filename, data, content_type)`` tuples as multipart/form-data.

    A ``None`` filename produces a plain form value.
    """
    body = bytearray()
    for field, filename, data, content_type in parts:
        body += f"--{BOUNDARY}\r\n".encode()
        disposition = f'form-data; name="{field}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        body += f"Content-Disposition: {disposition}\r\n".encode()
        if content_type:
            body += f"Content-Type: {content_type}\r\n".encode()
        body += b"\r\n" + data + b"\r\n"
    body += f"--{BOUNDARY}--\r\n".encode()
    return bytes(body), f"multipart/form-data; boundary={BOUNDARY}"


def build_request(body: bytes, content_type: str, *, content_length: bool = True, chunk_size: Optional[int] = None) -> Request:
    headers = [(b"content-type", content_type.encode("latin-1"))]
    if content_length:
        headers.append((b"content-length", str(len(body)).encode()))

    if chunk_size:
        chunks = [body[i:i + chunk_size] for i in range(0, len(body), chunk_size)] or [body]
    else:
        chunks = [body]
    messages = [
        {"type": "http.request", "body": chunk, "more_body": index < len(chunks) - 1}
        for index, chunk in enumerate(chunks)
    ]

    async def receive():
        if messages:
            return messages.pop(0)
        return {"type": "http.disconnect"}

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/upload",
        "headers": headers,
        "query_string": b"",
    }
    return Request(scope, receive)


@pytest.fixture
def multipart():
    return build_multipart


@pytest.fixture
def make_request():
    return build_request


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def jpeg_bytes():
    return JPEG_BYTES


@pytest.fixture
def gif_bytes():
    return GIF_BYTES
