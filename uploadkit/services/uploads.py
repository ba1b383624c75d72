import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple, Union

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData, UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser
from starlette.requests import ClientDisconnect, Request

from ..core.config import UploadConfig, effective_upload_config
from ..core.errors import (
    NoFilesSubmitted,
    ParseError,
    SizeLimitExceeded,
    UploadError,
    UploadIOError,
    ValidationError,
)
from ..core.naming import random_string
from ..core.sniffing import sniff_stream
from ..core.storage import copy_stream, ensure_dir
from ..core.validation import file_extension, is_allowed, safe_file_name


logger = logging.getLogger(__name__)

GENERATED_NAME_LENGTH = 25


@dataclass(frozen=True)
class UploadedFile:
    original_file_name: str
    new_file_name: str
    size_bytes: int


async def _bounded_body(request: Request, limit: int) -> AsyncIterator[bytes]:
    consumed = 0
    async for chunk in request.stream():
        consumed += len(chunk)
        if consumed > limit:
            raise SizeLimitExceeded(limit)
        yield chunk


async def _parse_form(request: Request, config: UploadConfig) -> FormData:
    limit = config.max_batch_size_bytes
    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith("multipart/form-data"):
        raise ParseError("request body must be multipart/form-data")

    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise SizeLimitExceeded(limit)

    parser = MultiPartParser(request.headers, _bounded_body(request, limit))
    try:
        return await parser.parse()
    except MultiPartException as e:
        raise ParseError(f"malformed multipart body: {e.message}") from e
    except ValueError as e:
        raise ParseError(f"malformed multipart body: {e}") from e
    except ClientDisconnect as e:
        raise ParseError("multipart body was truncated") from e


def _file_parts(form: FormData) -> List[Tuple[str, UploadFile]]:
    parts = [
        (field_name, value)
        for field_name, value in form.multi_items()
        if isinstance(value, UploadFile) and value.filename
    ]
    # sorted() is stable, so parts sharing a field keep their arrival order
    return sorted(parts, key=lambda item: item[0])


def _destination_name(original: str, rename: bool) -> str:
    if not rename:
        return safe_file_name(original)
    return f"{random_string(GENERATED_NAME_LENGTH)}{file_extension(original)}"


def _store_part(part: UploadFile, upload_dir: Path, rename: bool, config: UploadConfig) -> UploadedFile:
    original = part.filename or ""
    try:
        with part.file as infile:
            content_type, replay = sniff_stream(infile)
            if not is_allowed(content_type, config.allowed_content_types):
                logger.warning(f"Rejected upload {original!r}: file type {content_type} is not allowed")
                raise ValidationError(content_type)

            new_name = _destination_name(original, rename)
            with open(upload_dir / new_name, "wb") as outfile:
                size = copy_stream(infile, outfile, replay)
    except OSError as e:
        logger.error(f"Failed to store upload {original!r}: {e}")
        raise UploadIOError(f"failed to store {original}: {e}") from e

    logger.info(f"Stored upload {original!r} as {new_name} ({size} bytes, {content_type})")
    return UploadedFile(original_file_name=original, new_file_name=new_name, size_bytes=size)


async def upload_files(
    request: Request,
    upload_dir: Union[str, os.PathLike],
    rename: bool = True,
    config: Optional[UploadConfig] = None,
) -> List[UploadedFile]:
    """Store every file part of a multipart request in ``upload_dir``.

    - Parses the body, bounded by ``max_batch_size_bytes`` over the whole payload
    - Sniffs each part's real content type and checks it against the allow-list
    - Writes each part under a random 25-character name (or its own base name
      when ``rename`` is false) and records the bytes actually written

    Parts are processed one at a time, ordered by field name and then by
    arrival. The first failure stops the batch; files already written stay on
    disk and are listed in the raised error's ``uploaded`` attribute.
    """
    config = effective_upload_config(config)
    form = await _parse_form(request, config)
    uploaded: List[UploadedFile] = []
    try:
        target = Path(upload_dir)
        await run_in_threadpool(ensure_dir, target)

        for field_name, part in _file_parts(form):
            try:
                uploaded_file = await run_in_threadpool(_store_part, part, target, rename, config)
            except UploadError as e:
                e.uploaded = list(uploaded)
                raise
            uploaded.append(uploaded_file)
    finally:
        await form.close()

    return uploaded


async def upload_one_file(
    request: Request,
    upload_dir: Union[str, os.PathLike],
    rename: bool = True,
    config: Optional[UploadConfig] = None,
) -> UploadedFile:
    """Like :func:`upload_files`, returning the first stored file."""
    files = await upload_files(request, upload_dir, rename=rename, config=config)
    if not files:
        raise NoFilesSubmitted()
    return files[0]
