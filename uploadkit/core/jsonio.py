import json
import logging
from typing import Any, Mapping, Optional, Type, TypeVar

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from starlette.requests import Request

from .config import DEFAULT_MAX_JSON_SIZE
from .errors import JSONDecodeError


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class JSONEnvelope(BaseModel):
    error: bool
    message: str
    data: Optional[Any] = None


async def _read_body(request: Request, max_bytes: int) -> bytes:
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_bytes:
            raise JSONDecodeError(f"body must not be larger than {max_bytes} bytes")
    return bytes(body)


def _decode_single_value(body: bytes) -> Any:
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise JSONDecodeError(f"body contains malformed JSON at {e.start}") from e

    if not text.strip():
        raise JSONDecodeError("body must not be empty")

    start = len(text) - len(text.lstrip())
    try:
        value, end = json.JSONDecoder().raw_decode(text, start)
    except json.JSONDecodeError as e:
        if e.pos >= len(text.rstrip()):
            raise JSONDecodeError("body contains malformed JSON") from e
        raise JSONDecodeError(f"body contains malformed JSON at {e.pos}") from e

    if text[end:].strip():
        raise JSONDecodeError("body must contain only one JSON value")
    return value


def _check_unknown_fields(value: Any, model: Type[BaseModel]) -> None:
    if not isinstance(value, dict):
        return
    known = set(model.model_fields)
    known.update(info.alias for info in model.model_fields.values() if info.alias)
    for key in value:
        if key not in known:
            raise JSONDecodeError(f'body contains unknown key "{key}"')


async def read_json(
    request: Request,
    model: Optional[Type[ModelT]] = None,
    *,
    max_bytes: Optional[int] = None,
    allow_unknown_fields: bool = False,
) -> Any:
    """Decode exactly one JSON value from the request body.

    The body is capped at ``max_bytes`` (1 MiB by default). When ``model`` is
    given the value is validated into it and keys the model does not declare
    are rejected unless ``allow_unknown_fields`` is set.
    """
    limit = max_bytes or DEFAULT_MAX_JSON_SIZE
    value = _decode_single_value(await _read_body(request, limit))
    if model is None:
        return value

    if not allow_unknown_fields:
        _check_unknown_fields(value, model)
    try:
        return model.model_validate(value)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        if field:
            raise JSONDecodeError(f'body contains incorrect JSON type for field "{field}"') from e
        raise JSONDecodeError("body contains incorrect JSON type") from e


def write_json(data: Any, status: int = 200, headers: Optional[Mapping[str, str]] = None) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(data), status_code=status, headers=dict(headers or {}))


def error_json(err: Exception, status: Optional[int] = None) -> JSONResponse:
    """Wrap ``err`` in the ``{"error": true, "message": ...}`` envelope."""
    status_code = status or getattr(err, "status_code", 400)
    payload = JSONEnvelope(error=True, message=str(err))
    return write_json(payload.model_dump(exclude_none=True), status=status_code)
