import logging
from typing import AbstractSet

from .errors import ParseError


logger = logging.getLogger(__name__)


def is_allowed(content_type: str, allow_list: AbstractSet[str]) -> bool:
    """Exact-match check of a sniffed content type; an empty allow-list accepts anything."""
    if not allow_list:
        return True
    return content_type in allow_list


def _base_name(filename: str) -> str:
    if "\x00" in (filename or ""):
        logger.error(f"File name rejected: {filename!r}")
        raise ParseError("Invalid filename")
    return (filename or "").replace("\\", "/").rsplit("/", 1)[-1]


def file_extension(filename: str) -> str:
    """Extension of the base name, from its last dot (``.bashrc`` keeps the whole name)."""
    base = _base_name(filename)
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


def safe_file_name(filename: str) -> str:
    """Reduce a client-supplied file name to a bare base name, otherwise unchanged."""
    base = _base_name(filename)
    if base in {"", ".", ".."}:
        logger.error(f"File name rejected: {filename!r}")
        raise ParseError("Invalid filename")
    return base
