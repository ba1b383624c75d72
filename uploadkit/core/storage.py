import logging
import os
from pathlib import Path
from typing import BinaryIO, Union

from .errors import UploadIOError


logger = logging.getLogger(__name__)

DIR_MODE = 0o755
COPY_CHUNK_SIZE = 64 * 1024


def ensure_dir(path: Union[str, os.PathLike]) -> None:
    """Create ``path`` if it does not exist yet; existing directories are left alone."""
    target = Path(path)
    if target.is_dir():
        return
    try:
        target.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Failed to create directory {target}: {e}")
        raise UploadIOError(f"cannot create directory {target}: {e}") from e
    logger.info(f"Created directory {target}")


def copy_stream(source: BinaryIO, destination: BinaryIO, prefix: bytes = b"", chunk_size: int = COPY_CHUNK_SIZE) -> int:
    """Copy ``prefix`` and then everything left in ``source`` into ``destination``.

    Returns the number of bytes actually written.
    """
    written = 0
    if prefix:
        destination.write(prefix)
        written += len(prefix)
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            break
        destination.write(chunk)
        written += len(chunk)
    return written
