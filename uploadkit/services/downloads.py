import logging
import os
from pathlib import Path
from typing import Union

from fastapi import HTTPException
from fastapi.responses import FileResponse


logger = logging.getLogger(__name__)


def download_static_file(directory: Union[str, os.PathLike], file: str, display_name: str) -> FileResponse:
    """Serve ``directory/file`` as an attachment named ``display_name``."""
    root = Path(directory).resolve()
    target = (root / file).resolve()

    if root not in target.parents:
        logger.error(f"Rejected download outside {root}: {file!r}")
        raise HTTPException(status_code=404, detail="File not found")
    if not target.is_file():
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(
        target,
        headers={"Content-Disposition": f'attachment; filename="{display_name}"'},
    )
