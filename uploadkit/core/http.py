import json
import logging
from typing import Any, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.request import OpenerDirector, Request, urlopen

from fastapi.encoders import jsonable_encoder

from .errors import RemoteServiceError


logger = logging.getLogger(__name__)


def push_json_to_remote(
    uri: str,
    data: Any,
    *,
    timeout_seconds: int = 60,
    opener: Optional[OpenerDirector] = None,
) -> Tuple[int, bytes]:
    """POST ``data`` as JSON to ``uri`` and return ``(status, body)``.

    Error statuses from the remote are returned, not raised; only transport
    failures raise :class:`RemoteServiceError`.
    """
    payload = json.dumps(jsonable_encoder(data)).encode("utf-8")
    request = Request(uri, data=payload, method="POST", headers={"Content-Type": "application/json"})
    open_url = opener.open if opener is not None else urlopen

    try:
        with open_url(request, timeout=timeout_seconds) as resp:
            return resp.status, resp.read()
    except HTTPError as e:
        logger.warning(f"Remote service {uri} answered {e.code}")
        return e.code, e.read()
    except (URLError, OSError) as e:
        logger.error(f"Failed to push JSON to {uri}: {str(e)}")
        raise RemoteServiceError(f"failed to reach remote service: {e}") from e
