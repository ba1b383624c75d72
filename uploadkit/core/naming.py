import logging
import secrets
import string

from .errors import RandomnessUnavailable


logger = logging.getLogger(__name__)

RANDOM_STRING_SOURCE = string.ascii_lowercase + string.ascii_uppercase + string.digits


def random_string(length: int) -> str:
    """Return ``length`` characters drawn uniformly from RANDOM_STRING_SOURCE.

    ``secrets.choice`` picks indexes by rejection sampling over the OS
    entropy pool, so every character of the 62-symbol alphabet is equally
    likely.
    """
    if length < 0:
        raise ValueError("length must not be negative")
    try:
        return "".join(secrets.choice(RANDOM_STRING_SOURCE) for _ in range(length))
    except (OSError, NotImplementedError) as e:
        logger.error(f"Entropy source unavailable: {e}")
        raise RandomnessUnavailable(f"entropy source unavailable: {e}") from e
