import re


_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(s: str) -> str:
    """Turn ``s`` into a lower-case, dash-separated URL slug."""
    if not s:
        raise ValueError("empty string not permitted")

    slug = _NON_SLUG_CHARS.sub("-", s.lower()).strip("-")
    if not slug:
        raise ValueError("slug created with a length of zero")
    return slug
