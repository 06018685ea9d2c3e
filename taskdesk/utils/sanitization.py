import re

_TAG_RE = re.compile(r"<[^>]*>")


def sanitize_string(v):
    """Strip HTML tags and surrounding whitespace from free-text input."""
    if not isinstance(v, str):
        return v
    return _TAG_RE.sub("", v).strip()


def blank_to_none(v):
    """Optional text fields: an empty string after sanitizing means "no value"."""
    v = sanitize_string(v)
    if isinstance(v, str) and not v:
        return None
    return v
