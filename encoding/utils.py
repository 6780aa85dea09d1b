from urllib.parse import urlsplit


def strip_query_string(value: str) -> str:
    """Return everything before the first '?', or the value unchanged."""
    head, _, _ = value.partition("?")
    return head


def extract_object_name(uri) -> str | None:
    """
    Final path segment of a URI, e.g. 'https://host/videos/clip1.mp4?t=1' -> 'clip1.mp4'.
    Returns None for an empty path, a path ending in '/', or anything unparseable.
    """
    if not isinstance(uri, str) or not uri:
        return None
    try:
        path = urlsplit(uri).path
    except ValueError:
        return None
    if not path or path.endswith("/"):
        return None
    name = path.rsplit("/", 1)[-1]
    return name or None
