"""Subscription token extraction from short-link paths."""


def extract_token(path: str, prefix: str) -> str:
    """Return the first path segment after ``prefix``, or "" if there is none.

    With prefix "/s/", "/s/abc123/extra" yields "abc123"; "/s/" and
    "/other/abc" yield "". The segment is used as-is: no decoding, no
    case folding.
    """
    if not path.startswith(prefix):
        return ""

    rest = path[len(prefix):].strip("/")
    if not rest:
        return ""

    # Only the first segment identifies the subscriber
    token, _, _ = rest.partition("/")
    return token
