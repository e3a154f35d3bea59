"""
Path Normalizer

Converts every accepted path representation (absolute URL, scheme-relative
URL, Windows-style path, root-relative path) into the canonical object key:
relative, forward-slash separated, free of scheme/host and of leading slashes.
"""

import posixpath
import re
from urllib.parse import unquote, urlsplit

# optional scheme + "//" + host
_URL_PATTERN = re.compile(r"^(?:[A-Za-z][A-Za-z0-9+.\-]*:)?//[^/?#]+")


def is_url(value: str) -> bool:
    """Return whether value looks like an absolute or scheme-relative URL"""
    return bool(_URL_PATTERN.match(value.replace("\\", "/")))


def normalize_path(value: str) -> str:
    """
    Normalize any accepted path into a canonical relative key.

    Args:
        value: URL, Windows path or relative path

    Returns:
        Canonical key, e.g. ``https://bucket.s3.amazonaws.com/a/b.txt`` -> ``a/b.txt``
    """
    if value is None:
        return ""

    candidate = value
    previous = None
    # iterate to a fixed point so that normalize(normalize(x)) == normalize(x)
    while candidate != previous:
        previous = candidate
        candidate = candidate.replace("\\", "/")
        if _URL_PATTERN.match(candidate):
            # unquoting may produce new backslashes, the next pass converts them
            candidate = unquote(urlsplit(candidate).path)
        candidate = candidate.replace("\\", "/").lstrip("/")
    return candidate


def normalize_prefix(value: str) -> str:
    """Canonical list prefix: normalized and without trailing separator"""
    return normalize_path(value or "").rstrip("/")


def to_physical_path(root: str, path: str) -> str:
    """
    Fold a backend root folder (e.g. a NAS shared folder) into a canonical path.

    ``to_physical_path("/home", "a/b.txt")`` -> ``/home/a/b.txt``
    """
    root = "/" + normalize_path(root or "").rstrip("/")
    key = normalize_path(path)
    if not key:
        return root
    if root == "/":
        return "/" + key
    return root + "/" + key


def strip_root(root: str, physical_path: str) -> str:
    """
    Inverse of :func:`to_physical_path`: remove the backend root folder from a
    path returned by the backend and normalize the remainder.
    """
    key = normalize_path(physical_path)
    root_key = normalize_path(root or "").rstrip("/")
    if root_key:
        if key == root_key:
            return ""
        if key.startswith(root_key + "/"):
            return key[len(root_key) + 1:]
    return key


def basename(path: str) -> str:
    """Display name of a canonical path"""
    return posixpath.basename(normalize_path(path).rstrip("/"))


def matches_prefix(key: str, prefix: str) -> bool:
    """Plain string-prefix match of canonical keys"""
    return normalize_path(key).startswith(normalize_prefix(prefix))
