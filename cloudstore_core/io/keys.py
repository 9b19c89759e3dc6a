from __future__ import annotations

SEPARATOR = "/"


def normalize_object_path(path: str) -> str:
    """Object keys never start with a separator."""

    return (path or "").lstrip(SEPARATOR)


def normalize_list_prefix(prefix: str) -> str:
    """Normalize a logical directory for prefix listing.

    - Leading separators are stripped.
    - A non-empty prefix ends with exactly one separator, so ``db`` never
      matches keys under ``db2/``.
    - An empty prefix stays empty and lists the whole bucket.
    """

    value = normalize_object_path(prefix).rstrip(SEPARATOR)
    if not value:
        return ""
    return value + SEPARATOR


def join_key(prefix: str, name: str) -> str:
    base = normalize_list_prefix(prefix)
    return base + name.lstrip(SEPARATOR)
