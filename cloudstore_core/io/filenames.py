"""Database file naming rules the storage layer depends on.

Table files are ``<number>.sst``; the manifest is ``MANIFEST-<number>``.
Either may carry a trailing ``-<epoch>`` tag when several database
incarnations share a bucket.
"""

from __future__ import annotations

import os
import re

MANIFEST_PREFIX = "MANIFEST"
TABLE_SUFFIX = ".sst"

_EPOCH_RE = re.compile(r"^(?P<stem>.+?)-(?P<epoch>[0-9a-f]{16})$")
_MANIFEST_RE = re.compile(r"^MANIFEST(-\d+)?$")
_TABLE_RE = re.compile(r"^(?P<number>\d+)\.sst$")


def remove_epoch(name: str) -> str:
    """Drop a trailing ``-<epoch>`` tag from a basename."""

    base = os.path.basename(name)
    match = _EPOCH_RE.match(base)
    if match is None:
        return base
    return match.group("stem")


def is_manifest_file(name: str) -> bool:
    return bool(_MANIFEST_RE.match(remove_epoch(name)))


def is_table_file(name: str) -> bool:
    return bool(_TABLE_RE.match(remove_epoch(name)))


def table_file_number(name: str) -> int:
    """Return the file number of a table file, or 0 when ``name`` is not one."""

    match = _TABLE_RE.match(remove_epoch(name))
    if match is None:
        return 0
    return int(match.group("number"))


def encode_varint64(value: int) -> bytes:
    if value < 0:
        raise ValueError("varint value must be non-negative")
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)
