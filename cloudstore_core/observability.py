from __future__ import annotations

import logging
from collections.abc import Mapping


def _kv_pairs(fields: Mapping[str, object]) -> str:
    parts: list[str] = []
    for key, value in fields.items():
        if value is None:
            continue
        text = str(value).strip()
        if not text:
            continue
        parts.append(f"{key}={text}")
    return " ".join(parts)


def log_event(
    logger: logging.Logger,
    message: str,
    *,
    level: int = logging.INFO,
    **fields: object,
) -> None:
    """Emit a stable structured log line.

    Key fields are appended as ``k=v`` tokens so plain-text log sinks stay greppable.
    """

    suffix = _kv_pairs(fields)
    if suffix:
        logger.log(level, "%s %s", message, suffix)
    else:
        logger.log(level, "%s", message)


def object_log_fields(bucket: str, path: str, **extra: object) -> dict[str, object]:
    """Standard fields for a single-object operation."""

    fields: dict[str, object] = {"bucket": bucket, "path": path}
    fields.update(extra)
    return fields
