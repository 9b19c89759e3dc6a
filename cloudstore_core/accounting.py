from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

from cloudstore_core.config import RequestCallback


class CloudRequestOpType(str, Enum):
    LIST = "list"
    CREATE = "create"
    INFO = "info"
    DELETE = "delete"
    COPY = "copy"
    READ = "read"
    WRITE = "write"


@dataclass
class RequestRecord:
    """Mutable outcome the wrapped call fills in before the guard exits."""

    size: int = 0
    success: bool = False


@contextmanager
def request_guard(
    callback: RequestCallback | None,
    op_type: CloudRequestOpType,
    size: int = 0,
) -> Iterator[RequestRecord]:
    """Report one remote call to ``callback`` as ``(op, size, elapsed_micros, success)``.

    The callback fires on every exit path; an exception leaves ``success`` False.
    """

    record = RequestRecord(size=size)
    start = time.monotonic_ns()
    try:
        yield record
    finally:
        if callback is not None:
            elapsed_micros = (time.monotonic_ns() - start) // 1000
            callback(op_type.value, record.size, elapsed_micros, record.success)
