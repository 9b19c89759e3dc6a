from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from cloudstore_core.io.filenames import encode_varint64, table_file_number

logger = logging.getLogger(__name__)


class CloudReadableFile(ABC):
    """Random and sequential reads over one remote object of fixed size.

    The size is resolved once when the handle is created and never re-queried;
    objects backing database files are immutable once written. A handle is
    owned by one caller; separate handles may read the same object concurrently.
    """

    kind = "cloud"

    def __init__(self, bucket: str, path: str, file_size: int) -> None:
        self.bucket = bucket
        self.path = path
        self.file_size = int(file_size)
        self._offset = 0
        logger.debug("[%s] readable file opening %s/%s", self.kind, bucket, path)

    @property
    def offset(self) -> int:
        return self._offset

    def read(self, n: int) -> bytes:
        """Sequential read at the cursor; the cursor advances by the bytes returned."""

        data = self.read_at(self._offset, n)
        self._offset += len(data)
        return data

    def read_at(self, offset: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``offset``.

        Offsets at or past the end return ``b""``; reads crossing the end are
        trimmed to the remaining bytes.
        """

        if offset < 0 or n < 0:
            raise ValueError("offset and length must be non-negative")
        if offset >= self.file_size:
            logger.debug(
                "[%s] reading %s at offset %d filesize %d, nothing to do",
                self.kind,
                self.path,
                offset,
                self.file_size,
            )
            return b""
        if offset + n > self.file_size:
            n = self.file_size - offset
            logger.debug("[%s] reading %s at offset %d trimmed size %d", self.kind, self.path, offset, n)

        data = self._do_cloud_read(offset, n)
        logger.debug(
            "[%s] file %s filesize %d read %d bytes", self.kind, self.path, self.file_size, len(data)
        )
        return data

    def skip(self, n: int) -> None:
        self._offset = min(self._offset + n, self.file_size)

    def unique_id(self) -> bytes:
        """Cache id for table files (varint file number); empty for everything else."""

        number = table_file_number(self.path)
        if number <= 0:
            return b""
        return encode_varint64(number)

    @abstractmethod
    def _do_cloud_read(self, offset: int, n: int) -> bytes:
        """Fetch exactly the range ``[offset, offset + n)``, with ``n`` possibly 0."""
