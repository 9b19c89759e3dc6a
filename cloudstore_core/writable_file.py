"""Local-staging writer for database files.

Table files are written locally and pushed as one object on ``close``.
The manifest is never overwritten in place: when a local manifest already
exists, writes go to a side file that the first ``sync`` renames over the
live manifest, and every ``sync`` re-uploads the whole manifest.

One writer per local path; the side-file rename assumes all manifest writes
come from a single thread and takes no lock.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, BinaryIO

from cloudstore_core.errors import CloudIOError, CloudStoreError
from cloudstore_core.io.filenames import is_manifest_file, is_table_file
from cloudstore_core.observability import log_event, object_log_fields

if TYPE_CHECKING:
    from cloudstore_core.provider import CloudStorageProvider

logger = logging.getLogger(__name__)

MANIFEST_TMP_SUFFIX = ".pending"


def _local_exists(path: str) -> bool:
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise CloudIOError(path, str(exc)) from exc
    return True


class CloudWritableFile:
    def __init__(
        self,
        provider: CloudStorageProvider,
        local_path: str | os.PathLike[str],
        bucket: str,
        object_path: str,
    ) -> None:
        self._provider = provider
        self.local_path = os.fspath(local_path)
        self.bucket = bucket
        self.object_path = object_path
        self.is_manifest = is_manifest_file(self.local_path)
        if not self.is_manifest and not is_table_file(self.local_path):
            raise ValueError(f"not a table file or manifest: {self.local_path}")

        self.tmp_path: str | None = None
        self.remote_sync_error: CloudStoreError | None = None
        self._close_error: CloudStoreError | None = None

        file_to_open = self.local_path
        if self.is_manifest and _local_exists(self.local_path):
            self.tmp_path = self.local_path + MANIFEST_TMP_SUFFIX
            file_to_open = self.tmp_path

        try:
            self._file: BinaryIO | None = open(file_to_open, "wb")  # noqa: SIM115
        except OSError as exc:
            log_event(
                logger,
                "cloudstore.writable_file.open_failed",
                level=logging.ERROR,
                local=file_to_open,
                error=exc,
            )
            raise CloudIOError(file_to_open, str(exc)) from exc

        logger.debug(
            "[%s] writable file bucket %s local %s cloud %s manifest %s",
            provider.name,
            bucket,
            file_to_open,
            object_path,
            self.is_manifest,
        )

    @property
    def closed(self) -> bool:
        return self._file is None

    def _require_open(self) -> BinaryIO:
        if self._file is None:
            raise CloudIOError(self.local_path, "writer is closed")
        return self._file

    def append(self, data: bytes) -> None:
        handle = self._require_open()
        try:
            handle.write(data)
        except OSError as exc:
            raise CloudIOError(self.local_path, str(exc)) from exc

    def flush(self) -> None:
        handle = self._require_open()
        try:
            handle.flush()
        except OSError as exc:
            raise CloudIOError(self.local_path, str(exc)) from exc

    def sync(self) -> None:
        """Make written bytes durable locally; for the manifest also push a copy.

        Local durability is the contract: a failed remote manifest push is
        logged and kept in ``remote_sync_error`` rather than raised.
        """

        if self._file is None:
            return
        try:
            self._file.flush()
            os.fsync(self._file.fileno())
        except OSError as exc:
            raise CloudIOError(self.tmp_path or self.local_path, str(exc)) from exc

        if self.tmp_path is not None:
            # Single rename so a crash leaves either the old or the new manifest.
            try:
                os.replace(self.tmp_path, self.local_path)
            except OSError as exc:
                raise CloudIOError(self.tmp_path, str(exc)) from exc
            self.tmp_path = None

        if self.is_manifest:
            self._push_manifest()

    def _push_manifest(self) -> None:
        try:
            self._provider.put_object(self.local_path, self.bucket, self.object_path)
        except CloudStoreError as exc:
            self.remote_sync_error = exc
            log_event(
                logger,
                "cloudstore.writable_file.manifest_not_durable",
                level=logging.ERROR,
                **object_log_fields(self.bucket, self.object_path, local=self.local_path, error=exc),
            )
            return
        self.remote_sync_error = None
        log_event(
            logger,
            "cloudstore.writable_file.manifest_durable",
            level=logging.DEBUG,
            **object_log_fields(self.bucket, self.object_path, local=self.local_path),
        )

    def close(self) -> None:
        """Close the local file; table files are then uploaded and removed locally.

        The manifest keeps its local copy and is only pushed by ``sync``. If the
        upload fails the local file stays in place and a repeated ``close``
        raises the same error.
        """

        if self._file is None:
            if self._close_error is not None:
                raise self._close_error
            return

        try:
            self._file.close()
        except OSError as exc:
            log_event(
                logger,
                "cloudstore.writable_file.close_failed",
                level=logging.ERROR,
                local=self.local_path,
                error=exc,
            )
            raise CloudIOError(self.local_path, str(exc)) from exc
        self._file = None

        if self.is_manifest:
            return

        try:
            self._provider.put_object(self.local_path, self.bucket, self.object_path)
        except CloudStoreError as exc:
            self._close_error = exc
            log_event(
                logger,
                "cloudstore.writable_file.upload_failed",
                level=logging.ERROR,
                **object_log_fields(self.bucket, self.object_path, local=self.local_path, error=exc),
            )
            raise

        if not self._provider.options.keep_local_table_files:
            try:
                os.remove(self.local_path)
            except OSError as exc:
                self._close_error = CloudIOError(self.local_path, str(exc))
                log_event(
                    logger,
                    "cloudstore.writable_file.delete_local_failed",
                    level=logging.ERROR,
                    local=self.local_path,
                    error=exc,
                )
                raise self._close_error from exc

        log_event(
            logger,
            "cloudstore.writable_file.closed",
            level=logging.DEBUG,
            **object_log_fields(self.bucket, self.object_path, local=self.local_path),
        )

    def abandon(self) -> None:
        """Release the local handle without any upload, leaving local files as they are."""

        if self._file is not None:
            try:
                self._file.close()
            finally:
                self._file = None

    def __enter__(self) -> CloudWritableFile:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        if exc_type is not None:
            self.abandon()
            return
        self.close()
