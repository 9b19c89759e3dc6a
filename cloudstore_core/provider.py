"""Provider contract between the database file model and an object store.

Concrete variants implement the single-request primitives (bucket/object
CRUD, one listing page, one HEAD, whole-object transfer). This base class
owns the protocols built on top of them: paginated directory listing with
its prefix invariant, size-verified downloads, zero-size upload rejection
and reader/writer construction.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from cloudstore_core.config import CloudStorageOptions, validate_cloud_options
from cloudstore_core.errors import (
    CloudIOError,
    CloudStoreError,
    EmptyBucketError,
    InvalidConfigurationError,
    ObjectNotFoundError,
)
from cloudstore_core.io.keys import join_key, normalize_list_prefix, normalize_object_path
from cloudstore_core.observability import log_event, object_log_fields
from cloudstore_core.readable_file import CloudReadableFile
from cloudstore_core.writable_file import CloudWritableFile

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 50
DOWNLOAD_TMP_SUFFIX = ".tmp"


@dataclass(frozen=True)
class ObjectInfo:
    """Snapshot of one HEAD response; never cached."""

    size: int
    last_modified_ms: int
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ListPage:
    keys: list[str]
    is_truncated: bool
    next_marker: str | None = None


def _remove_staging_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        log_event(
            logger,
            "cloudstore.staging_cleanup_failed",
            level=logging.WARNING,
            local=path,
            error=exc,
        )


class CloudStorageProvider(ABC):
    name = "cloud"

    def __init__(self, options: CloudStorageOptions) -> None:
        self.options = options

    # -- lifecycle -----------------------------------------------------------

    def sanitize_options(self) -> None:
        """Validate options and make sure the destination bucket exists."""

        validate_cloud_options(self.options)
        dest = self.options.dest_bucket
        if dest is None:
            return
        if self.exists_bucket(dest.name):
            log_event(logger, "cloudstore.sanitize", provider=self.name, bucket=dest.name, stage="exists")
            return
        if not self.options.create_bucket_if_missing:
            raise InvalidConfigurationError(
                dest.name, "bucket not found and create_bucket_if_missing is false"
            )
        log_event(logger, "cloudstore.sanitize", provider=self.name, bucket=dest.name, stage="create")
        try:
            self.create_bucket(dest.name)
        except CloudStoreError as exc:
            log_event(
                logger,
                "cloudstore.sanitize",
                level=logging.ERROR,
                provider=self.name,
                bucket=dest.name,
                stage="create_failed",
                error=exc,
            )
            raise

    def close(self) -> None:
        """Release provider-wide resources."""

    def __enter__(self) -> CloudStorageProvider:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    # -- variant primitives --------------------------------------------------

    @abstractmethod
    def create_bucket(self, bucket: str) -> None:
        """Create ``bucket``; succeeds when it already exists or is already ours."""

    @abstractmethod
    def exists_bucket(self, bucket: str) -> bool:
        ...

    @abstractmethod
    def list_page(self, bucket: str, prefix: str, marker: str, max_keys: int) -> ListPage:
        """Return one page of keys under ``prefix`` strictly after ``marker``, sorted."""

    @abstractmethod
    def delete_object(self, bucket: str, path: str) -> None:
        ...

    @abstractmethod
    def copy_object(self, src_bucket: str, src_path: str, dest_bucket: str, dest_path: str) -> None:
        ...

    @abstractmethod
    def head_object(self, bucket: str, path: str) -> ObjectInfo:
        """One remote round trip returning size, modification time and metadata."""

    @abstractmethod
    def put_object_metadata(self, bucket: str, path: str, metadata: dict[str, str]) -> None:
        ...

    @abstractmethod
    def do_get_object(self, bucket: str, path: str, destination: str) -> int:
        """Download the whole object to ``destination``; return the remote-reported size."""

    @abstractmethod
    def do_put_object(self, local_file: str, bucket: str, path: str, file_size: int) -> None:
        ...

    @abstractmethod
    def do_new_cloud_readable_file(self, bucket: str, path: str, file_size: int) -> CloudReadableFile:
        ...

    # -- listing -------------------------------------------------------------

    def list_objects(self, bucket: str, prefix: str) -> list[str]:
        """List a logical directory as names relative to ``prefix``.

        Pages are fetched until one is not truncated. When a truncated page has
        no explicit marker, the last key of the page becomes the next marker,
        which is correct only because backends return keys in lexicographic
        order.
        """

        normalized = normalize_list_prefix(prefix)
        marker = ""
        first_page = True
        result: list[str] = []
        while True:
            try:
                page = self.list_page(bucket, normalized, marker, LIST_PAGE_SIZE)
            except ObjectNotFoundError as exc:
                if first_page:
                    log_event(
                        logger,
                        "cloudstore.list_objects",
                        level=logging.ERROR,
                        bucket=bucket,
                        prefix=normalized,
                        stage="not_found",
                        error=exc.detail,
                    )
                    raise ObjectNotFoundError(prefix, exc.detail) from exc
                raise CloudIOError(prefix, exc.detail) from exc
            first_page = False

            for key in page.keys:
                if not key.startswith(normalized):
                    raise CloudIOError(
                        f"{bucket}/{normalized}", f"unexpected key from object store listing: {key}"
                    )
                result.append(key[len(normalized) :])

            if not page.is_truncated:
                break
            next_marker = page.next_marker or (page.keys[-1] if page.keys else "")
            if not next_marker or next_marker == marker:
                raise CloudIOError(
                    f"{bucket}/{normalized}", "truncated listing page without a usable marker"
                )
            marker = next_marker
        return result

    def empty_bucket(self, bucket: str, prefix: str) -> None:
        """Delete every object under ``prefix``.

        Each delete is attempted even after failures; the failures are raised
        together as ``EmptyBucketError``.
        """

        names = self.list_objects(bucket, prefix)
        normalized = normalize_list_prefix(prefix)
        log_event(logger, "cloudstore.empty_bucket", bucket=bucket, prefix=normalized, count=len(names))
        failed: list[str] = []
        for name in names:
            path = join_key(normalized, name)
            try:
                self.delete_object(bucket, path)
            except CloudStoreError as exc:
                failed.append(path)
                log_event(
                    logger,
                    "cloudstore.empty_bucket",
                    level=logging.ERROR,
                    **object_log_fields(bucket, path, stage="delete_failed", error=exc),
                )
        if failed:
            raise EmptyBucketError(bucket, failed)

    # -- HEAD projections ----------------------------------------------------

    def exists_object(self, bucket: str, path: str) -> bool:
        try:
            self.head_object(bucket, path)
        except ObjectNotFoundError:
            return False
        return True

    def get_object_size(self, bucket: str, path: str) -> int:
        return self.head_object(bucket, path).size

    def get_object_modification_time(self, bucket: str, path: str) -> int:
        """Last-modified time in milliseconds since the epoch."""

        return self.head_object(bucket, path).last_modified_ms

    def get_object_metadata(self, bucket: str, path: str) -> dict[str, str]:
        return dict(self.head_object(bucket, path).metadata)

    # -- whole-object transfer -----------------------------------------------

    def get_object(self, bucket: str, path: str, local_destination: str | os.PathLike[str]) -> None:
        """Download to ``<destination>.tmp``, verify its size, then rename into place.

        A size mismatch means a truncated transfer; the staging file is removed
        and nothing appears under the final name.
        """

        destination = os.fspath(local_destination)
        tmp_destination = destination + DOWNLOAD_TMP_SUFFIX
        try:
            remote_size = self.do_get_object(bucket, path, tmp_destination)
        except CloudStoreError:
            _remove_staging_file(tmp_destination)
            raise

        try:
            local_size = os.path.getsize(tmp_destination)
        except OSError as exc:
            _remove_staging_file(tmp_destination)
            raise CloudIOError(tmp_destination, str(exc)) from exc

        if local_size != remote_size:
            _remove_staging_file(tmp_destination)
            log_event(
                logger,
                "cloudstore.get_object",
                level=logging.ERROR,
                **object_log_fields(
                    bucket, path, local_size=local_size, remote_size=remote_size, stage="size_mismatch"
                ),
            )
            raise CloudIOError(
                destination,
                f"partial download: local size {local_size} != cloud size {remote_size}",
            )

        try:
            os.replace(tmp_destination, destination)
        except OSError as exc:
            _remove_staging_file(tmp_destination)
            raise CloudIOError(destination, str(exc)) from exc
        log_event(
            logger,
            "cloudstore.get_object",
            **object_log_fields(bucket, path, provider=self.name, size=local_size, stage="done"),
        )

    def put_object(self, local_file: str | os.PathLike[str], bucket: str, path: str) -> None:
        """Upload a whole local file; zero-byte files are always rejected."""

        local = os.fspath(local_file)
        try:
            file_size = os.path.getsize(local)
        except OSError as exc:
            log_event(
                logger,
                "cloudstore.put_object",
                level=logging.ERROR,
                local=local,
                stage="stat_failed",
                error=exc,
            )
            raise CloudIOError(local, str(exc)) from exc
        if file_size == 0:
            log_event(logger, "cloudstore.put_object", level=logging.ERROR, local=local, stage="zero_size")
            raise CloudIOError(local, "zero size")
        self.do_put_object(local, bucket, path, file_size)

    # -- file handles --------------------------------------------------------

    def new_cloud_readable_file(self, bucket: str, path: str) -> CloudReadableFile:
        size = self.get_object_size(bucket, path)
        return self.do_new_cloud_readable_file(bucket, normalize_object_path(path), size)

    def new_cloud_writable_file(
        self,
        local_path: str | os.PathLike[str],
        bucket: str,
        path: str,
    ) -> CloudWritableFile:
        return CloudWritableFile(self, local_path, bucket, normalize_object_path(path))
