from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path

from cloudstore_core.accounting import CloudRequestOpType, request_guard
from cloudstore_core.config import CloudStorageOptions
from cloudstore_core.errors import CloudIOError, ObjectNotFoundError
from cloudstore_core.io.keys import normalize_object_path
from cloudstore_core.observability import log_event, object_log_fields
from cloudstore_core.provider import CloudStorageProvider, ListPage, ObjectInfo
from cloudstore_core.readable_file import CloudReadableFile

logger = logging.getLogger(__name__)

METADATA_DIR = ".cloudstore-metadata"


class LocalReadableFile(CloudReadableFile):
    kind = "local"

    def __init__(self, object_file: Path, bucket: str, path: str, file_size: int) -> None:
        super().__init__(bucket, path, file_size)
        self._object_file = object_file

    def _do_cloud_read(self, offset: int, n: int) -> bytes:
        try:
            with self._object_file.open("rb") as handle:
                handle.seek(offset)
                return handle.read(n)
        except FileNotFoundError as exc:
            raise ObjectNotFoundError(self.path, str(exc)) from exc
        except OSError as exc:
            raise CloudIOError(self.path, str(exc)) from exc


class LocalStorageProvider(CloudStorageProvider):
    """Buckets are directories under ``root_dir``; keys are relative file paths.

    Object metadata lives in a sidecar tree so it never shows up in listings.
    """

    name = "local"

    def __init__(self, options: CloudStorageOptions, *, root_dir: str | Path) -> None:
        super().__init__(options)
        self.root_dir = Path(root_dir).resolve()
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _bucket_dir(self, bucket: str) -> Path:
        if not bucket or bucket == METADATA_DIR or "/" in bucket:
            raise ValueError(f"invalid bucket name: {bucket!r}")
        return self.root_dir / bucket

    def _object_file(self, bucket: str, path: str) -> Path:
        key = normalize_object_path(path)
        bucket_dir = self._bucket_dir(bucket)
        target = (bucket_dir / key).resolve()
        try:
            target.relative_to(bucket_dir.resolve())
        except ValueError as exc:
            raise ValueError(f"path escapes bucket: {path}") from exc
        return target

    def _metadata_file(self, bucket: str, path: str) -> Path:
        return self.root_dir / METADATA_DIR / bucket / f"{normalize_object_path(path)}.json"

    def _require_bucket(self, bucket: str) -> Path:
        bucket_dir = self._bucket_dir(bucket)
        if not bucket_dir.is_dir():
            raise ObjectNotFoundError(bucket, "no such bucket")
        return bucket_dir

    def _require_object(self, bucket: str, path: str) -> Path:
        self._require_bucket(bucket)
        target = self._object_file(bucket, path)
        if not target.is_file():
            raise ObjectNotFoundError(normalize_object_path(path), "no such key")
        return target

    def create_bucket(self, bucket: str) -> None:
        with request_guard(self.options.request_callback, CloudRequestOpType.CREATE) as record:
            try:
                self._bucket_dir(bucket).mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise CloudIOError(bucket, str(exc)) from exc
            record.success = True

    def exists_bucket(self, bucket: str) -> bool:
        with request_guard(self.options.request_callback, CloudRequestOpType.INFO) as record:
            record.success = self._bucket_dir(bucket).is_dir()
            return record.success

    def list_page(self, bucket: str, prefix: str, marker: str, max_keys: int) -> ListPage:
        with request_guard(self.options.request_callback, CloudRequestOpType.LIST) as record:
            bucket_dir = self._require_bucket(bucket)
            keys = sorted(
                file_path.relative_to(bucket_dir).as_posix()
                for file_path in bucket_dir.rglob("*")
                if file_path.is_file()
            )
            candidates = [key for key in keys if key.startswith(prefix) and key > marker]
            page = candidates[:max_keys]
            record.success = True
            return ListPage(keys=page, is_truncated=len(candidates) > max_keys)

    def delete_object(self, bucket: str, path: str) -> None:
        with request_guard(self.options.request_callback, CloudRequestOpType.DELETE) as record:
            target = self._require_object(bucket, path)
            try:
                target.unlink()
                self._metadata_file(bucket, path).unlink(missing_ok=True)
            except OSError as exc:
                raise CloudIOError(normalize_object_path(path), str(exc)) from exc
            record.success = True
        log_event(logger, "cloudstore.local.delete_object", **object_log_fields(bucket, path))

    def copy_object(self, src_bucket: str, src_path: str, dest_bucket: str, dest_path: str) -> None:
        with request_guard(self.options.request_callback, CloudRequestOpType.COPY) as record:
            source = self._require_object(src_bucket, src_path)
            self._require_bucket(dest_bucket)
            target = self._object_file(dest_bucket, dest_path)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(source, target)
            except OSError as exc:
                raise CloudIOError(f"{dest_bucket}/{dest_path}", str(exc)) from exc
            record.size = target.stat().st_size
            record.success = True

    def head_object(self, bucket: str, path: str) -> ObjectInfo:
        with request_guard(self.options.request_callback, CloudRequestOpType.INFO) as record:
            target = self._require_object(bucket, path)
            stat = target.stat()
            metadata_file = self._metadata_file(bucket, path)
            metadata: dict[str, str] = {}
            if metadata_file.is_file():
                metadata = json.loads(metadata_file.read_text(encoding="utf-8"))
            record.success = True
            return ObjectInfo(
                size=stat.st_size,
                last_modified_ms=int(stat.st_mtime * 1000),
                metadata=metadata,
            )

    def put_object_metadata(self, bucket: str, path: str, metadata: dict[str, str]) -> None:
        with request_guard(self.options.request_callback, CloudRequestOpType.WRITE) as record:
            self._require_object(bucket, path)
            metadata_file = self._metadata_file(bucket, path)
            metadata_file.parent.mkdir(parents=True, exist_ok=True)
            payload = {str(k): str(v) for k, v in metadata.items()}
            metadata_file.write_text(json.dumps(payload, sort_keys=True), encoding="utf-8")
            record.success = True

    def do_get_object(self, bucket: str, path: str, destination: str) -> int:
        with request_guard(self.options.request_callback, CloudRequestOpType.READ) as record:
            source = self._require_object(bucket, path)
            try:
                remote_size = source.stat().st_size
                shutil.copyfile(source, destination)
            except OSError as exc:
                raise CloudIOError(destination, str(exc)) from exc
            record.size = remote_size
            record.success = True
            return remote_size

    def do_put_object(self, local_file: str, bucket: str, path: str, file_size: int) -> None:
        with request_guard(self.options.request_callback, CloudRequestOpType.WRITE, file_size) as record:
            self._require_bucket(bucket)
            target = self._object_file(bucket, path)
            staging = target.with_name(target.name + ".uploading")
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(local_file, staging)
                os.replace(staging, target)
            except OSError as exc:
                staging.unlink(missing_ok=True)
                raise CloudIOError(local_file, str(exc)) from exc
            self._metadata_file(bucket, path).unlink(missing_ok=True)
            record.success = True
        log_event(
            logger,
            "cloudstore.local.put_object",
            **object_log_fields(bucket, normalize_object_path(path), size=file_size),
        )

    def do_new_cloud_readable_file(self, bucket: str, path: str, file_size: int) -> CloudReadableFile:
        return LocalReadableFile(self._object_file(bucket, path), bucket, path, file_size)
