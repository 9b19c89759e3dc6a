"""S3 variant of the storage provider (boto3)."""

from __future__ import annotations

import logging
import shutil
from typing import Any

from botocore.exceptions import ClientError
from s3transfer.manager import TransferManager

from cloudstore_core.aws.client import S3ClientWrapper, build_s3_client, create_transfer_manager
from cloudstore_core.aws.errors import (
    ALREADY_EXISTS_CODES,
    REMOTE_ERRORS,
    error_code,
    error_message,
    translate_error,
)
from cloudstore_core.config import DEFAULT_REGION, CloudStorageOptions
from cloudstore_core.errors import CloudIOError
from cloudstore_core.io.keys import normalize_object_path
from cloudstore_core.observability import log_event, object_log_fields
from cloudstore_core.provider import CloudStorageProvider, ListPage, ObjectInfo
from cloudstore_core.readable_file import CloudReadableFile

logger = logging.getLogger(__name__)


class S3ReadableFile(CloudReadableFile):
    kind = "s3"

    def __init__(self, client: S3ClientWrapper, bucket: str, path: str, file_size: int) -> None:
        super().__init__(bucket, path, file_size)
        self._client = client

    def _do_cloud_read(self, offset: int, n: int) -> bytes:
        # Ranges are inclusive and cannot be empty: read one byte and drop it.
        range_len = n if n != 0 else 1
        byte_range = f"bytes={offset}-{offset + range_len - 1}"
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=self.path, Range=byte_range)
            body = response["Body"]
            try:
                return body.read(n) if n else b""
            finally:
                body.close()
        except REMOTE_ERRORS as exc:
            error = translate_error(exc, self.path)
            log_event(
                logger,
                "cloudstore.s3.read",
                level=logging.ERROR,
                **object_log_fields(
                    self.bucket,
                    self.path,
                    range=byte_range,
                    kind=type(error).__name__,
                    error=error.detail,
                ),
            )
            raise error from exc


class S3StorageProvider(CloudStorageProvider):
    name = "s3"

    def __init__(
        self,
        options: CloudStorageOptions,
        *,
        client: Any | None = None,
        transfer_manager: TransferManager | None = None,
    ) -> None:
        super().__init__(options)
        raw_client = client if client is not None else build_s3_client(options)
        self._owns_transfer_manager = False
        if transfer_manager is None and options.use_transfer_manager:
            transfer_manager = create_transfer_manager(raw_client, options.transfer_concurrency)
            self._owns_transfer_manager = True
        self._client = S3ClientWrapper(
            raw_client,
            request_callback=options.request_callback,
            transfer_manager=transfer_manager,
        )
        log_event(
            logger,
            "cloudstore.s3.connect",
            region=options.region,
            endpoint=options.endpoint_url,
            transfer_manager=self._client.has_transfer_manager,
        )

    def close(self) -> None:
        if self._owns_transfer_manager:
            self._client.shutdown()
            self._owns_transfer_manager = False

    def _encryption_args(self) -> dict[str, str]:
        return self.options.encryption.extra_args()

    # -- buckets -------------------------------------------------------------

    def create_bucket(self, bucket: str) -> None:
        kwargs: dict[str, Any] = {"Bucket": bucket}
        region = self.options.region
        # us-east-1 is the implicit location and must not be sent as a constraint.
        if region and region != DEFAULT_REGION:
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self._client.create_bucket(**kwargs)
        except ClientError as exc:
            if error_code(exc) in ALREADY_EXISTS_CODES:
                log_event(logger, "cloudstore.s3.create_bucket", bucket=bucket, stage="exists")
                return
            raise CloudIOError(bucket, error_message(exc)) from exc
        except REMOTE_ERRORS as exc:
            raise CloudIOError(bucket, error_message(exc)) from exc
        log_event(logger, "cloudstore.s3.create_bucket", bucket=bucket, region=region, stage="created")

    def exists_bucket(self, bucket: str) -> bool:
        try:
            self._client.head_bucket(Bucket=bucket)
        except REMOTE_ERRORS as exc:
            logger.debug("[s3] head_bucket %s failed: %s", bucket, error_message(exc))
            return False
        return True

    # -- objects -------------------------------------------------------------

    def list_page(self, bucket: str, prefix: str, marker: str, max_keys: int) -> ListPage:
        kwargs: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix, "MaxKeys": max_keys}
        if marker:
            kwargs["Marker"] = marker
        try:
            response = self._client.list_objects(**kwargs)
        except REMOTE_ERRORS as exc:
            raise translate_error(exc, f"{bucket}/{prefix}") from exc
        keys = [obj["Key"] for obj in response.get("Contents") or []]
        return ListPage(
            keys=keys,
            is_truncated=bool(response.get("IsTruncated")),
            next_marker=response.get("NextMarker") or None,
        )

    def delete_object(self, bucket: str, path: str) -> None:
        key = normalize_object_path(path)
        try:
            self._client.delete_object(Bucket=bucket, Key=key)
        except REMOTE_ERRORS as exc:
            error = translate_error(exc, key)
            log_event(
                logger,
                "cloudstore.s3.delete_object",
                level=logging.ERROR,
                **object_log_fields(bucket, key, kind=type(error).__name__, error=error.detail),
            )
            raise error from exc
        log_event(logger, "cloudstore.s3.delete_object", **object_log_fields(bucket, key, stage="done"))

    def copy_object(self, src_bucket: str, src_path: str, dest_bucket: str, dest_path: str) -> None:
        src_key = normalize_object_path(src_path)
        dest_key = normalize_object_path(dest_path)
        try:
            self._client.copy_object(
                Bucket=dest_bucket,
                Key=dest_key,
                CopySource={"Bucket": src_bucket, "Key": src_key},
            )
        except REMOTE_ERRORS as exc:
            error = translate_error(exc, f"{dest_bucket}/{dest_key}")
            log_event(
                logger,
                "cloudstore.s3.copy_object",
                level=logging.ERROR,
                src=f"{src_bucket}/{src_key}",
                dest=f"{dest_bucket}/{dest_key}",
                error=error.detail,
            )
            raise error from exc
        log_event(
            logger,
            "cloudstore.s3.copy_object",
            src=f"{src_bucket}/{src_key}",
            dest=f"{dest_bucket}/{dest_key}",
            stage="done",
        )

    def head_object(self, bucket: str, path: str) -> ObjectInfo:
        key = normalize_object_path(path)
        try:
            response = self._client.head_object(Bucket=bucket, Key=key)
        except REMOTE_ERRORS as exc:
            raise translate_error(exc, key) from exc
        last_modified = response.get("LastModified")
        modified_ms = int(last_modified.timestamp() * 1000) if last_modified is not None else 0
        return ObjectInfo(
            size=int(response.get("ContentLength") or 0),
            last_modified_ms=modified_ms,
            metadata=dict(response.get("Metadata") or {}),
        )

    def put_object_metadata(self, bucket: str, path: str, metadata: dict[str, str]) -> None:
        """Replace user metadata with an in-place copy; object content is kept."""

        key = normalize_object_path(path)
        try:
            self._client.copy_object(
                Bucket=bucket,
                Key=key,
                CopySource={"Bucket": bucket, "Key": key},
                Metadata={str(k): str(v) for k, v in metadata.items()},
                MetadataDirective="REPLACE",
                **self._encryption_args(),
            )
        except REMOTE_ERRORS as exc:
            error = translate_error(exc, key)
            log_event(
                logger,
                "cloudstore.s3.put_object_metadata",
                level=logging.ERROR,
                **object_log_fields(bucket, key, error=error.detail),
            )
            raise error from exc

    # -- whole-object transfer -----------------------------------------------

    def do_get_object(self, bucket: str, path: str, destination: str) -> int:
        key = normalize_object_path(path)
        try:
            if self._client.has_transfer_manager:
                return self._client.download_file(bucket, key, destination)
            response = self._client.get_object(Bucket=bucket, Key=key)
            remote_size = int(response.get("ContentLength") or 0)
            body = response["Body"]
            try:
                with open(destination, "wb") as handle:
                    shutil.copyfileobj(body, handle)
            finally:
                body.close()
            return remote_size
        except REMOTE_ERRORS as exc:
            error = translate_error(exc, key)
            log_event(
                logger,
                "cloudstore.s3.get_object",
                level=logging.ERROR,
                **object_log_fields(bucket, key, kind=type(error).__name__, error=error.detail),
            )
            raise error from exc
        except OSError as exc:
            raise CloudIOError(destination, str(exc)) from exc

    def do_put_object(self, local_file: str, bucket: str, path: str, file_size: int) -> None:
        key = normalize_object_path(path)
        extra_args = self._encryption_args()
        try:
            if self._client.has_transfer_manager:
                self._client.upload_file(local_file, bucket, key, file_size, extra_args)
            else:
                with open(local_file, "rb") as body:
                    self._client.put_object(
                        file_size,
                        Bucket=bucket,
                        Key=key,
                        Body=body,
                        ContentLength=file_size,
                        **extra_args,
                    )
        except REMOTE_ERRORS as exc:
            log_event(
                logger,
                "cloudstore.s3.put_object",
                level=logging.ERROR,
                **object_log_fields(bucket, key, size=file_size, error=error_message(exc)),
            )
            raise CloudIOError(local_file, error_message(exc)) from exc
        except OSError as exc:
            raise CloudIOError(local_file, str(exc)) from exc
        log_event(
            logger,
            "cloudstore.s3.put_object",
            **object_log_fields(bucket, key, size=file_size, stage="done"),
        )

    def do_new_cloud_readable_file(self, bucket: str, path: str, file_size: int) -> CloudReadableFile:
        return S3ReadableFile(self._client, bucket, path, file_size)
