from __future__ import annotations

from collections.abc import Callable
from typing import Any

from s3transfer.manager import TransferConfig, TransferManager

from cloudstore_core.accounting import CloudRequestOpType, request_guard
from cloudstore_core.config import DEFAULT_TRANSFER_CONCURRENCY, CloudStorageOptions, RequestCallback


def build_s3_client(options: CloudStorageOptions) -> Any:
    """Create a boto3 S3 client for AWS or an S3-compatible endpoint (MinIO)."""

    try:
        import boto3
        from botocore.config import Config
    except ModuleNotFoundError as exc:
        raise RuntimeError("boto3 is required for S3StorageProvider") from exc

    endpoint_url = options.endpoint_url
    use_ssl = True if not endpoint_url else endpoint_url.startswith("https://")
    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        region_name=options.region,
        use_ssl=use_ssl,
        aws_access_key_id=options.access_key,
        aws_secret_access_key=options.secret_key,
        aws_session_token=options.session_token,
        config=Config(s3={"addressing_style": options.url_style}),
    )


def create_transfer_manager(
    client: Any,
    max_concurrency: int = DEFAULT_TRANSFER_CONCURRENCY,
) -> TransferManager:
    """Build a chunked-transfer manager with a bounded worker pool.

    Build it once and pass it to every provider that should share the pool.
    """

    config = TransferConfig(max_request_concurrency=max_concurrency)
    return TransferManager(client, config)


class S3ClientWrapper:
    """Thin wrapper reporting every S3 request to the optional request callback."""

    def __init__(
        self,
        client: Any,
        *,
        request_callback: RequestCallback | None = None,
        transfer_manager: TransferManager | None = None,
    ) -> None:
        self.client = client
        self._callback = request_callback
        self._transfer_manager = transfer_manager

    @property
    def has_transfer_manager(self) -> bool:
        return self._transfer_manager is not None

    def _call(
        self,
        op_type: CloudRequestOpType,
        method: Callable[..., dict[str, Any]],
        size: int = 0,
        **kwargs: Any,
    ) -> dict[str, Any]:
        with request_guard(self._callback, op_type, size) as record:
            response = method(**kwargs)
            record.success = True
            return response

    def list_objects(self, **kwargs: Any) -> dict[str, Any]:
        return self._call(CloudRequestOpType.LIST, self.client.list_objects, **kwargs)

    def create_bucket(self, **kwargs: Any) -> dict[str, Any]:
        return self._call(CloudRequestOpType.CREATE, self.client.create_bucket, **kwargs)

    def head_bucket(self, **kwargs: Any) -> dict[str, Any]:
        return self._call(CloudRequestOpType.INFO, self.client.head_bucket, **kwargs)

    def head_object(self, **kwargs: Any) -> dict[str, Any]:
        return self._call(CloudRequestOpType.INFO, self.client.head_object, **kwargs)

    def delete_object(self, **kwargs: Any) -> dict[str, Any]:
        return self._call(CloudRequestOpType.DELETE, self.client.delete_object, **kwargs)

    def copy_object(self, **kwargs: Any) -> dict[str, Any]:
        return self._call(CloudRequestOpType.COPY, self.client.copy_object, **kwargs)

    def put_object(self, size_hint: int = 0, **kwargs: Any) -> dict[str, Any]:
        return self._call(CloudRequestOpType.WRITE, self.client.put_object, size_hint, **kwargs)

    def get_object(self, **kwargs: Any) -> dict[str, Any]:
        with request_guard(self._callback, CloudRequestOpType.READ) as record:
            response = self.client.get_object(**kwargs)
            record.size = int(response.get("ContentLength") or 0)
            record.success = True
            return response

    def download_file(self, bucket: str, key: str, destination: str) -> int:
        """Blocking chunked download; returns the object size the store reported."""

        if self._transfer_manager is None:
            raise RuntimeError("transfer manager is not configured")
        with request_guard(self._callback, CloudRequestOpType.READ) as record:
            future = self._transfer_manager.download(bucket, key, destination)
            future.result()
            size = int(future.meta.size or 0)
            record.size = size
            record.success = True
            return size

    def upload_file(
        self,
        local_file: str,
        bucket: str,
        key: str,
        file_size: int,
        extra_args: dict[str, str] | None = None,
    ) -> None:
        if self._transfer_manager is None:
            raise RuntimeError("transfer manager is not configured")
        with request_guard(self._callback, CloudRequestOpType.WRITE, file_size) as record:
            future = self._transfer_manager.upload(local_file, bucket, key, extra_args=extra_args or None)
            future.result()
            record.success = True

    def shutdown(self) -> None:
        if self._transfer_manager is not None:
            self._transfer_manager.shutdown()
