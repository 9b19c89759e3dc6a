"""Bucket, credential and encryption configuration.

Options can be built directly, resolved from the environment
(``CLOUDSTORE_*`` first, then the ``S3_*``/``AWS_*`` fallbacks), or loaded
from a YAML document.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from cloudstore_core.errors import InvalidConfigurationError
from cloudstore_core.observability import log_event

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_TRANSFER_CONCURRENCY = 8

RequestCallback = Callable[[str, int, int, bool], None]


class EncryptionMode(str, Enum):
    NONE = "none"
    SSE_S3 = "sse-s3"
    SSE_KMS = "sse-kms"


@dataclass(frozen=True)
class EncryptionOptions:
    mode: EncryptionMode = EncryptionMode.NONE
    key_id: str | None = None

    def extra_args(self) -> dict[str, str]:
        """Request parameters for every upload path (put, multipart, metadata rewrite)."""

        if self.mode is EncryptionMode.SSE_S3:
            return {"ServerSideEncryption": "AES256"}
        if self.mode is EncryptionMode.SSE_KMS:
            args = {"ServerSideEncryption": "aws:kms"}
            if self.key_id:
                args["SSEKMSKeyId"] = self.key_id
            return args
        return {}


@dataclass(frozen=True)
class BucketOptions:
    name: str
    region: str = DEFAULT_REGION

    def __post_init__(self) -> None:
        if not (self.name or "").strip():
            raise ValueError("bucket name is required")


@dataclass(frozen=True)
class CloudStorageOptions:
    provider: str = "s3"
    src_bucket: BucketOptions | None = None
    dest_bucket: BucketOptions | None = None
    create_bucket_if_missing: bool = True
    keep_local_table_files: bool = False
    encryption: EncryptionOptions = field(default_factory=EncryptionOptions)
    use_transfer_manager: bool = False
    transfer_concurrency: int = DEFAULT_TRANSFER_CONCURRENCY
    endpoint_url: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    session_token: str | None = None
    url_style: str = "path"
    request_callback: RequestCallback | None = None

    @property
    def region(self) -> str:
        for bucket in (self.src_bucket, self.dest_bucket):
            if bucket is not None:
                return bucket.region
        return DEFAULT_REGION

    def with_overrides(self, **changes: Any) -> CloudStorageOptions:
        return replace(self, **changes)


def validate_cloud_options(options: CloudStorageOptions) -> CloudStorageOptions:
    """Reject configurations the providers cannot serve.

    Source and destination buckets must live in the same region.
    """

    src, dest = options.src_bucket, options.dest_bucket
    if src is not None and dest is not None and src.region != dest.region:
        log_event(
            logger,
            "cloudstore.config.region_mismatch",
            level=logging.ERROR,
            src_bucket=src.name,
            src_region=src.region,
            dest_bucket=dest.name,
            dest_region=dest.region,
        )
        raise InvalidConfigurationError(
            f"{src.name},{dest.name}",
            f"two different regions not supported: {src.region} != {dest.region}",
        )
    if options.transfer_concurrency < 1:
        raise InvalidConfigurationError("transfer_concurrency", "must be >= 1")
    return options


def _parse_bool(value: object, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y"}:
        return True
    if text in {"0", "false", "no", "n"}:
        return False
    return default


def _parse_int(value: object, *, name: str, default: int) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise InvalidConfigurationError(name, f"expected an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError(name, f"expected an integer, got {value!r}") from exc


def _parse_encryption(raw: Any) -> EncryptionOptions:
    if not raw:
        return EncryptionOptions()
    if isinstance(raw, str):
        raw = {"mode": raw}
    if not isinstance(raw, Mapping):
        raise InvalidConfigurationError("encryption", "must be a mode name or a mapping")
    mode_raw = str(raw.get("mode") or EncryptionMode.NONE.value).strip().lower()
    try:
        mode = EncryptionMode(mode_raw)
    except ValueError as exc:
        raise InvalidConfigurationError("encryption.mode", f"unknown mode {mode_raw!r}") from exc
    key_id = str(raw.get("key_id") or "").strip() or None
    return EncryptionOptions(mode=mode, key_id=key_id)


def _parse_bucket(raw: Any, *, name: str) -> BucketOptions | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        if not raw.strip():
            raise InvalidConfigurationError(name, "bucket name is required")
        return BucketOptions(name=raw.strip())
    if not isinstance(raw, Mapping):
        raise InvalidConfigurationError(name, "must be a bucket name or a mapping")
    bucket_name = str(raw.get("name") or "").strip()
    if not bucket_name:
        raise InvalidConfigurationError(name, "bucket name is required")
    return BucketOptions(name=bucket_name, region=str(raw.get("region") or DEFAULT_REGION))


def cloud_options_from_mapping(data: Mapping[str, Any]) -> CloudStorageOptions:
    if not isinstance(data, Mapping):
        raise InvalidConfigurationError("config", "must be a mapping")
    options = CloudStorageOptions(
        provider=str(data.get("provider") or "s3"),
        src_bucket=_parse_bucket(data.get("src_bucket"), name="src_bucket"),
        dest_bucket=_parse_bucket(data.get("dest_bucket"), name="dest_bucket"),
        create_bucket_if_missing=_parse_bool(data.get("create_bucket_if_missing"), default=True),
        keep_local_table_files=_parse_bool(data.get("keep_local_table_files"), default=False),
        encryption=_parse_encryption(data.get("encryption")),
        use_transfer_manager=_parse_bool(data.get("use_transfer_manager"), default=False),
        transfer_concurrency=_parse_int(
            data.get("transfer_concurrency"),
            name="transfer_concurrency",
            default=DEFAULT_TRANSFER_CONCURRENCY,
        ),
        endpoint_url=data.get("endpoint_url") or None,
        access_key=data.get("access_key") or None,
        secret_key=data.get("secret_key") or None,
        session_token=data.get("session_token") or None,
        url_style=str(data.get("url_style") or "path"),
    )
    return validate_cloud_options(options)


def load_cloud_options(path: str | Path) -> CloudStorageOptions:
    """Load options from a YAML file."""

    config_path = Path(path)
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except FileNotFoundError as exc:
        raise InvalidConfigurationError(str(config_path), "config file not found") from exc
    except yaml.YAMLError as exc:
        raise InvalidConfigurationError(str(config_path), f"invalid YAML: {exc}") from exc
    return cloud_options_from_mapping(data)


def _env_first(env: Mapping[str, str], *names: str) -> str | None:
    for name in names:
        value = env.get(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def resolve_cloud_options_from_env(env: Mapping[str, str] | None = None) -> CloudStorageOptions:
    """Resolve options from environment variables.

    Priority per field: ``CLOUDSTORE_*``, then ``S3_*``, then ``AWS_*``.
    """

    env = env if env is not None else dict(os.environ)
    region = _env_first(env, "CLOUDSTORE_REGION", "S3_REGION", "AWS_REGION") or DEFAULT_REGION

    src_name = _env_first(env, "CLOUDSTORE_SRC_BUCKET")
    dest_name = _env_first(env, "CLOUDSTORE_DEST_BUCKET", "S3_BUCKET_NAME")
    src = (
        BucketOptions(src_name, _env_first(env, "CLOUDSTORE_SRC_REGION") or region)
        if src_name
        else None
    )
    dest = (
        BucketOptions(dest_name, _env_first(env, "CLOUDSTORE_DEST_REGION") or region)
        if dest_name
        else None
    )

    options = CloudStorageOptions(
        provider=_env_first(env, "CLOUDSTORE_PROVIDER") or "s3",
        src_bucket=src,
        dest_bucket=dest,
        create_bucket_if_missing=_parse_bool(
            env.get("CLOUDSTORE_CREATE_BUCKET_IF_MISSING"), default=True
        ),
        keep_local_table_files=_parse_bool(
            env.get("CLOUDSTORE_KEEP_LOCAL_TABLE_FILES"), default=False
        ),
        encryption=_parse_encryption(
            {
                "mode": env.get("CLOUDSTORE_ENCRYPTION"),
                "key_id": env.get("CLOUDSTORE_ENCRYPTION_KEY_ID"),
            }
        ),
        use_transfer_manager=_parse_bool(env.get("CLOUDSTORE_USE_TRANSFER_MANAGER"), default=False),
        transfer_concurrency=_parse_int(
            env.get("CLOUDSTORE_TRANSFER_CONCURRENCY"),
            name="CLOUDSTORE_TRANSFER_CONCURRENCY",
            default=DEFAULT_TRANSFER_CONCURRENCY,
        ),
        endpoint_url=_env_first(env, "CLOUDSTORE_ENDPOINT_URL", "S3_ENDPOINT_URL"),
        access_key=_env_first(env, "CLOUDSTORE_ACCESS_KEY_ID", "S3_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID"),
        secret_key=_env_first(
            env, "CLOUDSTORE_SECRET_ACCESS_KEY", "S3_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY"
        ),
        session_token=_env_first(env, "S3_SESSION_TOKEN", "AWS_SESSION_TOKEN"),
        url_style=_env_first(env, "S3_URL_STYLE") or "path",
    )
    return validate_cloud_options(options)
