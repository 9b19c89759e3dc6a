"""Stable public imports for `cloudstore_core`.

Database-facing code should only need the provider factory, the options types,
the file handles and the error classes exported here.
"""

from cloudstore_core.accounting import CloudRequestOpType
from cloudstore_core.config import (
    BucketOptions,
    CloudStorageOptions,
    EncryptionMode,
    EncryptionOptions,
    load_cloud_options,
    resolve_cloud_options_from_env,
    validate_cloud_options,
)
from cloudstore_core.errors import (
    CloudIOError,
    CloudStoreError,
    EmptyBucketError,
    InvalidConfigurationError,
    ObjectNotFoundError,
)
from cloudstore_core.provider import CloudStorageProvider, ListPage, ObjectInfo
from cloudstore_core.readable_file import CloudReadableFile
from cloudstore_core.registry import load_storage_provider, register_storage_provider
from cloudstore_core.writable_file import CloudWritableFile

__all__ = [
    "BucketOptions",
    "CloudIOError",
    "CloudReadableFile",
    "CloudRequestOpType",
    "CloudStorageOptions",
    "CloudStorageProvider",
    "CloudStoreError",
    "CloudWritableFile",
    "EmptyBucketError",
    "EncryptionMode",
    "EncryptionOptions",
    "InvalidConfigurationError",
    "ListPage",
    "ObjectInfo",
    "ObjectNotFoundError",
    "load_cloud_options",
    "load_storage_provider",
    "register_storage_provider",
    "resolve_cloud_options_from_env",
    "validate_cloud_options",
]
