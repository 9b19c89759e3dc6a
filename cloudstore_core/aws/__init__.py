"""S3 provider variant (boto3 / s3transfer)."""

from cloudstore_core.aws.client import S3ClientWrapper, build_s3_client, create_transfer_manager
from cloudstore_core.aws.errors import is_not_found, translate_error
from cloudstore_core.aws.s3_provider import S3ReadableFile, S3StorageProvider

__all__ = [
    "S3ClientWrapper",
    "S3ReadableFile",
    "S3StorageProvider",
    "build_s3_client",
    "create_transfer_manager",
    "is_not_found",
    "translate_error",
]
