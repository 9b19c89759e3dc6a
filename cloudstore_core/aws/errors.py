"""Translate boto3/botocore/s3transfer failures into cloudstore errors."""

from __future__ import annotations

from botocore.exceptions import BotoCoreError, ClientError
from s3transfer.exceptions import RetriesExceededError, S3UploadFailedError

from cloudstore_core.errors import CloudIOError, CloudStoreError, ObjectNotFoundError

NOT_FOUND_CODES = frozenset(
    {"NoSuchBucket", "NoSuchKey", "ResourceNotFound", "ResourceNotFoundException", "NotFound", "404"}
)
NOT_FOUND_MARKER = "Response code: 404"
ALREADY_EXISTS_CODES = frozenset({"BucketAlreadyExists", "BucketAlreadyOwnedByYou"})

REMOTE_ERRORS = (ClientError, BotoCoreError, RetriesExceededError, S3UploadFailedError)


def error_code(exc: BaseException) -> str:
    response = getattr(exc, "response", None) or {}
    error = response.get("Error") or {}
    return str(error.get("Code") or "")


def error_message(exc: BaseException) -> str:
    response = getattr(exc, "response", None) or {}
    error = response.get("Error") or {}
    message = str(error.get("Message") or "").strip()
    return message or str(exc)


def _http_status(exc: BaseException) -> int | None:
    response = getattr(exc, "response", None) or {}
    metadata = response.get("ResponseMetadata") or {}
    status = metadata.get("HTTPStatusCode")
    return int(status) if status is not None else None


def is_not_found(exc: BaseException) -> bool:
    if error_code(exc) in NOT_FOUND_CODES:
        return True
    if _http_status(exc) == 404:
        return True
    return NOT_FOUND_MARKER in str(exc) or NOT_FOUND_MARKER in error_message(exc)


def translate_error(exc: BaseException, path: str) -> CloudStoreError:
    """Map a remote failure to ``ObjectNotFoundError`` or ``CloudIOError``.

    Already-translated errors pass through untouched.
    """

    if isinstance(exc, CloudStoreError):
        return exc
    detail = error_message(exc)
    if is_not_found(exc):
        return ObjectNotFoundError(path, detail)
    return CloudIOError(path, detail)
