from __future__ import annotations


class CloudStoreError(Exception):
    """Base error for cloudstore_core.

    Carries the failed ``path`` (``bucket/key`` or a local file) and the
    remote error text in ``detail``.
    """

    def __init__(self, path: str = "", detail: str = "") -> None:
        self.path = path
        self.detail = detail
        message = ": ".join(part for part in (path, detail) if part)
        super().__init__(message or self.__class__.__name__)


class ObjectNotFoundError(CloudStoreError):
    """Raised when a bucket or object does not exist."""


class CloudIOError(CloudStoreError):
    """Raised for remote/local I/O failures and broken listing invariants."""


class InvalidConfigurationError(CloudStoreError):
    """Raised when bucket/provider configuration is unusable."""


class EmptyBucketError(CloudIOError):
    """Raised by ``empty_bucket`` after every delete was attempted."""

    def __init__(self, bucket: str, failed: list[str]) -> None:
        self.failed = list(failed)
        super().__init__(bucket, f"failed to delete {len(self.failed)} object(s)")
