"""Select a provider variant by its configured name."""

from __future__ import annotations

from typing import Any

from cloudstore_core.config import CloudStorageOptions
from cloudstore_core.errors import InvalidConfigurationError
from cloudstore_core.provider import CloudStorageProvider

_PROVIDERS: dict[str, type[CloudStorageProvider]] = {}


def register_storage_provider(name: str, cls: type[CloudStorageProvider]) -> None:
    key = (name or "").strip().lower()
    if not key:
        raise ValueError("provider name is required")
    _PROVIDERS[key] = cls


def registered_providers() -> list[str]:
    _register_builtins()
    return sorted(_PROVIDERS)


def _register_builtins() -> None:
    if "local" not in _PROVIDERS:
        from cloudstore_core.local_provider import LocalStorageProvider

        _PROVIDERS["local"] = LocalStorageProvider
    if "s3" not in _PROVIDERS:
        from cloudstore_core.aws.s3_provider import S3StorageProvider

        _PROVIDERS["s3"] = S3StorageProvider


def load_storage_provider(
    options: CloudStorageOptions,
    *,
    sanitize: bool = True,
    **kwargs: Any,
) -> CloudStorageProvider:
    """Instantiate the provider named by ``options.provider``.

    Extra keyword arguments go to the variant constructor (``client=`` for s3,
    ``root_dir=`` for local). ``sanitize_options`` runs unless disabled.
    """

    _register_builtins()
    name = (options.provider or "").strip().lower()
    cls = _PROVIDERS.get(name)
    if cls is None:
        raise InvalidConfigurationError("provider", f"unknown storage provider {options.provider!r}")
    provider = cls(options, **kwargs)
    if sanitize:
        try:
            provider.sanitize_options()
        except Exception:
            provider.close()
            raise
    return provider
