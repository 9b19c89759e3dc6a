from __future__ import annotations

from pathlib import Path

import pytest

from cloudstore_core.aws.s3_provider import S3StorageProvider
from cloudstore_core.config import BucketOptions, CloudStorageOptions
from cloudstore_core.local_provider import LocalStorageProvider
from cloudstore_core.testing.fake_s3 import FakeS3Client

BUCKET = "db-bucket"


@pytest.fixture
def fake_s3() -> FakeS3Client:
    client = FakeS3Client()
    client.create_bucket(Bucket=BUCKET)
    client.calls.clear()
    return client


@pytest.fixture
def options() -> CloudStorageOptions:
    return CloudStorageOptions(dest_bucket=BucketOptions(BUCKET, "us-east-1"))


@pytest.fixture
def s3_provider(fake_s3: FakeS3Client, options: CloudStorageOptions) -> S3StorageProvider:
    return S3StorageProvider(options, client=fake_s3)


@pytest.fixture
def local_provider(tmp_path: Path, options: CloudStorageOptions) -> LocalStorageProvider:
    provider = LocalStorageProvider(options.with_overrides(provider="local"), root_dir=tmp_path / "remote")
    provider.create_bucket(BUCKET)
    return provider
