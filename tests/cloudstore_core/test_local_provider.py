from __future__ import annotations

from pathlib import Path

import pytest

from cloudstore_core.config import CloudStorageOptions
from cloudstore_core.errors import ObjectNotFoundError
from cloudstore_core.local_provider import METADATA_DIR, LocalStorageProvider

BUCKET = "db-bucket"


def _write(tmp_path: Path, name: str, data: bytes) -> Path:
    path = tmp_path / name
    path.write_bytes(data)
    return path


def test_put_get_round_trip(local_provider: LocalStorageProvider, tmp_path: Path) -> None:
    src = _write(tmp_path, "000007.sst", b"table-bytes")
    local_provider.put_object(src, BUCKET, "/db/000007.sst")

    dest = tmp_path / "restored" / "000007.sst"
    dest.parent.mkdir()
    local_provider.get_object(BUCKET, "db/000007.sst", dest)

    assert dest.read_bytes() == b"table-bytes"
    assert not Path(f"{dest}.tmp").exists()
    assert local_provider.get_object_size(BUCKET, "db/000007.sst") == len(b"table-bytes")
    assert local_provider.exists_object(BUCKET, "db/000007.sst")


def test_listing_pages_past_fifty_keys(local_provider: LocalStorageProvider, tmp_path: Path) -> None:
    src = _write(tmp_path, "payload", b"x")
    for i in range(120):
        local_provider.put_object(src, BUCKET, f"db/{i:06d}.sst")
    local_provider.put_object(src, BUCKET, "other/000001.sst")

    names = local_provider.list_objects(BUCKET, "db")

    assert names == [f"{i:06d}.sst" for i in range(120)]


def test_listing_missing_bucket_is_not_found(local_provider: LocalStorageProvider) -> None:
    with pytest.raises(ObjectNotFoundError):
        local_provider.list_objects("no-such-bucket", "db")


def test_metadata_is_kept_out_of_listings(local_provider: LocalStorageProvider, tmp_path: Path) -> None:
    src = _write(tmp_path, "payload", b"abc")
    local_provider.put_object(src, BUCKET, "db/CURRENT.sst")
    local_provider.put_object_metadata(BUCKET, "db/CURRENT.sst", {"epoch": "e1", "n": 2})

    assert local_provider.get_object_metadata(BUCKET, "db/CURRENT.sst") == {"epoch": "e1", "n": "2"}
    assert local_provider.list_objects(BUCKET, "") == ["db/CURRENT.sst"]
    assert (local_provider.root_dir / METADATA_DIR / BUCKET / "db" / "CURRENT.sst.json").is_file()


def test_overwrite_clears_metadata(local_provider: LocalStorageProvider, tmp_path: Path) -> None:
    src = _write(tmp_path, "payload", b"abc")
    local_provider.put_object(src, BUCKET, "db/a.sst")
    local_provider.put_object_metadata(BUCKET, "db/a.sst", {"k": "v"})
    local_provider.put_object(src, BUCKET, "db/a.sst")

    assert local_provider.get_object_metadata(BUCKET, "db/a.sst") == {}


def test_missing_object_operations_are_not_found(local_provider: LocalStorageProvider, tmp_path: Path) -> None:
    assert not local_provider.exists_object(BUCKET, "db/missing")
    with pytest.raises(ObjectNotFoundError):
        local_provider.delete_object(BUCKET, "db/missing")
    with pytest.raises(ObjectNotFoundError):
        local_provider.get_object_size(BUCKET, "db/missing")
    with pytest.raises(ObjectNotFoundError):
        local_provider.get_object(BUCKET, "db/missing", tmp_path / "out")
    assert not (tmp_path / "out").exists()
    assert not (tmp_path / "out.tmp").exists()


def test_copy_and_empty_bucket(local_provider: LocalStorageProvider, tmp_path: Path) -> None:
    src = _write(tmp_path, "payload", b"abc")
    local_provider.put_object(src, BUCKET, "db/000001.sst")
    local_provider.create_bucket("backup")
    local_provider.copy_object(BUCKET, "db/000001.sst", "backup", "db/000001.sst")

    local_provider.empty_bucket(BUCKET, "db")

    assert local_provider.list_objects(BUCKET, "db") == []
    assert local_provider.list_objects("backup", "db") == ["000001.sst"]


def test_readable_file_reads_ranges(local_provider: LocalStorageProvider, tmp_path: Path) -> None:
    src = _write(tmp_path, "payload", b"0123456789")
    local_provider.put_object(src, BUCKET, "db/000003.sst")

    reader = local_provider.new_cloud_readable_file(BUCKET, "db/000003.sst")

    assert reader.kind == "local"
    assert reader.read_at(2, 3) == b"234"
    assert reader.read_at(8, 10) == b"89"
    assert reader.read(4) == b"0123"
    assert reader.read(4) == b"4567"
    assert reader.unique_id() == bytes([3])


def test_bucket_names_cannot_escape_root(tmp_path: Path, options: CloudStorageOptions) -> None:
    provider = LocalStorageProvider(options, root_dir=tmp_path)
    with pytest.raises(ValueError):
        provider.create_bucket(METADATA_DIR)
    provider.create_bucket(BUCKET)
    with pytest.raises(ValueError, match="escapes bucket"):
        provider.exists_object(BUCKET, "../elsewhere")


def test_request_callback_sees_each_call(tmp_path: Path, options: CloudStorageOptions) -> None:
    seen: list[tuple[str, int, bool]] = []
    provider = LocalStorageProvider(
        options.with_overrides(request_callback=lambda op, size, _micros, ok: seen.append((op, size, ok))),
        root_dir=tmp_path / "remote",
    )
    provider.create_bucket(BUCKET)
    src = _write(tmp_path, "payload", b"abcd")
    provider.put_object(src, BUCKET, "db/a.sst")
    assert not provider.exists_object(BUCKET, "db/b.sst")

    assert seen == [("create", 0, True), ("write", 4, True), ("info", 0, False)]
