"""Key and filename helpers shared by every provider."""

from cloudstore_core.io.filenames import (
    encode_varint64,
    is_manifest_file,
    is_table_file,
    remove_epoch,
    table_file_number,
)
from cloudstore_core.io.keys import (
    SEPARATOR,
    join_key,
    normalize_list_prefix,
    normalize_object_path,
)

__all__ = [
    "SEPARATOR",
    "encode_varint64",
    "is_manifest_file",
    "is_table_file",
    "join_key",
    "normalize_list_prefix",
    "normalize_object_path",
    "remove_epoch",
    "table_file_number",
]
