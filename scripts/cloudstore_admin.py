from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from cloudstore_core.config import (
    CloudStorageOptions,
    load_cloud_options,
    resolve_cloud_options_from_env,
)
from cloudstore_core.errors import CloudStoreError, ObjectNotFoundError
from cloudstore_core.provider import CloudStorageProvider
from cloudstore_core.registry import load_storage_provider

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and manage cloud-backed database files.")
    parser.add_argument("--config", type=Path, default=None, help="YAML options file")
    parser.add_argument("--provider", choices=["s3", "local"], default=None)
    parser.add_argument("--local-root", type=Path, default=Path(".local_cloud"))

    sub = parser.add_subparsers(dest="command", required=True)

    ls = sub.add_parser("ls", help="list a logical directory")
    ls.add_argument("bucket")
    ls.add_argument("prefix", nargs="?", default="")

    head = sub.add_parser("head", help="print size, mtime and metadata")
    head.add_argument("bucket")
    head.add_argument("path")

    get = sub.add_parser("get", help="download an object")
    get.add_argument("bucket")
    get.add_argument("path")
    get.add_argument("destination", type=Path)

    put = sub.add_parser("put", help="upload a local file")
    put.add_argument("local_file", type=Path)
    put.add_argument("bucket")
    put.add_argument("path")

    rm = sub.add_parser("rm", help="delete an object")
    rm.add_argument("bucket")
    rm.add_argument("path")

    empty = sub.add_parser("empty", help="delete everything under a prefix")
    empty.add_argument("bucket")
    empty.add_argument("prefix")

    mkbucket = sub.add_parser("mkbucket", help="create a bucket (idempotent)")
    mkbucket.add_argument("bucket")
    return parser


def _options_from_args(args: argparse.Namespace) -> CloudStorageOptions:
    options = load_cloud_options(args.config) if args.config else resolve_cloud_options_from_env()
    if args.provider:
        options = options.with_overrides(provider=args.provider)
    return options


def _open_provider(options: CloudStorageOptions, args: argparse.Namespace) -> CloudStorageProvider:
    kwargs = {"root_dir": args.local_root} if options.provider == "local" else {}
    return load_storage_provider(options, sanitize=False, **kwargs)


def _run(provider: CloudStorageProvider, args: argparse.Namespace) -> None:
    if args.command == "ls":
        for name in provider.list_objects(args.bucket, args.prefix):
            print(name)
    elif args.command == "head":
        info = provider.head_object(args.bucket, args.path)
        print(
            json.dumps(
                {"size": info.size, "last_modified_ms": info.last_modified_ms, "metadata": info.metadata},
                sort_keys=True,
            )
        )
    elif args.command == "get":
        provider.get_object(args.bucket, args.path, args.destination)
    elif args.command == "put":
        provider.put_object(args.local_file, args.bucket, args.path)
    elif args.command == "rm":
        provider.delete_object(args.bucket, args.path)
    elif args.command == "empty":
        provider.empty_bucket(args.bucket, args.prefix)
    elif args.command == "mkbucket":
        provider.create_bucket(args.bucket)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = build_parser().parse_args(argv)

    try:
        options = _options_from_args(args)
        with _open_provider(options, args) as provider:
            _run(provider, args)
    except ObjectNotFoundError as exc:
        logger.error("not found: %s", exc)
        return 2
    except CloudStoreError as exc:
        logger.error("failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
