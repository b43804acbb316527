#!/usr/bin/env python3
"""
oro-shards CLI - Erasure-coded shard files for a single object.

Commands:
  oro-shards split <input> <fragments_dir>      Write shard files and metadata
  oro-shards restore <fragments_dir> <output>   Rebuild the object from shards
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .errors import ShardStoreError
from .models import StripeLayout
from .pipeline import RestorePipeline, SplitPipeline

logger = logging.getLogger(__name__)

METADATA_FILENAME = "meta"


def _progress_printer(total: int):
    def report(done: int) -> None:
        pct = 100 if total == 0 else done * 100 // total
        print(f"\r{done}/{total} bytes ({pct}%)", end="", file=sys.stderr, flush=True)

    return report


def _layout(args: argparse.Namespace) -> StripeLayout:
    key = bytes.fromhex(args.hash_key) if args.hash_key else b""
    return StripeLayout(hash_key=key)


def _metadata_path(args: argparse.Namespace) -> Path:
    return Path(args.meta) if args.meta else Path(args.fragments_dir) / METADATA_FILENAME


def cmd_split(args: argparse.Namespace) -> int:
    """Split an input file into shard files."""
    source = Path(args.input)
    pipeline = SplitPipeline(args.fragments_dir, _metadata_path(args), _layout(args))
    with source.open("rb") as f:
        total = source.stat().st_size
        result = pipeline.split(
            f,
            name=args.name or source.name,
            total_length=total,
            progress=None if args.quiet else _progress_printer(total),
        )
    if not args.quiet:
        print(file=sys.stderr)
    print(f"Split {result.total_size} bytes into {result.stripe_count} stripes ({result.shard_files} shard files)")
    return 0


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore an object from shard files."""
    pipeline = RestorePipeline(args.fragments_dir, _metadata_path(args), _layout(args))
    metadata = pipeline.read_metadata()

    output = Path(args.output)
    if output.is_dir():
        # Only the final component of the recorded name, so it stays inside the directory
        filename = Path(metadata.name).name
        if filename in ("", ".", ".."):
            filename = "restored"
        output = output / filename

    try:
        with output.open("wb") as f:
            result = pipeline.restore(
                f,
                progress=None if args.quiet else _progress_printer(metadata.total_size),
            )
    except ShardStoreError:
        # Never leave a truncated object behind
        output.unlink(missing_ok=True)
        raise
    if not args.quiet:
        print(file=sys.stderr)
    print(f"Restored {result.bytes_written} bytes to {output}")
    if result.degraded_stripes:
        print(f"Reconstructed from parity: stripes {result.degraded_stripes}")
    return 0


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="oro-shards",
        description="Split files into erasure-coded, integrity-checked shard files and restore them",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="No progress output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    split_parser = subparsers.add_parser("split", help="Write shard files for an input file")
    split_parser.add_argument("input", help="File to split")
    split_parser.add_argument("fragments_dir", help="Directory for shard files")
    split_parser.add_argument("--meta", help=f"Metadata file (default: <fragments_dir>/{METADATA_FILENAME})")
    split_parser.add_argument("--name", help="Object name to record (default: input file name)")
    split_parser.add_argument("--hash-key", help="Hex-encoded hash key, at most 64 bytes")
    split_parser.set_defaults(func=cmd_split)

    restore_parser = subparsers.add_parser("restore", help="Rebuild a file from its shard files")
    restore_parser.add_argument("fragments_dir", help="Directory holding shard files")
    restore_parser.add_argument("output", help="Output file, or directory to write the recorded name into")
    restore_parser.add_argument("--meta", help=f"Metadata file (default: <fragments_dir>/{METADATA_FILENAME})")
    restore_parser.add_argument("--hash-key", help="Hex-encoded hash key used at split time")
    restore_parser.set_defaults(func=cmd_restore)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = app()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except ValueError as e:
        # Bad --hash-key or layout parameters
        parser.error(str(e))
    except (ShardStoreError, OSError) as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
