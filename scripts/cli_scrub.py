# scripts/cli_scrub.py
r"""
CLI metadata swapper for JPEGs (no web server needed).
Usage examples (from project root, with your venv activated):

  python scripts/cli_scrub.py photo.jpg                 (strip metadata from photo.jpg)
  python scripts/cli_scrub.py original.jpg edited.jpg   (give edited.jpg the metadata of original.jpg)
  python scripts/cli_scrub.py --strip-trailer photo.jpg (drop data after EOI instead of failing)

The destination is rewritten in place. It is backed up to <destination>~ during
the operation; the backup is removed once the new file is complete.
"""
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path

# Ensures "metaswap" is importable even when running by path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from metaswap.errors import MergeError
from metaswap.settings import STRIP_TRAILER
from metaswap.utils.backup import backup_path_for, replace_metadata

USAGE = "usage: cli_scrub.py [flags] [source] destination"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        usage=USAGE,
        description="Replace the metadata of a JPEG with that of another one, or strip it.",
    )
    parser.add_argument(
        "--strip-trailer",
        action=argparse.BooleanOptionalAction,
        default=STRIP_TRAILER,
        help="Drop data after EOI. By default, a trailer in either file is an error.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every segment")
    parser.add_argument("paths", nargs="*", metavar="path", help="[source] destination")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if len(args.paths) == 1:
        source, destination = None, Path(args.paths[0])
    elif len(args.paths) == 2:
        source, destination = Path(args.paths[0]), Path(args.paths[1])
    else:
        print(USAGE)
        return 0

    try:
        replace_metadata(destination, source, strip_trailer=args.strip_trailer)
    except MergeError as e:
        print(f"❌ metaswap: {e}")
        backup = backup_path_for(destination)
        if backup.exists():
            print(f"   The original is kept at {backup}; {destination} may be incomplete.")
        return 1
    except OSError as e:
        print(f"❌ metaswap: {e}")
        return 1

    if source is None:
        print(f"✅ Stripped metadata: {destination.name}")
    else:
        print(f"✅ Copied metadata: {source.name} → {destination.name}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
