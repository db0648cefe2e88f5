# metaswap/cleaners/merge.py
"""
Metadata replacement for JPEGs at the segment level:
1) Copy the donor's metadata segments (APP1-APP14, COM), in order.
2) Copy everything else from the destination image: tables, frame header,
   scans and their entropy-coded data, unchanged.
Without a donor, step 1 is skipped and the image comes out stripped.
The output is framed with a fresh SOI/EOI pair.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO

from metaswap.cleaners.segments import EOI_BYTES, SOI_BYTES, copy_segments, is_metadata_marker
from metaswap.errors import MergeError, ScanError

logger = logging.getLogger(__name__)


def _is_structural_marker(marker: int) -> bool:
    return not is_metadata_marker(marker)


class _Output:
    """Sink wrapper that reports write failures against the output."""

    def __init__(self, dst: BinaryIO):
        self._dst = dst

    def write(self, data: bytes) -> int:
        try:
            return self._dst.write(data)
        except OSError as exc:
            raise MergeError("output", exc) from exc

    def flush(self) -> None:
        try:
            self._dst.flush()
        except OSError as exc:
            raise MergeError("output", exc) from exc


def merge(
    dst: BinaryIO,
    image: BinaryIO,
    metadata_image: BinaryIO | None = None,
    strip_trailer: bool = False,
) -> None:
    """
    Write `image` to `dst` with its metadata replaced by that of `metadata_image`.

    The donor goes through the same validation as the image, so a donor with
    a trailer is rejected unless strip_trailer is set, even though only its
    metadata segments are used.
    """
    out = _Output(dst)
    out.write(SOI_BYTES)

    if metadata_image is not None:
        # Metadata segments need to come first
        try:
            copy_segments(metadata_image, out, is_metadata_marker, strip_trailer=strip_trailer)
        except (ScanError, OSError) as exc:
            raise MergeError("source", exc) from exc

    try:
        copy_segments(image, out, _is_structural_marker, strip_trailer=strip_trailer)
    except (ScanError, OSError) as exc:
        raise MergeError("destination", exc) from exc

    out.write(EOI_BYTES)
    out.flush()


def merge_files(
    out_path: Path,
    image_path: Path,
    metadata_path: Path | None = None,
    strip_trailer: bool = False,
) -> None:
    """Path-level merge; the output is fsynced before returning."""
    try:
        out = open(out_path, "wb")
    except OSError as exc:
        raise MergeError("output", exc) from exc
    with out:
        try:
            image = open(image_path, "rb")
        except OSError as exc:
            raise MergeError("destination", exc) from exc
        with image:
            if metadata_path is None:
                merge(out, image, strip_trailer=strip_trailer)
            else:
                try:
                    donor = open(metadata_path, "rb")
                except OSError as exc:
                    raise MergeError("source", exc) from exc
                with donor:
                    merge(out, image, donor, strip_trailer=strip_trailer)
        try:
            os.fsync(out.fileno())
        except OSError as exc:
            raise MergeError("output", exc) from exc

    logger.info(
        "Wrote %s (%s)", out_path,
        f"metadata from {metadata_path}" if metadata_path is not None else "metadata stripped",
    )
