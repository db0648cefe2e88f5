# metaswap/cleaners/segments.py
"""
Segment-level JPEG walker. This never decodes a JPEG: it only follows the
marker/length structure and skips the entropy-coded data after each SOS.

A stream is read as a sequence of regions:
  - Segment: FF <marker> <16-bit big-endian length> <payload of length-2 bytes>
  - ScanData: opaque bytes following an SOS segment, up to the next FF xx
    where xx is neither 00 (stuffed FF) nor a restart marker (D0-D7).

copy_segments() writes the regions accepted by a marker predicate to a sink,
byte for byte, and consumes the rest.
"""
from __future__ import annotations

import logging
import struct
from typing import BinaryIO, Callable, Iterator, NamedTuple, Union

from metaswap.errors import (
    InvalidMarker,
    MalformedLength,
    MissingStartMarker,
    Truncated,
    UnexpectedTrailer,
)

logger = logging.getLogger(__name__)

PREFIX = 0xFF
SOI = 0xD8
EOI = 0xD9
SOS = 0xDA
RST0 = 0xD0
RST7 = 0xD7
APP0 = 0xE0
APP1 = 0xE1   # typically EXIF / XMP
APP14 = 0xEE  # typically Adobe / copyright info
APP15 = 0xEF
COM = 0xFE

SOI_BYTES = bytes((PREFIX, SOI))
EOI_BYTES = bytes((PREFIX, EOI))

_NAMES = {
    SOI: "SOI", EOI: "EOI", SOS: "SOS", COM: "COM",
    0xC4: "DHT", 0xC8: "JPG", 0xCC: "DAC",
    0xDB: "DQT", 0xDC: "DNL", 0xDD: "DRI", 0xDE: "DHP", 0xDF: "EXP",
}

_CHUNK_SIZE = 64 * 1024


def is_metadata_marker(marker: int) -> bool:
    """APP1..APP14 and COM carry metadata; APP0 (JFIF) and APP15 are kept as structure."""
    return APP1 <= marker <= APP14 or marker == COM


def is_restart_marker(marker: int) -> bool:
    return RST0 <= marker <= RST7


def marker_name(marker: int) -> str:
    if marker in _NAMES:
        return _NAMES[marker]
    if 0xC0 <= marker <= 0xCF:
        return f"SOF{marker - 0xC0}"
    if is_restart_marker(marker):
        return f"RST{marker - RST0}"
    if APP0 <= marker <= APP15:
        return f"APP{marker - APP0}"
    return f"0x{marker:02X}"


class Segment(NamedTuple):
    marker: int
    offset: int
    length: int
    payload: bytes

    @property
    def name(self) -> str:
        return marker_name(self.marker)

    @property
    def raw(self) -> bytes:
        return bytes((PREFIX, self.marker)) + struct.pack(">H", self.length) + self.payload


class ScanData(NamedTuple):
    offset: int
    data: bytes


Region = Union[Segment, ScanData]


class _Reader:
    """Buffered cursor over a binary stream with a small lookahead."""

    def __init__(self, stream: BinaryIO, chunk_size: int = _CHUNK_SIZE):
        self._stream = stream
        self._chunk_size = chunk_size
        self._buf = bytearray()
        self._pos = 0
        self._base = 0  # absolute offset of _buf[0]

    @property
    def offset(self) -> int:
        return self._base + self._pos

    def _available(self) -> int:
        return len(self._buf) - self._pos

    def _fill(self, n: int) -> bool:
        if self._available() >= n:
            return True
        if self._pos:
            del self._buf[:self._pos]
            self._base += self._pos
            self._pos = 0
        while len(self._buf) < n:
            chunk = self._stream.read(max(self._chunk_size, n - len(self._buf)))
            if not chunk:
                return False
            self._buf += chunk
        return True

    def read(self, n: int, state: str) -> bytes:
        if not self._fill(n):
            raise Truncated(
                f"stream ended in {state}: needed {n} bytes, got {self._available()}",
                state, self.offset,
            )
        data = bytes(self._buf[self._pos:self._pos + n])
        self._pos += n
        return data

    def at_eof(self) -> bool:
        return not self._fill(1)

    def take_scan_data(self) -> bytes:
        """
        Consume the longest run of scan data currently buffered.
        Returns b"" when the next two bytes form a real marker (left unconsumed).
        Equivalent to peeking two bytes and advancing one byte at a time.
        """
        if not self._fill(2):
            raise Truncated("stream ended in scan data before a marker", "scan data", self.offset)
        buf, pos = self._buf, self._pos
        i = buf.find(PREFIX, pos)
        if i == -1:
            end = len(buf)
        elif i + 1 == len(buf):
            # FF is the last buffered byte; decide once the next byte is in
            end = i
        else:
            follower = buf[i + 1]
            if follower == 0x00 or is_restart_marker(follower):
                end = i + 1
            else:
                end = i
        data = bytes(buf[pos:end])
        self._pos = end
        return data


def iter_regions(src: BinaryIO, strip_trailer: bool = False) -> Iterator[Region]:
    """
    Yield the segments and scan-data spans of a JPEG stream in order.
    SOI and EOI are validated but not yielded.
    With strip_trailer False, any byte after EOI raises UnexpectedTrailer;
    with strip_trailer True, nothing after EOI is read.
    """
    reader = _Reader(src)
    if reader.read(2, "start") != SOI_BYTES:
        raise MissingStartMarker("expected SOI", "start", 0)

    while True:
        offset = reader.offset
        prefix, marker = reader.read(2, "segment header")
        if prefix != PREFIX:
            raise InvalidMarker(f"invalid marker prefix 0x{prefix:02X}", "segment header", offset)
        if marker == EOI:
            if not strip_trailer and not reader.at_eof():
                raise UnexpectedTrailer("unexpected trailer after EOI", "end", reader.offset)
            return

        (length,) = struct.unpack(">H", reader.read(2, "segment length"))
        if length < 2:
            raise MalformedLength(
                f"{marker_name(marker)} declares length {length}, minimum is 2",
                "segment length", offset,
            )
        payload = reader.read(length - 2, "segment payload")
        yield Segment(marker, offset, length, payload)

        if marker == SOS:
            while True:
                data_offset = reader.offset
                data = reader.take_scan_data()
                if not data:
                    break
                yield ScanData(data_offset, data)


def copy_segments(
    src: BinaryIO,
    dst: BinaryIO,
    select: Callable[[int], bool],
    strip_trailer: bool = False,
) -> None:
    """
    Copy the segments of src whose marker satisfies select to dst.
    The decision taken for an SOS segment also applies to its scan data.
    """
    keep = False
    for region in iter_regions(src, strip_trailer=strip_trailer):
        if isinstance(region, Segment):
            keep = select(region.marker)
            logger.debug(
                "%s at %d, length %d: %s",
                region.name, region.offset, region.length, "kept" if keep else "dropped",
            )
            if keep:
                dst.write(region.raw)
        elif keep:
            dst.write(region.data)
