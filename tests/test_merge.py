# tests/test_merge.py
from io import BufferedWriter, BytesIO
from pathlib import Path
import pytest
from metaswap.cleaners.merge import merge, merge_files
from metaswap.cleaners.segments import Segment, iter_regions
from metaswap.errors import MalformedLength, MergeError, MissingStartMarker, UnexpectedTrailer
from jpeg_bytes import (
    ADOBE, APP0, COMMENT, DHT, DQT, EXIF, SCAN, SOF0, SOS, XMP, jpeg, segment,
)

# Metadata first, so that a self-merge keeps every segment in place
TAGGED = jpeg(EXIF, COMMENT, DQT, SOF0, DHT, SOS, SCAN)
STRIPPED = jpeg(DQT, SOF0, DHT, SOS, SCAN)


def _merge(image: bytes, donor: bytes | None = None, strip_trailer: bool = False) -> bytes:
    out = BytesIO()
    merge(out, BytesIO(image), BytesIO(donor) if donor is not None else None, strip_trailer=strip_trailer)
    return out.getvalue()


def _segments(data: bytes) -> list[bytes]:
    return [r.raw for r in iter_regions(BytesIO(data)) if isinstance(r, Segment)]


def test_self_merge_is_a_no_op():
    assert _merge(TAGGED, TAGGED) == TAGGED


def test_strip_without_donor():
    assert _merge(TAGGED) == STRIPPED


def test_stripping_is_idempotent():
    once = _merge(TAGGED)
    assert _merge(once) == once


def test_donor_metadata_first_then_destination_structure():
    s1, s2 = DQT, SOF0
    donor = jpeg(APP0, XMP, segment(0xDB, b"\x01" * 65), ADOBE, SOS, b"\x55\x66")
    destination = jpeg(EXIF, s1, COMMENT, s2, SOS, SCAN)
    out = _merge(destination, donor)
    assert _segments(out) == [XMP, ADOBE, s1, s2, SOS]
    assert out.endswith(SCAN + b"\xff\xd9")


def test_jfif_header_comes_from_the_destination():
    donor = jpeg(APP0.replace(b"JFIF", b"JFXX"), EXIF, DQT, SOS, SCAN)
    destination = jpeg(APP0, DQT, SOF0, SOS, SCAN)
    out = _merge(destination, donor)
    assert _segments(out) == [EXIF, APP0, DQT, SOF0, SOS]


def test_donor_trailer_fails_the_merge():
    donor = jpeg(EXIF, DQT, SOS, SCAN, trailer=b"\x00")
    with pytest.raises(MergeError) as info:
        _merge(STRIPPED, donor)
    assert info.value.role == "source"
    assert isinstance(info.value.__cause__, UnexpectedTrailer)


def test_trailers_dropped_when_stripping():
    donor = jpeg(EXIF, DQT, SOS, SCAN, trailer=b"extra")
    destination = jpeg(DQT, SOF0, DHT, SOS, SCAN, trailer=b"\x00\x00")
    assert _merge(destination, donor, strip_trailer=True) == jpeg(EXIF, DQT, SOF0, DHT, SOS, SCAN)


def test_malformed_destination():
    with pytest.raises(MergeError) as info:
        _merge(b"\x00\x00" + TAGGED[2:])
    assert info.value.role == "destination"
    assert isinstance(info.value.__cause__, MissingStartMarker)


def test_malformed_length_in_donor():
    donor = b"\xff\xd8\xff\xe1\x00\x00\xff\xd9"
    with pytest.raises(MergeError) as info:
        _merge(STRIPPED, donor)
    assert isinstance(info.value.__cause__, MalformedLength)


def test_output_is_flushed():
    raw = BytesIO()
    sink = BufferedWriter(raw, buffer_size=1 << 20)
    merge(sink, BytesIO(TAGGED))
    assert raw.getvalue() == STRIPPED


def test_merge_files(tmp_path: Path):
    image = tmp_path / "image.jpg"
    donor = tmp_path / "donor.jpg"
    out = tmp_path / "out.jpg"
    image.write_bytes(jpeg(COMMENT, DQT, SOF0, SOS, SCAN))
    donor.write_bytes(TAGGED)

    merge_files(out, image, donor)
    assert out.read_bytes() == jpeg(EXIF, COMMENT, DQT, SOF0, SOS, SCAN)

    merge_files(out, image)
    assert out.read_bytes() == jpeg(DQT, SOF0, SOS, SCAN)


def test_merge_files_missing_donor(tmp_path: Path):
    image = tmp_path / "image.jpg"
    image.write_bytes(TAGGED)
    with pytest.raises(MergeError) as info:
        merge_files(tmp_path / "out.jpg", image, tmp_path / "nope.jpg")
    assert info.value.role == "source"
    assert isinstance(info.value.__cause__, FileNotFoundError)


class _FullDisk(BytesIO):
    """Accepts the first write, then fails like a full disk."""

    def write(self, data):
        if self.tell() > 0:
            raise OSError(28, "No space left on device")
        return super().write(data)


@pytest.mark.parametrize("donor", [None, jpeg(EXIF, DQT)])
def test_sink_failure_is_blamed_on_the_output(donor):
    sink = _FullDisk()
    with pytest.raises(MergeError) as info:
        merge(sink, BytesIO(STRIPPED), BytesIO(donor) if donor is not None else None)
    assert info.value.role == "output"
    assert info.value.__cause__.errno == 28
    assert sink.getvalue() == b"\xff\xd8"
