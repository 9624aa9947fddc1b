"""Tests for UView file and image header readers."""

from __future__ import annotations

import io
import struct
from datetime import datetime, timezone

import pytest

from uviewfile import (
    FileHandle,
    TruncatedHeaderError,
    UViewFileError,
    read_file_header,
    read_image_header,
)
from uviewfile.headers import file_header_dtype

from generate_uview_data import file_header, image_header, uview_bytes


def handle(data: bytes) -> FileHandle:
    return FileHandle(io.BytesIO(data))


class TestFileHeader:
    """Tests for read_file_header."""

    def test_version8(self):
        fh = handle(uview_bytes(shape=(3, 5), version=8))
        header = read_file_header(fh)
        assert header.magic == 'UKSOFT2001'
        assert header.version == 8
        assert header.headersize == 104
        assert header.bitspersample == 16
        assert header.width == 5
        assert header.height == 3
        assert header.shape == (3, 5)
        assert header.imagecount == 1
        assert header.camerabitspersample == 12
        assert header.mcpdiameter == 1024
        assert header.hbinning == 1
        assert header.vbinning == 1
        assert header.recipesize == 0
        assert header.imageheader_offset == 104
        assert header.tagstream_offset == 104 + 28

    def test_version7_recipe(self):
        fh = handle(uview_bytes(version=7, recipe=bytes(64)))
        header = read_file_header(fh)
        assert header.version == 7
        assert header.recipesize == 64
        assert header.imageheader_offset == 104 + 64
        # camera fields are not present before version 8
        assert header.camerabitspersample == 0
        assert header.mcpdiameter == 0
        assert header.hbinning == 0
        assert header.vbinning == 0

    def test_version8_recipe_after_camera_fields(self):
        data = bytearray(file_header(2, 2, version=8, recipesize=256))
        assert struct.unpack('<H', data[52:54])[0] == 256
        header = read_file_header(handle(bytes(data)))
        assert header.recipesize == 256

    def test_version6_no_recipe(self):
        data = bytearray(uview_bytes(version=6))
        # bytes where newer versions store the recipe size
        data[46:48] = b'\xff\xff'
        header = read_file_header(handle(bytes(data)))
        assert header.version == 6
        assert header.recipesize == 0
        assert header.imageheader_offset == header.headersize

    def test_truncated_before_shape(self):
        data = uview_bytes()[:43]
        with pytest.raises(TruncatedHeaderError):
            read_file_header(handle(data))

    def test_truncated_version8(self):
        data = file_header(2, 2, version=8)[:50]
        with pytest.raises(TruncatedHeaderError, match='version 8'):
            read_file_header(handle(data))

    def test_minimal_version6(self):
        data = file_header(2, 2, version=6, headersize=46)
        assert len(data) == 46
        header = read_file_header(handle(data))
        assert header.shape == (2, 2)

    def test_headersize_too_small(self):
        data = file_header(2, 2, version=8, headersize=48)
        with pytest.raises(TruncatedHeaderError, match='smaller'):
            read_file_header(handle(data))

    def test_zero_width(self):
        data = file_header(0, 2)
        with pytest.raises(UViewFileError, match='invalid image shape'):
            read_file_header(handle(data))

    def test_imagecount(self, caplog):
        data = uview_bytes(imagecount=3)
        header = read_file_header(handle(data))
        assert header.imagecount == 3
        assert 'reading first image only' in caplog.text

    def test_asdict_and_eq(self):
        data = uview_bytes()
        header = read_file_header(handle(data))
        assert header.asdict()['width'] == 2
        assert header == read_file_header(handle(data))
        assert 'version=8' in repr(header)

    def test_dtype_sizes(self):
        assert file_header_dtype(1).itemsize == 46
        assert file_header_dtype(6).itemsize == 46
        assert file_header_dtype(7).itemsize == 48
        assert file_header_dtype(8).itemsize == 54
        assert file_header_dtype(10).itemsize == 54


class TestImageHeader:
    """Tests for read_image_header."""

    def test_fields(self):
        data = bytes(10) + image_header(
            size=288,
            version=5,
            colorlow=10,
            colorhigh=4000,
            time=132223104000000000,
            markupsize=200,
            spin=1,
            leemdataversion=2,
        )
        header = read_image_header(handle(data), 10)
        assert header.size == 288
        assert header.version == 5
        assert header.colorlow == 10
        assert header.colorhigh == 4000
        assert header.markupsize == 200
        assert header.markup_blocksize == 256
        assert header.spin == 1
        assert header.leemdataversion == 2
        assert header.has_leemdata
        assert header.datetime == datetime(2020, 1, 1, tzinfo=timezone.utc)

    def test_markupsize_old_version(self):
        data = image_header(version=4, markupsize=200)
        header = read_image_header(handle(data), 0)
        assert header.markupsize == 0
        assert header.markup_blocksize == 128
        assert not header.has_leemdata

    def test_markup_blocksize(self):
        header = read_image_header(handle(image_header(markupsize=128)), 0)
        assert header.markup_blocksize == 256
        header = read_image_header(handle(image_header(markupsize=127)), 0)
        assert header.markup_blocksize == 128

    def test_truncated(self):
        data = image_header()[:20]
        with pytest.raises(TruncatedHeaderError, match='image header'):
            read_image_header(handle(data), 0)

    def test_small_size(self, caplog):
        caplog.set_level('INFO', logger='uviewfile')
        header = read_image_header(handle(image_header(size=8)), 0)
        assert header.size == 8
        assert 'smaller than 28' in caplog.text
