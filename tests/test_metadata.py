"""Tests for LEEM data record parsers."""

from __future__ import annotations

import io

import pytest

from uviewfile import (
    AVERAGING,
    CorruptTagStreamError,
    FileHandle,
    LeemData,
    read_leem_data,
)
from uviewfile.metadata import leem_tag_reader, read_leem_string

from generate_uview_data import leem_record


def scan(data: bytes, leemdataversion: int = 2, offset: int = 0) -> LeemData:
    fh = FileHandle(io.BytesIO(data))
    return read_leem_data(fh, offset, leemdataversion)


class TestLeemData:
    """Tests for LeemData defaults."""

    def test_defaults(self):
        meta = LeemData()
        assert meta.startvoltage == 0.0
        assert meta.temperature == 25.0
        assert meta.azimuth == 360.0
        assert meta.pressure == 0.0
        assert meta.timestamp.timestamp() == 0
        assert meta.micrometerx is None
        assert meta.micrometery is None
        assert meta.complete

    def test_update_merges_mappings(self):
        meta = LeemData()
        meta.update({'gauges': {'MCH': (1.0, 'Torr')}})
        meta.update({'gauges': {'PCH': (2.0, 'Torr')}, 'title': 'x'})
        assert meta.gauges == {'MCH': (1.0, 'Torr'), 'PCH': (2.0, 'Torr')}
        assert meta.title == 'x'

    def test_asdict(self):
        meta = LeemData()
        meta.diagnostics.append('message')
        result = meta.asdict()
        assert 'diagnostics' not in result
        assert result['temperature'] == 25.0


class TestReadLeemData:
    """Tests for read_leem_data."""

    def test_end_tag_only(self):
        meta = scan(b'\xff')
        assert meta.terminated
        assert meta.complete
        assert meta.budget == 1
        assert meta.tags == []
        assert meta.micrometerx is None
        assert meta.title == ''
        assert meta.gauges == {}
        assert meta.modules == {}
        assert meta.temperature == 25.0

    def test_offset(self):
        data = bytes(7) + leem_record(100, 1.5, 2.5) + b'\xff'
        meta = scan(data, offset=7)
        assert meta.micrometerx == 1.5
        assert meta.micrometery == 2.5

    def test_padding_cap(self):
        data = b'\x10' * 1024
        fh = FileHandle(io.BytesIO(data))
        meta = read_leem_data(fh, 0, 2)
        assert not meta.terminated
        assert meta.complete
        assert meta.budget == 256
        assert len(meta.tags) == 86
        assert set(meta.tags) == {16}
        # tag and one payload byte per record
        assert fh.tell() == 2 * 86
        assert 'no end tag' in meta.diagnostics[-1]

    def test_record_capped_at_budget(self):
        # 83 padding records and one ignored tag consume 250 units
        data = (
            b'\x10\x00' * 83
            + b'\x78'
            + leem_record(100, 1.0, 2.0)
            + leem_record(105, 'never read')
        )
        meta = scan(data)
        assert meta.micrometerx == 1.0
        assert meta.budget == 256
        assert meta.tags == [16] * 83 + [100]
        assert meta.title == ''
        assert not meta.terminated

    def test_micrometer(self):
        meta = scan(leem_record(100, 12.5, -0.75) + b'\xff')
        assert meta.micrometerx == 12.5
        assert meta.micrometery == -0.75
        assert meta.tags == [100]
        assert meta.budget == 1 + 8 + 1

    def test_fov_budget_excludes_terminator(self):
        meta = scan(leem_record(101, 'LEED') + b'\xff')
        assert meta.fov == 'LEED'
        assert meta.budget == 1 + 4 + 1

    def test_title(self):
        meta = scan(leem_record(105, 'Ag(111)') + b'\xff')
        assert meta.title == 'Ag(111)'
        assert meta.budget == 1 + 7 + 1

    def test_reserved(self):
        data = leem_record(102, 1.0) + leem_record(103, 2.0) + b'\xff'
        meta = scan(data)
        assert meta.reserved == {102: 1.0, 103: 2.0}
        assert meta.budget == 1 + 4 + 1 + 4 + 1

    def test_exposure_averaging(self):
        data = (
            leem_record(104, 0.5, b'\xff\x00')
            + leem_record(100, 1.0, 2.0)
            + b'\xff'
        )
        meta = scan(data, leemdataversion=2)
        assert meta.exposure == 0.5
        assert meta.averaging == AVERAGING.SLIDING
        # averaging bytes are read but not accounted
        assert meta.micrometerx == 1.0
        assert meta.budget == 1 + 4 + 1 + 8 + 1

    def test_exposure_averaging_count(self):
        meta = scan(leem_record(104, 0.5, b'\x08\x00') + b'\xff')
        assert meta.averaging == 8
        meta = scan(leem_record(104, 0.5, b'\x00\x00') + b'\xff')
        assert meta.averaging == AVERAGING.NONE

    def test_exposure_version1(self):
        data = leem_record(104, 0.5) + leem_record(100, 1.0, 2.0) + b'\xff'
        meta = scan(data, leemdataversion=1)
        assert meta.exposure == 0.5
        assert meta.averaging is None
        assert meta.micrometery == 2.0

    def test_gauge_pressure(self):
        meta = scan(leem_record(106, 'MCH', 'Torr', 2.5e-10) + b'\xff')
        value, units = meta.gauges['MCH']
        assert value == pytest.approx(2.5e-10)
        assert units == 'Torr'
        assert meta.pressure == pytest.approx(2.5e-10)
        assert meta.temperature == 25.0
        # name length is accounted twice, units length not at all
        assert meta.budget == 1 + 2 * 3 + 4 + 1

    def test_gauge_temperature(self):
        meta = scan(leem_record(108, 'TC', '°C', 420.0) + b'\xff')
        assert meta.gauges['TC'] == (420.0, '°C')
        assert meta.temperature == 420.0
        assert meta.pressure == 0.0

    def test_fovcalibration(self):
        meta = scan(leem_record(110, '25 µm', 1.125) + b'\xff')
        assert meta.fovcalibration == ('25 µm', 1.125)
        assert meta.budget == 1 + 5 + 4 + 1

    def test_phitheta(self):
        meta = scan(leem_record(111, 1.5, -2.0) + b'\xff')
        assert meta.phi == 1.5
        assert meta.theta == -2.0

    def test_mcp(self):
        data = leem_record(115, 4.5) + leem_record(116, 1.25) + b'\xff'
        meta = scan(data)
        assert meta.mcpscreen == 4.5
        assert meta.mcpchannelplate == 1.25

    def test_module_reading(self):
        data = (
            leem_record(11, 'Start Voltage', 3.5)
            + leem_record(39, 'Sample Temp.', 600.0)
            + leem_record(40, 'Azimuth', 90.0)
            + b'\xff'
        )
        meta = scan(data)
        assert meta.modules == {
            'Start Voltage': 3.5,
            'Sample Temp.': 600.0,
            'Azimuth': 90.0,
        }
        assert meta.temperature == 600.0
        assert meta.azimuth == 90.0
        # start voltage is reserved
        assert meta.startvoltage == 0.0
        assert meta.budget == 1 + (1 + 13 + 4) + (1 + 12 + 4) + (1 + 7 + 4)

    def test_module_reading_high_bit(self):
        meta = scan(leem_record(129 + 10, '', 7.0) + b'\xff')
        assert meta.modules == {'module11': 7.0}
        assert meta.tags == [139]

    def test_unknown_tag_ignored(self):
        data = b'\x78' + leem_record(100, 1.0, 2.0) + b'\xff'
        meta = scan(data)
        assert meta.micrometerx == 1.0
        assert meta.tags == [100]
        assert meta.budget == 1 + 1 + 8 + 1
        assert 'tag 120 @0 ignored' in meta.diagnostics

    def test_unknown_tags_terminate(self):
        meta = scan(b'\x7f' * 300)
        assert meta.budget == 256
        assert meta.complete
        assert meta.tags == []

    def test_string_without_terminator(self):
        data = leem_record(105, b'A' * 300) + b'\xff'
        meta = scan(data)
        assert meta.complete
        assert meta.budget == 256
        assert meta.title == 'A' * 255

    def test_undecodable_string(self):
        meta = scan(leem_record(105, b'A\x81\x8dB\x00') + b'\xff')
        assert meta.complete
        assert meta.title == 'A\ufffd\ufffdB'
        assert meta.budget == 1 + 4 + 1

    def test_cp1252_string(self):
        meta = scan(leem_record(105, '\xb5m \xb0C') + b'\xff')
        assert meta.title == '\xb5m \xb0C'

    def test_corrupt_string(self):
        data = leem_record(100, 1.0, 2.0) + leem_record(105, b'Ag(1')
        meta = LeemData()
        fh = FileHandle(io.BytesIO(data))
        with pytest.raises(CorruptTagStreamError, match='tag 105'):
            read_leem_data(fh, 0, 2, meta)
        assert not meta.complete
        assert meta.micrometerx == 1.0
        assert meta.tags == [100]
        assert 'truncated' in meta.diagnostics[-1]

    def test_corrupt_float(self):
        with pytest.raises(CorruptTagStreamError):
            scan(leem_record(100, 1.0)[:-2])

    def test_missing_end_tag(self):
        with pytest.raises(CorruptTagStreamError, match='past end of file'):
            scan(leem_record(100, 1.0, 2.0))

    def test_logging(self, caplog):
        caplog.set_level('DEBUG', logger='uviewfile')
        scan(leem_record(100, 1.0, 2.0) + b'\xff')
        assert '<uviewfile.read_leem_data> tag 100' in caplog.text


class TestTagReaders:
    """Tests for leem_tag_reader and read_leem_string."""

    def test_lookup(self):
        assert leem_tag_reader(16).__name__ == 'read_leem_padding'
        assert leem_tag_reader(107).__name__ == 'read_leem_gauge'
        assert leem_tag_reader(116).__name__ == 'read_leem_mcp'
        assert leem_tag_reader(0).__name__ == 'read_leem_module'
        assert leem_tag_reader(99).__name__ == 'read_leem_module'
        assert leem_tag_reader(129).__name__ == 'read_leem_module'
        assert leem_tag_reader(112) is None
        assert leem_tag_reader(128) is None

    def test_read_string(self):
        fh = FileHandle(io.BytesIO(b'abc\x00def'))
        assert read_leem_string(fh, 10) == ('abc', 3, False)
        assert fh.tell() == 4

    def test_read_string_truncated(self):
        fh = FileHandle(io.BytesIO(b'abcdef\x00'))
        assert read_leem_string(fh, 3) == ('abc', 3, True)
        assert fh.tell() == 3

    def test_read_string_eof(self):
        fh = FileHandle(io.BytesIO(b'abc'))
        with pytest.raises(EOFError):
            read_leem_string(fh, 10)
