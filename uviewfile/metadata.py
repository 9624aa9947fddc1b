# metadata.py

"""LEEM data parsers for uviewfile.

LEEM data are a sequence of records following the image header.
Each record starts with a one byte tag code followed by a tag specific
sequence of little-endian float32 values and NULL terminated strings.
The sequence ends with tag 255 or when 256 budget units are consumed.
The units of a record that extends past the budget are capped, the
consumed budget never exceeds 256.

The budget accounting of some records does not match the number of bytes
read, for example the terminators of strings are not counted.
The accounting is kept as written by the acquisition software since
files depend on it when the 256 unit cap is reached.

"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime as DateTime
from datetime import timezone as TimeZone
from typing import TYPE_CHECKING

from .enums import AVERAGING, LEEMTAG
from .utils import CorruptTagStreamError, bytes2str, logger

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any, TypeAlias

    from .fileio import FileHandle

    TagReader: TypeAlias = Callable[
        [FileHandle, int, int, int], tuple[int, dict[str, Any]]
    ]

# UVIEW singleton is lazily imported to avoid circular imports
_UVIEW_SINGLETON = None


def _get_uview():
    global _UVIEW_SINGLETON
    if _UVIEW_SINGLETON is None:
        from .uviewfile import UVIEW
        _UVIEW_SINGLETON = UVIEW
    return _UVIEW_SINGLETON


class _UVIEWProxy:
    """Proxy that lazily resolves to the UVIEW singleton."""
    def __getattr__(self, name):
        return getattr(_get_uview(), name)


UVIEW = _UVIEWProxy()


def _epoch() -> DateTime:
    return DateTime.fromtimestamp(0, TimeZone.utc)


@dataclass
class LeemData:
    """Metadata decoded from LEEM data records.

    Fields keep their defaults if the corresponding record is not present
    or the image header version is <= 4.

    Attributes:
        startvoltage: Start voltage. Reserved, not decoded.
        temperature:
            Sample temperature, 25.0 by default. Values are stored in the
            units reported by the gauge or module reading, which may be
            degree Celsius or Kelvin. See `gauges` and `modules`.
        azimuth: Sample azimuth in degree.
        pressure: Chamber pressure in units of the gauge.
        timestamp: Acquisition time from image header.
        micrometerx: Stage micrometer X position. Tag 100.
        micrometery: Stage micrometer Y position. Tag 100.
        title: Image title. Tag 105.
        fov: Field of view. Tag 101.
        fovcalibration: Field of view and calibration factor. Tag 110.
        gauges: Gauge values and units by gauge name. Tags 106 to 109.
        phi: Sample tilt. Tag 111.
        theta: Sample tilt. Tag 111.
        exposure: Camera exposure time. Tag 104.
        averaging: Image averaging mode, see AVERAGING. Tag 104.
        mcpscreen: MCP screen voltage. Tag 115.
        mcpchannelplate: MCP channel plate voltage. Tag 116.
        reserved: Values of reserved records by tag code. Tags 102, 103.
        modules: Generic module readings by label.
        tags: Codes of decoded records in file order.
        budget: Number of consumed budget units.
        terminated: Records ended with tag 255.
        complete: Records were decoded without error.
        diagnostics: Messages collected while decoding records.

    """

    startvoltage: float = 0.0
    temperature: float = 25.0
    azimuth: float = 360.0
    pressure: float = 0.0
    timestamp: DateTime = field(default_factory=_epoch)
    micrometerx: float | None = None
    micrometery: float | None = None
    title: str = ''
    fov: str = ''
    fovcalibration: tuple[str, float] | None = None
    gauges: dict[str, tuple[float, str]] = field(default_factory=dict)
    phi: float | None = None
    theta: float | None = None
    exposure: float | None = None
    averaging: int | None = None
    mcpscreen: float | None = None
    mcpchannelplate: float | None = None
    reserved: dict[int, float] = field(default_factory=dict)
    modules: dict[str, float] = field(default_factory=dict)
    tags: list[int] = field(default_factory=list)
    budget: int = 0
    terminated: bool = False
    complete: bool = True
    diagnostics: list[str] = field(default_factory=list)

    def update(self, values: dict[str, Any], /) -> None:
        """Update fields from values decoded by a tag reader."""
        for name, value in values.items():
            if name in {'gauges', 'modules', 'reserved'}:
                getattr(self, name).update(value)
            else:
                setattr(self, name, value)

    def asdict(self) -> dict[str, Any]:
        """Return fields as dictionary, excluding diagnostics."""
        result = dataclasses.asdict(self)
        del result['diagnostics']
        return result


def read_leem_data(
    fh: FileHandle,
    offset: int,
    leemdataversion: int,
    /,
    metadata: LeemData | None = None,
) -> LeemData:
    """Read LEEM data records from file.

    Parameters:
        fh:
            File handle.
        offset:
            Position of first record in file.
        leemdataversion:
            Version of LEEM data from image header.
        metadata:
            LeemData instance to update in place.
            By default, a new instance is created.

    Raises:
        CorruptTagStreamError:
            A record extends past the end of the file.
            `metadata` keeps the values of records decoded before.

    """
    if metadata is None:
        metadata = LeemData()
    budget = UVIEW.LEEMDATA_BUDGET
    fh.seek(offset)

    i = 0
    while i < budget:
        pos = fh.tell()
        try:
            tag = fh.unpack('B')[0]
        except EOFError:
            msg = f'tag @{pos} past end of file'
            raise _corrupt(metadata, msg) from None
        i += 1
        if tag == LEEMTAG.END:
            metadata.terminated = True
            break

        reader = leem_tag_reader(tag)
        if reader is None:
            message = f'tag {tag} @{pos} ignored'
            logger().debug(f'<uviewfile.read_leem_data> {message}')
            metadata.diagnostics.append(message)
            continue

        try:
            consumed, values = reader(fh, tag, budget - i, leemdataversion)
        except EOFError as exc:
            msg = f'tag {tag} @{pos} truncated: {exc}'
            raise _corrupt(metadata, msg) from None

        i += min(consumed, budget - i)
        metadata.update(values)
        metadata.tags.append(tag)
        metadata.budget = i
        message = f'tag {tag} @{pos} {values}'
        logger().debug(f'<uviewfile.read_leem_data> {message}')
        metadata.diagnostics.append(message)

    metadata.budget = i
    if not metadata.terminated:
        message = f'no end tag within {budget} budget units'
        logger().debug(f'<uviewfile.read_leem_data> {message}')
        metadata.diagnostics.append(message)
    return metadata


def leem_tag_reader(tag: int, /) -> TagReader | None:
    """Return function to read LEEM data record of tag code.

    Return None for reserved codes in range 100 to 128 without reader.

    >>> leem_tag_reader(100).__name__
    'read_leem_micrometer'
    >>> leem_tag_reader(42).__name__
    'read_leem_module'
    >>> leem_tag_reader(120) is None
    True

    """
    try:
        return UVIEW.TAG_READERS[tag]
    except KeyError:
        pass
    if tag < 100 or tag > 128:
        return read_leem_module
    return None


def read_leem_padding(
    fh: FileHandle, tag: int, remaining: int, leemdataversion: int, /
) -> tuple[int, dict[str, Any]]:
    """Read reserved one byte LEEM data record."""
    fh.unpack('B')
    return 2, {}


def read_leem_micrometer(
    fh: FileHandle, tag: int, remaining: int, leemdataversion: int, /
) -> tuple[int, dict[str, Any]]:
    """Read stage micrometer positions from LEEM data record."""
    x, y = fh.unpack('<2f')
    return 8, {'micrometerx': float(x), 'micrometery': float(y)}


def read_leem_fov(
    fh: FileHandle, tag: int, remaining: int, leemdataversion: int, /
) -> tuple[int, dict[str, Any]]:
    """Read field of view string from LEEM data record."""
    fov, size, _ = read_leem_string(fh, remaining)
    return size, {'fov': fov}


def read_leem_title(
    fh: FileHandle, tag: int, remaining: int, leemdataversion: int, /
) -> tuple[int, dict[str, Any]]:
    """Read image title from LEEM data record."""
    title, size, _ = read_leem_string(fh, remaining)
    return size, {'title': title}


def read_leem_reserved(
    fh: FileHandle, tag: int, remaining: int, leemdataversion: int, /
) -> tuple[int, dict[str, Any]]:
    """Read float value of reserved LEEM data record."""
    value = fh.unpack('<f')[0]
    return 4, {'reserved': {tag: float(value)}}


def read_leem_exposure(
    fh: FileHandle, tag: int, remaining: int, leemdataversion: int, /
) -> tuple[int, dict[str, Any]]:
    """Read camera exposure time and averaging mode from LEEM data record.

    The averaging mode bytes of LEEM data version > 1 are not accounted
    in the budget.

    """
    exposure = fh.unpack('<f')[0]
    result: dict[str, Any] = {'exposure': float(exposure)}
    if leemdataversion > 1:
        averaging = fh.unpack('<bb')[0]
        if averaging < 0:
            averaging = AVERAGING.SLIDING
        elif averaging == 0:
            averaging = AVERAGING.NONE
        result['averaging'] = averaging
    return 4, result


def read_leem_gauge(
    fh: FileHandle, tag: int, remaining: int, leemdataversion: int, /
) -> tuple[int, dict[str, Any]]:
    """Read gauge name, units, and value from LEEM data record.

    The length of the name is accounted twice, the length of the units
    is not accounted.

    """
    name, size, truncated = read_leem_string(fh, remaining)
    if truncated:
        return remaining, {}
    units, unitsize, truncated = read_leem_string(
        fh, remaining - size - 1
    )
    if truncated:
        return remaining, {}
    value = float(fh.unpack('<f')[0])
    result: dict[str, Any] = {'gauges': {name: (value, units)}}
    if units.strip().lstrip('°').upper() in UVIEW.TEMPERATURE_UNITS:
        result['temperature'] = value
    else:
        result['pressure'] = value
    return size * 2 + 4, result


def read_leem_fovcalibration(
    fh: FileHandle, tag: int, remaining: int, leemdataversion: int, /
) -> tuple[int, dict[str, Any]]:
    """Read field of view and calibration factor from LEEM data record."""
    fov, size, truncated = read_leem_string(fh, remaining)
    if truncated:
        return remaining, {}
    factor = float(fh.unpack('<f')[0])
    return size + 4, {'fovcalibration': (fov, factor)}


def read_leem_phitheta(
    fh: FileHandle, tag: int, remaining: int, leemdataversion: int, /
) -> tuple[int, dict[str, Any]]:
    """Read sample tilt angles from LEEM data record."""
    phi, theta = fh.unpack('<2f')
    return 8, {'phi': float(phi), 'theta': float(theta)}


def read_leem_mcp(
    fh: FileHandle, tag: int, remaining: int, leemdataversion: int, /
) -> tuple[int, dict[str, Any]]:
    """Read MCP screen or channel plate voltage from LEEM data record."""
    value = float(fh.unpack('<f')[0])
    if tag == LEEMTAG.MCPSCREEN:
        return 4, {'mcpscreen': value}
    return 4, {'mcpchannelplate': value}


def read_leem_module(
    fh: FileHandle, tag: int, remaining: int, leemdataversion: int, /
) -> tuple[int, dict[str, Any]]:
    """Read generic module label and value from LEEM data record.

    Tag codes above 128 are mapped to ``tag - 128``.

    """
    if tag > 128:
        tag -= 128
    label, size, truncated = read_leem_string(fh, remaining)
    if truncated:
        return remaining, {}
    value = float(fh.unpack('<f')[0])
    if not label:
        label = f'module{tag}'
    result: dict[str, Any] = {'modules': {label: value}}
    name = label.lower()
    if 'temp' in name:
        result['temperature'] = value
    elif 'azimuth' in name:
        result['azimuth'] = value
    return size + 4, result


def read_leem_string(
    fh: FileHandle, maxsize: int, /
) -> tuple[str, int, bool]:
    """Return NULL terminated string, its length, and if it was truncated.

    At most `maxsize` characters are read. The terminator is not included
    in the returned length. Undecodable characters are replaced.

    Raises:
        EOFError: String extends past the end of the file.

    """
    data = bytearray()
    truncated = True
    while len(data) < maxsize:
        char = fh.read(1)
        if not char:
            msg = 'string extends past end of file'
            raise EOFError(msg)
        if char == b'\x00':
            truncated = False
            break
        data += char
    return bytes2str(bytes(data), errors='replace'), len(data), truncated


def _corrupt(metadata: LeemData, message: str, /) -> CorruptTagStreamError:
    metadata.complete = False
    metadata.diagnostics.append(message)
    return CorruptTagStreamError(message)
