# headers.py

"""File and image header readers for uviewfile."""

from __future__ import annotations

from typing import TYPE_CHECKING, final

from .metadata import UVIEW
from .utils import (
    TruncatedHeaderError,
    UViewFileError,
    bytes2str,
    filetime_datetime,
    logger,
)

if TYPE_CHECKING:
    from datetime import datetime as DateTime
    from typing import Any

    import numpy

    from .fileio import FileHandle


@final
class FileHeader:
    """UView file header.

    The layout of the header depends on its version:

    - version <= 6: identification, sizes, and image shape.
    - version 7: adds size of attached recipe.
    - version > 7: adds camera bit depth, MCP diameter, and binning
      before size of attached recipe.

    """

    __slots__ = (
        'bitspersample',
        'camerabitspersample',
        'hbinning',
        'headersize',
        'height',
        'imagecount',
        'magic',
        'mcpdiameter',
        'recipesize',
        'vbinning',
        'version',
        'width',
    )

    magic: str
    """Identification string, for example 'UKSOFT2001'."""

    headersize: int
    """Size of file header in bytes."""

    version: int
    """Version of file header."""

    bitspersample: int
    """Number of bits per pixel."""

    width: int
    """Image width."""

    height: int
    """Image height."""

    imagecount: int
    """Number of images in file. Only the first image is read."""

    camerabitspersample: int
    """Number of bits per pixel of camera. Zero if version < 8."""

    mcpdiameter: int
    """Diameter of MCP in pixels. Zero if version < 8."""

    hbinning: int
    """Horizontal binning. Zero if version < 8."""

    vbinning: int
    """Vertical binning. Zero if version < 8."""

    recipesize: int
    """Size of attached recipe in bytes. Zero if version < 7."""

    def __init__(
        self,
        magic: str,
        headersize: int,
        version: int,
        bitspersample: int,
        width: int,
        height: int,
        imagecount: int,
        camerabitspersample: int = 0,
        mcpdiameter: int = 0,
        hbinning: int = 0,
        vbinning: int = 0,
        recipesize: int = 0,
    ) -> None:
        self.magic = magic
        self.headersize = headersize
        self.version = version
        self.bitspersample = bitspersample
        self.width = width
        self.height = height
        self.imagecount = imagecount
        self.camerabitspersample = camerabitspersample
        self.mcpdiameter = mcpdiameter
        self.hbinning = hbinning
        self.vbinning = vbinning
        self.recipesize = recipesize

    @property
    def shape(self) -> tuple[int, int]:
        """Shape of image array."""
        return (self.height, self.width)

    @property
    def imageheader_offset(self) -> int:
        """Position of image header in file."""
        return self.headersize + self.recipesize

    @property
    def tagstream_offset(self) -> int:
        """Position of LEEM data records in file."""
        return self.headersize + UVIEW.LEEMDATA_OFFSET

    def asdict(self) -> dict[str, Any]:
        """Return header fields as dictionary."""
        return {name: getattr(self, name) for name in self._fields()}

    @staticmethod
    def _fields() -> tuple[str, ...]:
        return (
            'magic',
            'headersize',
            'version',
            'bitspersample',
            'width',
            'height',
            'imagecount',
            'camerabitspersample',
            'mcpdiameter',
            'hbinning',
            'vbinning',
            'recipesize',
        )

    def __eq__(self, other: object, /) -> bool:
        return isinstance(other, FileHeader) and self.asdict() == (
            other.asdict()
        )

    def __hash__(self) -> int:
        return hash(tuple(self.asdict().values()))

    def __repr__(self) -> str:
        return (
            f'<uviewfile.FileHeader version={self.version} '
            f'shape={self.shape} headersize={self.headersize}>'
        )


@final
class ImageHeader:
    """UView image header following file header and attached recipe."""

    __slots__ = (
        'colorhigh',
        'colorlow',
        'leemdataversion',
        'markupsize',
        'maskx',
        'masky',
        'size',
        'spin',
        'time',
        'version',
    )

    size: int
    """Size of image header in bytes."""

    version: int
    """Version of image header. LEEM data are present if > 4."""

    colorlow: int
    """Lower limit of color scale."""

    colorhigh: int
    """Upper limit of color scale."""

    time: int
    """Acquisition time as Windows FILETIME."""

    maskx: int
    """Horizontal shift of mask."""

    masky: int
    """Vertical shift of mask."""

    markupsize: int
    """Size of attached markup. Zero if version < 5."""

    spin: int
    """Spin polarization."""

    leemdataversion: int
    """Version of LEEM data records."""

    def __init__(
        self,
        size: int,
        version: int,
        colorlow: int = 0,
        colorhigh: int = 0,
        time: int = 0,
        maskx: int = 0,
        masky: int = 0,
        markupsize: int = 0,
        spin: int = 0,
        leemdataversion: int = 0,
    ) -> None:
        self.size = size
        self.version = version
        self.colorlow = colorlow
        self.colorhigh = colorhigh
        self.time = time
        self.maskx = maskx
        self.masky = masky
        self.markupsize = markupsize
        self.spin = spin
        self.leemdataversion = leemdataversion

    @property
    def datetime(self) -> DateTime:
        """Acquisition time as UTC datetime.

        The Unix epoch if the acquisition time is out of range.

        """
        try:
            return filetime_datetime(self.time)
        except OverflowError:
            return filetime_datetime(0)

    @property
    def has_leemdata(self) -> bool:
        """Image header is followed by LEEM data records."""
        return self.version > 4

    @property
    def markup_blocksize(self) -> int:
        """Size of markup region, rounded up to next 128 byte block."""
        blocksize = UVIEW.MARKUP_BLOCKSIZE
        return blocksize * (self.markupsize // blocksize + 1)

    def asdict(self) -> dict[str, Any]:
        """Return header fields as dictionary."""
        return {name: getattr(self, name) for name in self.__slots__}

    def __repr__(self) -> str:
        return (
            f'<uviewfile.ImageHeader version={self.version} '
            f'size={self.size} leemdataversion={self.leemdataversion}>'
        )


def read_file_header(fh: FileHandle, /) -> FileHeader:
    """Read UView file header from start of file.

    The file position is undefined after reading.

    Raises:
        TruncatedHeaderError:
            File is shorter than the header of its version, or the
            declared header size is smaller than the header.
        UViewFileError: Image width or height is zero.

    """
    minsize = UVIEW.FILE_HEADER_MINSIZE
    if fh.size < minsize:
        msg = f'file is too short for file header ({fh.size} < {minsize})'
        raise TruncatedHeaderError(msg)

    fh.seek(0)
    record = fh.read_record(UVIEW.FILE_HEADER_V1)
    version = int(record['version'])
    dtype = file_header_dtype(version)
    if dtype is not UVIEW.FILE_HEADER_V1:
        fh.seek(0)
        try:
            record = fh.read_record(dtype)
        except EOFError:
            msg = (
                f'file is too short for file header version {version} '
                f'({fh.size} < {dtype.itemsize})'
            )
            raise TruncatedHeaderError(msg) from None

    fields = record.dtype.names
    header = FileHeader(
        magic=bytes2str(record['id'], errors='replace'),
        headersize=int(record['headersize']),
        version=version,
        bitspersample=int(record['bitspersample']),
        width=int(record['width']),
        height=int(record['height']),
        imagecount=int(record['imagecount']),
        **{
            name: int(record[name])
            for name in (
                'camerabitspersample',
                'mcpdiameter',
                'hbinning',
                'vbinning',
                'recipesize',
            )
            if name in fields
        },
    )

    consumed = record.dtype.itemsize
    if header.headersize < consumed:
        msg = (
            f'declared file header size {header.headersize} is smaller '
            f'than {consumed} bytes of version {version} header'
        )
        raise TruncatedHeaderError(msg)
    if header.width == 0 or header.height == 0:
        msg = f'invalid image shape {header.shape}'
        raise UViewFileError(msg)
    if header.imagecount > 1:
        logger().warning(
            f'<uviewfile.read_file_header> file contains '
            f'{header.imagecount} images, reading first image only'
        )
    return header


def read_image_header(fh: FileHandle, offset: int, /) -> ImageHeader:
    """Read UView image header at offset.

    Raises:
        TruncatedHeaderError: File is too short for image header.

    """
    fh.seek(offset)
    try:
        record = fh.read_record(UVIEW.IMAGE_HEADER)
    except EOFError:
        msg = f'file is too short for image header at {offset}'
        raise TruncatedHeaderError(msg) from None

    version = int(record['version'])
    header = ImageHeader(
        size=int(record['size']),
        version=version,
        colorlow=int(record['colorlow']),
        colorhigh=int(record['colorhigh']),
        time=int(record['time']),
        maskx=int(record['maskx']),
        masky=int(record['masky']),
        markupsize=int(record['markupsize']) if version >= 5 else 0,
        spin=int(record['spin']),
        leemdataversion=int(record['leemdataversion']),
    )
    if header.size < record.dtype.itemsize:
        logger().info(
            f'<uviewfile.read_image_header> declared image header size '
            f'{header.size} is smaller than {record.dtype.itemsize}'
        )
    return header


def file_header_dtype(version: int, /) -> numpy.dtype[Any]:
    """Return NumPy record data type of file header version.

    >>> file_header_dtype(8).itemsize
    54
    >>> file_header_dtype(7).itemsize
    48
    >>> file_header_dtype(6).itemsize
    46

    """
    if version > 7:
        return UVIEW.FILE_HEADER_V8
    if version > 6:
        return UVIEW.FILE_HEADER_V7
    return UVIEW.FILE_HEADER_V1
