# uviewfile.py

# Copyright (c) 2026, uviewfile authors
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice,
#    this list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright notice,
#    this list of conditions and the following disclaimer in the documentation
#    and/or other materials provided with the distribution.
#
# 3. Neither the name of the copyright holder nor the names of its
#    contributors may be used to endorse or promote products derived from
#    this software without specific prior written permission.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.

r"""Read Elmitec UView image files.

Uviewfile is a Python library to read image and metadata from
UKSOFT2000/UView files, written by the Elmitec acquisition software of
LEEM and PEEM (low energy and photo emission electron microscopy)
instruments.

A UView file contains a file header, an optional attached recipe,
an image header, optional LEEM data records, an optional markup region,
and a single plane of 16-bit unsigned integers stored bottom-up.
Only the first image of a file is read.

:License: BSD-3-Clause
:Version: 2026.10.17

Requirements
------------

- `CPython <https://www.python.org>`_ 3.11 or newer
- `NumPy <https://pypi.org/project/numpy>`_
- `Matplotlib <https://pypi.org/project/matplotlib/>`_
  (required only for plotting)

Examples
--------

Read image and metadata from a UView file:

>>> with UViewFile('image.dat') as uv:  # doctest: +SKIP
...     image = uv.asarray()
...     uv.leemdata.temperature
...
25.0

Check that a file looks like a UView file:

>>> isuview('image.dat')  # doctest: +SKIP
True

"""

from __future__ import annotations

__version__ = '2026.10.17'

__all__ = [
    'AVERAGING',
    'LEEMTAG',
    'UVIEW',
    'CorruptTagStreamError',
    'DataOffset',
    'FileHandle',
    'FileHeader',
    'ImageHeader',
    'LeemData',
    'NegativeOffsetError',
    'OffsetOutOfRangeError',
    'TruncatedHeaderError',
    'TruncatedPlaneError',
    'UViewFile',
    'UViewFileError',
    '__version__',
    'filetime_datetime',
    'imread',
    'isuview',
    'read_file_header',
    'read_image_header',
    'read_leem_data',
    'read_plane',
    'resolve_data_offset',
]

import logging
import os
import sys
from functools import cached_property
from typing import IO, TYPE_CHECKING

import numpy

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime as DateTime
    from types import TracebackType
    from typing import Any, Literal, Self

    from numpy.typing import NDArray

from .decoders import DataOffset, read_plane, resolve_data_offset
from .enums import AVERAGING, LEEMTAG
from .fileio import FileHandle
from .headers import (
    FileHeader,
    ImageHeader,
    read_file_header,
    read_image_header,
)
from .metadata import (
    LeemData,
    read_leem_data,
    read_leem_exposure,
    read_leem_fov,
    read_leem_fovcalibration,
    read_leem_gauge,
    read_leem_mcp,
    read_leem_micrometer,
    read_leem_padding,
    read_leem_phitheta,
    read_leem_reserved,
    read_leem_title,
)
from .utils import (
    CorruptTagStreamError,
    NegativeOffsetError,
    OffsetOutOfRangeError,
    TruncatedHeaderError,
    TruncatedPlaneError,
    UViewFileError,
    filetime_datetime,
    format_size,
    logger,
    pformat,
    snipstr,
)


def imread(
    file: str | os.PathLike[Any] | FileHandle | IO[bytes],
    /,
    *,
    out: NDArray[Any] | None = None,
    **kwargs: Any,
) -> NDArray[Any]:
    """Return image from UView file as NumPy array.

    Parameters:
        file:
            File name or seekable binary stream.
        out:
            Passed to :py:meth:`UViewFile.asarray`.
        **kwargs:
            Passed to :py:class:`UViewFile`.

    Returns:
        Image plane of shape `(height, width)` and type uint16.

    """
    with UViewFile(file, **kwargs) as uv:
        return uv.asarray(out=out)


def isuview(
    file: str | os.PathLike[Any] | FileHandle | IO[bytes],
    /,
    *,
    magic: str | bytes | None = None,
    checksuffix: bool = True,
) -> bool:
    """Return whether file starts with UView identification string.

    Parameters:
        file:
            File name or seekable binary stream.
        magic:
            Prefix the identification string must start with.
            The default is :py:attr:`UVIEW.MAGIC`.
        checksuffix:
            If `file` is a file name, also require a known file extension.
            The file extension is never sufficient.

    """
    if magic is None:
        magic = UVIEW.MAGIC
    if isinstance(magic, str):
        magic = magic.encode('ascii')
    if checksuffix and isinstance(file, (str, os.PathLike)):
        ext = os.path.splitext(os.fspath(file))[1].lower()
        if ext not in UVIEW.FILE_EXTENSIONS:
            return False
    with FileHandle(file) as fh:
        fh.seek(0)
        data = fh.read(UVIEW.MAGIC_LENGTH)
        # leave streams at start position
        fh.seek(0)
    return len(data) == UVIEW.MAGIC_LENGTH and data.startswith(magic)


class UViewFile:
    """Read image and metadata from UView file.

    UViewFile instances must be closed with :py:meth:`UViewFile.close`,
    which is automatically called when using the 'with' context manager.

    UViewFile instances are not thread-safe. All attributes are read-only.

    Parameters:
        file:
            Specifies UView file to read.
            File objects must be open in binary mode and positioned at the
            UView file header.
        mode:
            File open mode if `file` is file name. The default is 'rb'.
        name:
            Name of file if `file` is file handle.
        offset:
            Start position of embedded file.
            The default is the current file position.
        size:
            Size of embedded file. The default is the number of bytes
            from the `offset` to the end of the file.

    Raises:
        TruncatedHeaderError: File or image header is truncated.
        OffsetOutOfRangeError: File is too short for image data.
        UViewFileError: Invalid UView structure.

    """

    header: FileHeader
    """File header."""

    imageheader: ImageHeader
    """Image header."""

    leemdata: LeemData
    """Metadata from LEEM data records."""

    dataoffset: DataOffset
    """Position of image data in file."""

    _fh: FileHandle

    def __init__(
        self,
        file: str | os.PathLike[Any] | FileHandle | IO[bytes],
        /,
        *,
        mode: Literal['r', 'rb'] | None = None,
        name: str | None = None,
        offset: int | None = None,
        size: int | None = None,
    ) -> None:
        fh = FileHandle(file, mode=mode, name=name, offset=offset, size=size)
        self._fh = fh
        try:
            fh.seek(0)
            magic = fh.read(UVIEW.MAGIC_LENGTH)
            if not magic.startswith(UVIEW.MAGIC.encode('ascii')):
                logger().warning(
                    f'{self!r} invalid identification string {magic!r}'
                )

            self.header = read_file_header(fh)
            self.imageheader = read_image_header(
                fh, self.header.imageheader_offset
            )

            self.leemdata = LeemData()
            if self.imageheader.has_leemdata:
                try:
                    self.leemdata.timestamp = filetime_datetime(
                        self.imageheader.time
                    )
                except OverflowError as exc:
                    msg = (
                        f'invalid acquisition time {self.imageheader.time}'
                    )
                    logger().warning(f'{self!r} {msg}: {exc!r:.128}')
                    self.leemdata.diagnostics.append(msg)
                try:
                    read_leem_data(
                        fh,
                        self.header.tagstream_offset,
                        self.imageheader.leemdataversion,
                        self.leemdata,
                    )
                except CorruptTagStreamError as exc:
                    logger().warning(
                        f'{self!r} <read_leem_data> raised {exc!r:.128}'
                    )

            self.dataoffset = resolve_data_offset(
                self.header, self.imageheader, fh.size
            )
        except Exception:
            fh.close()
            raise

    @property
    def filehandle(self) -> FileHandle:
        """File handle."""
        return self._fh

    @property
    def filename(self) -> str:
        """Name of file handle."""
        return self._fh.name

    @property
    def shape(self) -> tuple[int, int]:
        """Shape of image array."""
        return self.header.shape

    @property
    def dtype(self) -> numpy.dtype[Any]:
        """Data type of image array."""
        return numpy.dtype(numpy.uint16)

    @property
    def datetime(self) -> DateTime:
        """Acquisition time from image header."""
        return self.imageheader.datetime

    def close(self) -> None:
        """Close open file handle."""
        self._fh.close()

    def asarray(self, *, out: NDArray[Any] | None = None) -> NDArray[Any]:
        """Return image from file as NumPy array.

        Parameters:
            out:
                Array of shape :py:attr:`shape` and type uint16 to read
                into. By default, a new array is created.

        Raises:
            TruncatedPlaneError: File does not contain all image rows.

        """
        height, width = self.header.shape
        return read_plane(
            self._fh, self.dataoffset.offset, width, height, out=out
        )

    def metadata(self) -> dict[str, Any]:
        """Return file header, image header, and LEEM data as dictionary."""
        return {
            'header': self.header.asdict(),
            'imageheader': self.imageheader.asdict(),
            'leemdata': self.leemdata.asdict(),
            'dataoffset': {
                'offset': self.dataoffset.offset,
                'structural': self.dataoffset.structural,
            },
        }

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f'<uviewfile.UViewFile {snipstr(self._fh.name, 32)!r}>'

    def __str__(self) -> str:
        return self._str()

    def _str(self, detail: int = 0, width: int = 79) -> str:
        """Return string containing information about UViewFile.

        The `detail` parameter specifies the level of detail returned:

        0: file only.
        1: file header, image header, and image data position.
        2: LEEM data.
        3: LEEM data diagnostics.

        """
        header = self.header
        info_list = [
            "UViewFile '{}'",
            format_size(self._fh.size),
            header.magic,
            f'v{header.version}',
            f'{header.height}x{header.width}',
            'uint16',
        ]
        if header.imagecount > 1:
            info_list.append(f'{header.imagecount} Images')
        if not self.leemdata.complete:
            info_list.append('incomplete')
        info = '  '.join(info_list)
        info = info.format(
            snipstr(self._fh.name, max(12, width + 2 - len(info)))
        )
        if detail <= 0:
            return info
        info_list = [info]
        info_list.append(
            'FILE_HEADER\n' + pformat(header.asdict(), width=width)
        )
        info_list.append(
            'IMAGE_HEADER\n'
            + pformat(self.imageheader.asdict(), width=width)
        )
        dataoffset = self.dataoffset
        info_list.append(
            'DATA_OFFSET\n'
            + pformat(
                {
                    'offset': dataoffset.offset,
                    'structural': dataoffset.structural,
                    'difference': dataoffset.difference,
                },
                width=width,
            )
        )
        if detail >= 2 and self.imageheader.has_leemdata:
            info_list.append(
                'LEEM_DATA\n'
                + pformat(
                    self.leemdata.asdict(), width=width, height=detail * 24
                )
            )
        if detail >= 3 and self.leemdata.diagnostics:
            info_list.append(
                'DIAGNOSTICS\n'
                + pformat(
                    '\n'.join(self.leemdata.diagnostics),
                    width=width,
                    height=detail * 24,
                )
            )
        return '\n\n'.join(info_list)


class _UVIEW:
    """Delay-loaded constants, accessible via :py:attr:`UVIEW` instance."""

    @cached_property
    def MAGIC(self) -> str:
        """Prefix of identification string required by :py:func:`isuview`.

        Set the ``UVIEWFILE_MAGIC`` environment variable to require a longer
        prefix, for example 'UKSOFT2001'.

        """
        return os.environ.get('UVIEWFILE_MAGIC', 'UKSOFT')

    @cached_property
    def MAGIC_LENGTH(self) -> int:
        """Number of bytes of identification string checked."""
        return len('UKSOFT2001')

    @cached_property
    def FILE_EXTENSIONS(self) -> tuple[str, ...]:
        """Known file name extensions."""
        return ('.dat',)

    @cached_property
    def FILE_HEADER_V1(self) -> numpy.dtype[Any]:
        """File header of version <= 6."""
        return numpy.dtype(
            [
                ('id', 'S20'),
                ('headersize', '<u2'),
                ('version', '<u2'),
                ('bitspersample', '<u2'),
                ('_reserved', 'V14'),
                ('width', '<u2'),
                ('height', '<u2'),
                ('imagecount', '<u2'),
            ]
        )

    @cached_property
    def FILE_HEADER_V7(self) -> numpy.dtype[Any]:
        """File header of version 7."""
        return numpy.dtype(
            self.FILE_HEADER_V1.descr + [('recipesize', '<u2')]
        )

    @cached_property
    def FILE_HEADER_V8(self) -> numpy.dtype[Any]:
        """File header of version > 7."""
        return numpy.dtype(
            self.FILE_HEADER_V1.descr
            + [
                ('camerabitspersample', '<u2'),
                ('mcpdiameter', '<u2'),
                ('hbinning', 'u1'),
                ('vbinning', 'u1'),
                ('recipesize', '<u2'),
            ]
        )

    @cached_property
    def FILE_HEADER_MINSIZE(self) -> int:
        """Size of smallest file header."""
        return self.FILE_HEADER_V1.itemsize

    @cached_property
    def IMAGE_HEADER(self) -> numpy.dtype[Any]:
        """Image header up to LEEM data."""
        return numpy.dtype(
            [
                ('size', '<u2'),
                ('version', '<u2'),
                ('colorlow', '<u2'),
                ('colorhigh', '<u2'),
                ('time', '<i8'),
                ('maskx', '<u2'),
                ('masky', '<u2'),
                ('_reserved', 'V2'),
                ('markupsize', '<u2'),
                ('spin', '<u2'),
                ('leemdataversion', '<u2'),
            ]
        )

    @cached_property
    def LEEMDATA_OFFSET(self) -> int:
        """Position of LEEM data records relative to file header size."""
        return 28

    @cached_property
    def LEEMDATA_BUDGET(self) -> int:
        """Maximum number of budget units of LEEM data records."""
        return 256

    @cached_property
    def MARKUP_BLOCKSIZE(self) -> int:
        """Markup regions are allocated in blocks of this size."""
        return 128

    @cached_property
    def TEMPERATURE_UNITS(self) -> frozenset[str]:
        """Gauge units of temperature, upper case without degree sign."""
        return frozenset(('C', 'K', 'DEGC', 'CELSIUS', 'KELVIN'))

    @cached_property
    def TAG_READERS(
        self,
    ) -> dict[int, Callable[[FileHandle, int, int, int], Any]]:
        # map LEEM data tag codes to read functions
        # codes < 100 and > 128 without entry are generic module readings
        return {
            16: read_leem_padding,
            100: read_leem_micrometer,
            101: read_leem_fov,
            102: read_leem_reserved,
            103: read_leem_reserved,
            104: read_leem_exposure,
            105: read_leem_title,
            106: read_leem_gauge,
            107: read_leem_gauge,
            108: read_leem_gauge,
            109: read_leem_gauge,
            110: read_leem_fovcalibration,
            111: read_leem_phitheta,
            115: read_leem_mcp,
            116: read_leem_mcp,
        }


UVIEW = _UVIEW()


def main() -> int:
    """Uviewfile command line usage main function."""
    import optparse

    logging.basicConfig(format='%(levelname)s: %(message)s')
    logger().setLevel(logging.INFO)

    parser = optparse.OptionParser(
        usage='usage: %prog [options] path',
        description='Display image and metadata in UView file.',
        version=f'%prog {__version__}',
        prog='uviewfile',
    )
    opt = parser.add_option
    opt(
        '--plot',
        dest='plot',
        action='store_true',
        default=False,
        help='display image using matplotlib',
    )
    opt(
        '--debug',
        dest='debug',
        action='store_true',
        default=False,
        help='raise exception on failures',
    )
    opt(
        '--verbose',
        dest='verbose',
        action='store_true',
        default=False,
        help='log decoding of LEEM data records',
    )
    opt('-v', '--detail', dest='detail', type='int', default=2)
    opt('-q', '--quiet', dest='quiet', action='store_true')

    settings, path_list = parser.parse_args()
    path = ' '.join(path_list)
    if not path:
        parser.error('No file specified')

    if settings.verbose:
        logger().setLevel(logging.DEBUG)

    try:
        uv = UViewFile(path)
    except Exception as exc:
        if settings.debug:
            raise
        print(f'\n{exc.__class__.__name__}: {exc}')
        return 1

    with uv:
        if not settings.quiet:
            try:
                width = os.get_terminal_size()[0]
            except OSError:
                width = 80
            print()
            print(uv._str(detail=int(settings.detail), width=width - 1))
            print()

        if settings.plot:
            try:
                image = uv.asarray()
            except UViewFileError as exc:
                if settings.debug:
                    raise
                print(f'{exc.__class__.__name__}: {exc}')
                return 1
            try:
                from matplotlib import pyplot
            except ImportError as exc:
                logger().warning(f'<uviewfile.main> raised {exc!r:.128}')
            else:
                vmin = vmax = None
                if uv.imageheader.colorhigh > uv.imageheader.colorlow:
                    vmin = uv.imageheader.colorlow
                    vmax = uv.imageheader.colorhigh
                figure = pyplot.figure()
                figure.canvas.manager.set_window_title(uv.filename)
                pyplot.title(f'{uv}', fontsize='small')
                pyplot.imshow(image, cmap='gray', vmin=vmin, vmax=vmax)
                pyplot.colorbar()
                pyplot.show()
    return 0


if __name__ == '__main__':
    sys.exit(main())
