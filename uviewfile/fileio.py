# fileio.py

"""File I/O helpers for uviewfile."""

from __future__ import annotations

import contextlib
import io
import os
import struct
from typing import IO, TYPE_CHECKING, cast, final

import numpy

if TYPE_CHECKING:
    from types import TracebackType
    from typing import Any, Literal, Self

    from numpy.typing import DTypeLike, NDArray

from .utils import snipstr


@final
class FileHandle:
    """Read-only binary file handle.

    A limited, special purpose binary file handle that can:

    - handle embedded files (for example, UView images within archives).
    - read NumPy arrays and records from file-like objects.
    - unpack little-endian scalars at the current position.

    When initialized from another file handle, do not use the other handle
    unless this FileHandle is closed.

    FileHandle instances are not thread-safe.

    Parameters:
        file:
            File name or seekable binary stream, such as open file
            or BytesIO.
        mode:
            File open mode if `file` is file name.
            The default is 'rb'. Only reading is supported.
        name:
            Name of file if `file` is binary stream.
        offset:
            Start position of embedded file.
            The default is the current file position.
        size:
            Size of embedded file.
            The default is the number of bytes from `offset` to
            the end of the file.

    """

    __slots__ = (
        '_close',
        '_dir',
        '_fh',
        '_file',
        '_mode',
        '_name',
        '_offset',
        '_size',
    )

    _file: str | os.PathLike[Any] | FileHandle | IO[bytes] | None
    _fh: IO[bytes] | None
    _mode: str
    _name: str
    _dir: str
    _offset: int
    _size: int
    _close: bool

    def __init__(
        self,
        file: str | os.PathLike[Any] | FileHandle | IO[bytes],
        /,
        mode: Literal['r', 'rb'] | None = None,
        *,
        name: str | None = None,
        offset: int | None = None,
        size: int | None = None,
    ) -> None:
        self._mode = 'rb' if mode is None else mode
        self._fh = None
        self._file = file  # reference to original argument for re-opening
        self._name = name if name else ''
        self._dir = ''
        self._offset = -1 if offset is None else offset
        self._size = -1 if size is None else size
        self._close = True
        self.open()
        assert self._fh is not None

    def open(self) -> None:
        """Open or re-open file."""
        if self._fh is not None:
            return  # file is open

        if isinstance(self._file, os.PathLike):
            self._file = os.fspath(self._file)

        if isinstance(self._file, str):
            # file name
            if self._mode[-1:] != 'b':
                self._mode += 'b'
            if self._mode != 'rb':
                msg = f'invalid mode {self._mode}'
                raise ValueError(msg)
            self._file = os.path.realpath(self._file)
            self._dir, self._name = os.path.split(self._file)
            self._fh = open(self._file, self._mode)  # noqa: SIM115
            self._close = True
            self._offset = max(0, self._offset)
        elif isinstance(self._file, FileHandle):
            # FileHandle
            self._fh = self._file._fh
            self._offset = max(0, self._offset)
            self._offset += self._file._offset
            self._close = False
            if not self._name:
                if self._offset:
                    name, ext = os.path.splitext(self._file._name)
                    self._name = f'{name}@{self._offset}{ext}'
                else:
                    self._name = self._file._name
            self._mode = self._file._mode
            self._dir = self._file._dir
        elif hasattr(self._file, 'seek'):
            # binary stream: open file, BytesIO
            if isinstance(self._file, io.TextIOBase):
                msg = f'{self._file!r} is not open in binary mode'
                raise TypeError(msg)
            self._fh = cast(IO[bytes], self._file)
            try:
                self._fh.tell()
            except Exception:
                msg = 'binary stream is not seekable'
                raise ValueError(msg) from None

            if self._offset < 0:
                self._offset = self._fh.tell()
            self._close = False
            if not self._name:
                try:
                    self._dir, self._name = os.path.split(self._fh.name)
                except (AttributeError, TypeError):
                    self._name = 'Unnamed binary stream'
        else:
            msg = (
                'the first parameter must be a file name '
                'or seekable binary file object, '
                f'not {type(self._file)!r}'
            )
            raise ValueError(msg)

        assert self._fh is not None

        if self._size < 0:
            self._fh.seek(0, os.SEEK_END)
            self._size = max(0, self._fh.tell() - self._offset)
        self._fh.seek(self._offset)

    def close(self) -> None:
        """Close file handle."""
        if self._close and self._fh is not None:
            with contextlib.suppress(Exception):
                self._fh.close()
        self._fh = None

    def tell(self) -> int:
        """Return file's current position."""
        assert self._fh is not None
        return self._fh.tell() - self._offset

    def seek(self, offset: int, /, whence: int = 0) -> int:
        """Set file's current position.

        Parameters:
            offset:
                Position of file handle relative to position indicated
                by `whence`.
            whence:
                Relative position of `offset`.
                0 (`os.SEEK_SET`) beginning of file (default).
                1 (`os.SEEK_CUR`) current position.
                2 (`os.SEEK_END`) end of file.

        """
        assert self._fh is not None
        if whence == 0:
            pos = self._offset + offset
        elif whence == 1:
            pos = self._fh.tell() + offset
        elif whence == 2:
            pos = self._offset + self._size + offset
        else:
            msg = f'invalid {whence=}'
            raise ValueError(msg)
        return self._fh.seek(pos) - self._offset

    def read(self, size: int = -1, /) -> bytes:
        """Return bytes read from file.

        Reads never extend past the end of an embedded file.

        Parameters:
            size:
                Number of bytes to read from file.
                By default, read until the end of the file.

        """
        assert self._fh is not None
        remaining = max(0, self._size - self.tell())
        if size < 0 or size > remaining:
            size = remaining
        return self._fh.read(size)

    def unpack(self, fmt: str, /) -> tuple[Any, ...]:
        """Return values unpacked from file at current position.

        Parameters:
            fmt: Format string of `struct` module.

        Raises:
            EOFError: File does not contain enough bytes.

        """
        size = struct.calcsize(fmt)
        data = self.read(size)
        if len(data) != size:
            msg = f'failed to read {size} bytes, got {len(data)}'
            raise EOFError(msg)
        return struct.unpack(fmt, data)

    def read_array(
        self,
        dtype: DTypeLike | None,
        count: int = -1,
        offset: int = 0,
    ) -> NDArray[Any]:
        """Return NumPy array from file in native byte order.

        Parameters:
            dtype:
                Data type of array to read.
            count:
                Number of items to read. By default, all items are read.
            offset:
                Start position of array-data in file.

        Raises:
            EOFError: File does not contain `count` items.

        """
        dtype = numpy.dtype(dtype)
        if offset:
            self.seek(offset)
        if count < 0:
            count = max(0, self._size - self.tell()) // dtype.itemsize
        nbytes = count * dtype.itemsize
        data = self.read(nbytes)
        if len(data) != nbytes:
            msg = f'failed to read {nbytes} bytes, got {len(data)}'
            raise EOFError(msg)
        result = numpy.frombuffer(data, dtype).copy()
        if not dtype.isnative:
            result = result.byteswap().view(dtype.newbyteorder())
        return result

    def read_record(
        self,
        dtype: DTypeLike | None,
        /,
        *,
        byteorder: Literal['<', '>', '='] | None = None,
    ) -> numpy.record:
        """Return single NumPy record from file.

        Parameters:
            dtype:
                Data type of record to read.
            byteorder:
                Byte order of record to read.

        Raises:
            EOFError: File does not contain a complete record.

        """
        dtype = numpy.dtype(dtype)
        if byteorder is not None:
            dtype = dtype.newbyteorder(byteorder)
        data = self.read(dtype.itemsize)
        if len(data) != dtype.itemsize:
            msg = f'failed to read {dtype.itemsize} bytes, got {len(data)}'
            raise EOFError(msg)
        return numpy.rec.fromstring(data, dtype=dtype, shape=1)[0]

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()
        self._file = None

    def __repr__(self) -> str:
        return f'<uviewfile.FileHandle {snipstr(self._name, 32)!r}>'

    def __str__(self) -> str:
        return '\n '.join(
            (
                'FileHandle',
                self._name,
                self._dir,
                f'{self._size} bytes',
                'closed' if self._fh is None else 'open',
            )
        )

    @property
    def name(self) -> str:
        """Name of file or stream."""
        return self._name

    @property
    def dirname(self) -> str:
        """Directory in which file is stored."""
        return self._dir

    @property
    def path(self) -> str:
        """Absolute path of file."""
        return os.path.join(self._dir, self._name)

    @property
    def extension(self) -> str:
        """File name extension of file or stream."""
        return os.path.splitext(self._name.lower())[1]

    @property
    def size(self) -> int:
        """Size of file in bytes."""
        return self._size

    @property
    def closed(self) -> bool:
        """File is closed."""
        return self._fh is None
