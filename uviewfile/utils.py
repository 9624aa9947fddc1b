# utils.py

"""Utility functions for uviewfile."""

from __future__ import annotations

import logging
from datetime import datetime as DateTime
from datetime import timedelta as TimeDelta
from datetime import timezone as TimeZone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class UViewFileError(ValueError):
    """Exception to indicate invalid UView file structure."""


class TruncatedHeaderError(UViewFileError):
    """File is too short for, or inconsistent with, its file header."""


class CorruptTagStreamError(UViewFileError):
    """LEEM data record extends past the end of the file."""


class OffsetOutOfRangeError(UViewFileError):
    """Position of image data is outside of the file."""


class NegativeOffsetError(OffsetOutOfRangeError):
    """Position of image data is before the start of the file."""


class TruncatedPlaneError(UViewFileError):
    """File does not contain enough bytes for all image rows."""


FILETIME_EPOCH = 116444736000000000
"""Number of 100 ns ticks between 1601-01-01 and 1970-01-01."""


def logger() -> logging.Logger:
    """Return logger for uviewfile module."""
    return logging.getLogger('uviewfile')


def format_size(size: float, /, threshold: float = 1536) -> str:
    """Return file size as string from byte size.

    >>> format_size(1234)
    '1234 B'
    >>> format_size(12345678901)
    '11.50 GiB'

    """
    if size < threshold:
        return f'{size} B'
    for unit in ('KiB', 'MiB', 'GiB', 'TiB', 'PiB'):
        size /= 1024.0
        if size < threshold:
            return f'{size:.2f} {unit}'
    return 'ginormous'


def filetime_datetime(filetime: int, /) -> DateTime:
    """Return UTC datetime object from Windows FILETIME.

    FILETIME counts 100 ns intervals since 1601-01-01.

    >>> filetime_datetime(132223104000000000)
    datetime.datetime(2020, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    >>> filetime_datetime(0)
    datetime.datetime(1970, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)

    Raises:
        OverflowError: FILETIME is outside of the range of datetime.

    """
    if filetime <= 0:
        return DateTime.fromtimestamp(0, TimeZone.utc)
    ticks = filetime - FILETIME_EPOCH
    return DateTime(1970, 1, 1, tzinfo=TimeZone.utc) + TimeDelta(
        microseconds=ticks // 10
    )


def bytes2str(
    b: bytes, /, encoding: str | None = None, errors: str = 'strict'
) -> str:
    """Return Unicode string from encoded bytes up to first NULL character.

    If `encoding` is None, UTF-8 is tried before cp1252. `errors` applies
    to the last encoding tried.

    >>> bytes2str(b'UKSOFT2001\\x00\\x00')
    'UKSOFT2001'

    """
    i = b.find(b'\x00')
    if i >= 0:
        b = b[:i]
    if encoding is not None:
        return b.decode(encoding, errors)
    try:
        return b.decode('utf-8')
    except UnicodeDecodeError:
        return b.decode('cp1252', errors)


def snipstr(
    string: str,
    /,
    width: int = 79,
    *,
    ellipsis: str | None = None,
) -> str:
    """Return string cut in the middle to specified length.

    >>> snipstr('abcdefghijklmnop', 8)
    'abcd…nop'

    """
    if ellipsis is None:
        ellipsis = '…'
    if width < 1 or len(string) <= width:
        return string
    split = (width - len(ellipsis) + 1) // 2
    tail = len(string) - width + split + len(ellipsis)
    return string[:split] + ellipsis + string[tail:]


def pformat(arg: Any, /, *, width: int = 79, height: int = 24) -> str:
    """Return pretty formatted representation of mapping or sequence.

    Lines are truncated to `width`, the result to `height` lines.

    """
    if isinstance(arg, dict):
        lines = []
        for key, value in arg.items():
            if isinstance(value, float):
                value = f'{value:.6g}'  # noqa: PLW2901
            lines.append(snipstr(f'{key}: {value}', width))
    else:
        lines = [snipstr(line, width) for line in str(arg).splitlines()]
    if height > 0 and len(lines) > height:
        lines = lines[: height - 1] + ['...']
    return '\n'.join(lines)
