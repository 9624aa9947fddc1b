# decoders.py

"""Image data position and plane decoding for uviewfile."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy

from .utils import (
    NegativeOffsetError,
    OffsetOutOfRangeError,
    TruncatedPlaneError,
    logger,
)

if TYPE_CHECKING:
    from typing import Any

    from numpy.typing import NDArray

    from .fileio import FileHandle
    from .headers import FileHeader, ImageHeader


@dataclass(frozen=True)
class DataOffset:
    """Position of image data in file.

    Attributes:
        offset:
            Position derived from file size and image shape.
            Used to read image data.
        structural:
            Position derived from sizes of file header, attached recipe,
            image header, and markup region. Diagnostic only.

    """

    offset: int
    structural: int

    @property
    def difference(self) -> int:
        """Difference of file size and header derived positions."""
        return self.offset - self.structural

    @property
    def mismatch(self) -> bool:
        """File size and header derived positions disagree."""
        return self.offset != self.structural


def resolve_data_offset(
    header: FileHeader,
    imageheader: ImageHeader | None,
    filesize: int,
    /,
) -> DataOffset:
    """Return position of image data in file.

    Image data are the last ``2 * width * height`` bytes of the file.
    The position derived from header sizes is returned for comparison,
    it can disagree when markup or other attached regions are not
    accounted correctly.

    Raises:
        NegativeOffsetError: File is shorter than image data.
        OffsetOutOfRangeError: Position is past the end of the file.

    """
    offset = filesize - 2 * header.width * header.height
    if offset < 0:
        msg = (
            f'file size {filesize} is smaller than image data '
            f'of shape {header.shape}'
        )
        raise NegativeOffsetError(msg)
    if offset > filesize:
        msg = f'image data offset {offset} > file size {filesize}'
        raise OffsetOutOfRangeError(msg)

    structural = header.headersize + header.recipesize
    if imageheader is not None:
        structural += imageheader.size + imageheader.markup_blocksize

    result = DataOffset(offset, structural)
    if result.mismatch:
        logger().info(
            f'<uviewfile.resolve_data_offset> image data offset {offset} '
            f'differs from header derived offset {structural} '
            f'by {result.difference} bytes'
        )
    return result


def read_plane(
    fh: FileHandle,
    offset: int,
    width: int,
    height: int,
    /,
    out: NDArray[Any] | None = None,
) -> NDArray[Any]:
    """Return image plane read from file.

    Rows are stored bottom-up. The first row in the file is returned
    as the last row of the array.

    Parameters:
        fh:
            File handle.
        offset:
            Position of image data in file.
        width:
            Image width.
        height:
            Image height.
        out:
            Array of shape `(height, width)` and type uint16 to read into.
            By default, a new array is created.

    Raises:
        TruncatedPlaneError: File does not contain all rows.

    """
    rowsize = 2 * width
    available = max(0, fh.size - offset)
    if available < rowsize * height:
        msg = (
            f'image row {available // rowsize} of {height} is truncated '
            f'({available} bytes available at {offset})'
        )
        raise TruncatedPlaneError(msg)

    if out is None:
        out = numpy.empty((height, width), numpy.uint16)
    elif out.shape != (height, width) or out.dtype != numpy.uint16:
        msg = (
            f'invalid output array {out.shape} {out.dtype}, '
            f'expected {(height, width)} uint16'
        )
        raise ValueError(msg)

    fh.seek(offset)
    try:
        data = fh.read_array('<u2', width * height)
    except EOFError as exc:
        raise TruncatedPlaneError(str(exc)) from None
    out[:] = data.reshape(height, width)[::-1]
    return out
