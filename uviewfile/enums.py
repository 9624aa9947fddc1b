# enums.py

"""UView enumeration types."""

from __future__ import annotations

import enum

__all__ = ['AVERAGING', 'LEEMTAG']


class LEEMTAG(enum.IntEnum):
    """Codes of LEEM data records following the image header.

    Codes below 100 and above 128 are generic module readings.

    """

    PADDING = 16
    """Reserved record with one byte payload."""
    MICROMETER = 100
    """Sample stage micrometer X and Y positions."""
    FOV = 101
    """Field of view description."""
    RESERVED102 = 102
    RESERVED103 = 103
    EXPOSURE = 104
    """Camera exposure time, optionally followed by averaging mode."""
    TITLE = 105
    """Image title."""
    GAUGE1 = 106
    """Vacuum or temperature gauge: name, units, and value."""
    GAUGE2 = 107
    GAUGE3 = 108
    GAUGE4 = 109
    FOVCALIBRATION = 110
    """Field of view with calibration factor."""
    PHITHETA = 111
    """Sample tilt angles."""
    MCPSCREEN = 115
    """MCP screen voltage."""
    MCPCHANNELPLATE = 116
    """MCP channel plate voltage."""
    END = 255
    """End of LEEM data."""


class AVERAGING(enum.IntEnum):
    """Image averaging mode of camera exposure record.

    Positive values are the number of averaged images.

    """

    SLIDING = -1
    NONE = 0
