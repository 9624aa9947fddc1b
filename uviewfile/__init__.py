# uviewfile/__init__.py

from .uviewfile import *
from .uviewfile import __all__, __doc__, __version__, main

# constants are repeated for documentation

__version__ = __version__
"""Uviewfile version string."""
