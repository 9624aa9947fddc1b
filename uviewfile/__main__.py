# uviewfile/__main__.py

"""Uviewfile package command line script."""

import sys

from .uviewfile import main

sys.exit(main())
