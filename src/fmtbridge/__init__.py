"""fmtbridge package root."""

from fmtbridge.exceptions import NeverRaise, NeverThrown
from fmtbridge.invariants import never

__all__ = ["__version__", "NeverRaise", "NeverThrown", "never"]

__version__ = "0.1.0"
