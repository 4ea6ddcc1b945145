"""Exception hierarchy shared across the package."""
from __future__ import annotations


class MsgragError(RuntimeError):
    """Base class for errors raised by this package."""


class ConfigurationError(MsgragError):
    """Raised when settings are inconsistent or incomplete."""
