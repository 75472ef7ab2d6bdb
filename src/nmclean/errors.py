"""Exceptions raised by nmclean."""


class NmcleanError(Exception):
    """Base class for nmclean errors."""


class ScanError(NmcleanError):
    """The scan could not start (missing or unreadable root)."""
