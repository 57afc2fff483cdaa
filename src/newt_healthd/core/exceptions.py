"""Fatal startup errors.

Anything raised from here aborts the process with a non-zero exit status.
Per-check failures never use exceptions; they are reported in the verdict.
"""


class StartupError(Exception):
    """Base class for errors that prevent the server from starting."""


class ListenError(StartupError):
    """Listen address is invalid or cannot be bound."""


class CertInvalidError(StartupError):
    """TLS certificate file is missing or unusable."""


class KeyInvalidError(StartupError):
    """TLS private key file is missing or unusable."""
