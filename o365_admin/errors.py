"""Exception hierarchy shared by every administrative command."""
from __future__ import annotations


class O365AdminError(RuntimeError):
    """Base exception for the administrative toolkit."""


class ConfigError(O365AdminError):
    """Raised when command line input or the settings file is invalid."""


class InputError(O365AdminError):
    """Raised when an input table is missing, empty or lacks required columns."""


class AuthError(O365AdminError):
    """Raised when interactive sign-in does not produce an access token."""


class ConnectError(O365AdminError):
    """Raised when an authenticated session to a service endpoint cannot be opened."""


class RemoteLookupError(O365AdminError):
    """Raised when a remote object could not be read for a single record."""


class UpdateError(O365AdminError):
    """Raised when a remote mutation is rejected for a single record."""


__all__ = [
    "AuthError",
    "ConfigError",
    "ConnectError",
    "InputError",
    "O365AdminError",
    "RemoteLookupError",
    "UpdateError",
]
