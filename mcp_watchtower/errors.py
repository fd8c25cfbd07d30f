"""Custom exception classes for MCP Watchtower."""

from typing import Optional


class WatchtowerBaseError(Exception):
    """Base class for all custom exceptions in MCP Watchtower."""

    pass


class ConfigurationError(WatchtowerBaseError):
    """Raised when loading or validating the configuration file fails."""

    pass


class InvalidServerUrlError(WatchtowerBaseError, ValueError):
    """Raised when a capability server URL cannot be used."""

    def __init__(self, url: object, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid server URL {url!r}: {reason}")


class StoreError(WatchtowerBaseError):
    """
    Raised when the server list cannot be written to its store file.
    Reads never raise; they degrade to an empty list instead.
    """

    def __init__(self, message: str, path: Optional[str] = None, orig_exc: Optional[Exception] = None):
        self.path = path
        self.orig_exc = orig_exc

        full_msg = "Server store error"
        if path:
            full_msg += f" (path: {path})"
        full_msg += f": {message}"
        if orig_exc:
            full_msg += f" (original error: {type(orig_exc).__name__})"
        super().__init__(full_msg)


class ProbeError(WatchtowerBaseError):
    """Raised inside a health probe before any request could be issued."""

    pass
