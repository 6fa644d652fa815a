from __future__ import annotations


class LabError(Exception):
    """Base class for everything lab raises on purpose."""
    pass


class ConfigError(LabError):
    """Missing or invalid settings. Fatal: the command cannot start."""
    pass


class ForgeAPIError(LabError):
    """
    A single call to the forge API failed (HTTP status or transport).

    Callers treat this as transient: log it, give up on the current page or
    poll, and let sibling workers carry on.
    """

    def __init__(self, message: str, status_code: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url         = url
