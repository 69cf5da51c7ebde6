"""
Error types raised by services and mapped to HTTP responses by the routes.
"""


class ValerisError(RuntimeError):
    """Base error for service-level failures."""


class NotFoundError(ValerisError):
    """A row the caller asked for does not exist or is not theirs."""


class UnauthorizedError(ValerisError):
    """Missing or invalid credentials."""


class ForbiddenError(ValerisError):
    """Authenticated, but not allowed to do this."""


class UpstreamError(ValerisError):
    """A third-party HTTP API failed or returned garbage."""
