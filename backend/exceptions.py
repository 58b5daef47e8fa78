"""
Domain errors raised by the ride tracking services.

The API layer maps each class to an HTTP status code; services never
raise ``HTTPException`` themselves.
"""


class RideTrackingError(Exception):
    """Base class for all ride tracking errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RideTrackingError):
    """Malformed input: missing coordinates, unknown status, bad date."""

    status_code = 400


class NotFoundError(RideTrackingError):
    """Unknown ride (or bus/route during ride creation)."""

    status_code = 404


class NotAuthenticated(RideTrackingError):
    """No caller role was forwarded by the gateway."""

    status_code = 401


class PermissionDenied(RideTrackingError):
    """Caller role does not allow the operation."""

    status_code = 403


class UpstreamUnavailable(RideTrackingError):
    """A collaborator lookup (route/bus) failed."""

    status_code = 503
