"""Domain errors raised by the SolarDesk services.

Routers translate these into HTTP responses; services never raise
``HTTPException`` themselves.
"""


class SolarDeskError(Exception):
    """Base class for domain errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SolarDeskError):
    """Bad or missing input. Nothing was written."""

    status_code = 400


class TransitionError(SolarDeskError):
    """Role/action/status combination not allowed, or record is terminal."""

    status_code = 403


class NotFoundError(SolarDeskError):
    """Requested submission does not exist."""

    status_code = 404


class ConflictError(SolarDeskError):
    """Submission changed since it was read."""

    status_code = 409


class UpstreamUnavailable(SolarDeskError):
    """A partner data service failed, timed out or returned garbage.

    Only raised by source clients; calculators recover from it.
    """

    status_code = 502
