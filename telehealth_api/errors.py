"""Error taxonomy shared by the gateways and the HTTP layer.

Every error carries the HTTP status it maps to; the API renders them all as
``{"error": message}``.
"""


class TelehealthError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingField(TelehealthError):
    """A required input was absent or empty."""
    status_code = 400


class InvalidCategory(MissingField):
    """Service category outside the fixed enumeration."""


class NotFound(TelehealthError):
    status_code = 400


class VerificationFailure(TelehealthError):
    status_code = 400


class AuthFailure(TelehealthError):
    """No matching account or credential mismatch; never says which."""
    status_code = 401


class SessionError(TelehealthError):
    status_code = 401


class Forbidden(TelehealthError):
    status_code = 403


class StoreError(TelehealthError):
    """The backing store could not be reached or failed."""
    status_code = 500


class ValidationError(StoreError):
    """The backing store rejected the request (constraint, bad input)."""
    status_code = 400
