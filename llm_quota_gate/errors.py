"""Error taxonomy for the quota gate.

Only the authentication and quota errors are ever reported to callers with
their own status code; everything else surfaces as a generic 500.
"""


class QuotaGateError(Exception):
    """Base class for all errors raised by the quota gate."""


class AuthenticationMissing(QuotaGateError):
    """The license token or user id header is absent."""


class AuthenticationInvalid(QuotaGateError):
    """The license token was rejected by the license validator."""


class QuotaExceeded(QuotaGateError):
    """The user has used up the monthly quota of their tier."""

    def __init__(self, user_id: str, period: str, limit: int, count: int):
        super().__init__(
            f"Quota exceeded for user {user_id} in {period}: {count}/{limit}"
        )
        self.user_id = user_id
        self.period = period
        self.limit = limit
        self.count = count


class StoreUnavailable(QuotaGateError):
    """The quota store could not be read or written, or stayed contended."""


class ConcurrentModification(QuotaGateError):
    """A conditional update found a count other than the expected one."""


class RecordAlreadyExists(QuotaGateError):
    """A usage record was created concurrently for the same user and period."""


class LicenseValidationUnavailable(QuotaGateError):
    """The license authority could not give an answer."""


class SecretUnavailable(QuotaGateError):
    """The upstream credential could not be retrieved."""


class UpstreamFailure(QuotaGateError):
    """The completion API could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidRequestBody(QuotaGateError):
    """The completion request body is not a JSON object."""
