"""Failure taxonomy for the session core.

InvalidToken, Expired and ReuseDetected all mean "log in again" to the client,
but stay distinct here: ReuseDetected is an incident, not a stale cookie.
StoreUnavailable is the only retryable one. The ResetToken* errors belong to
the password reset flow and are reported to the client as they are.
"""


class AuthError(Exception):
    code = "AUTH_ERROR"
    retryable = False

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__doc__)


class InvalidToken(AuthError):
    """Unknown refresh token."""
    code = "INVALID_TOKEN"


class Expired(AuthError):
    """Refresh token has expired."""
    code = "EXPIRED"


class ReuseDetected(AuthError):
    """Refresh token was presented after it had been rotated or revoked."""
    code = "REUSE_DETECTED"

    def __init__(self, user_id: str, family: str, message: str | None = None):
        super().__init__(message)
        self.user_id = user_id
        self.family = family


class UnknownUser(AuthError):
    """No user with this id."""
    code = "UNKNOWN_USER"


class StoreUnavailable(AuthError):
    """Session store is unreachable; the request can be retried."""
    code = "STORE_UNAVAILABLE"
    retryable = True


class ResetTokenInvalid(AuthError):
    """Invalid or expired reset link."""
    code = "RESET_TOKEN_INVALID"


class ResetTokenExpired(ResetTokenInvalid):
    """Reset link has expired. Please request a new one."""
    code = "RESET_TOKEN_EXPIRED"


class ResetTokenUsed(ResetTokenInvalid):
    """This reset link has already been used."""
    code = "RESET_TOKEN_USED"
