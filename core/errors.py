"""Error taxonomy shared by every Hall Pass service.

Services raise these; views turn them into inline messages (pages) or
``{"error": ...}`` bodies (JSON endpoints).
"""

from django.db import InterfaceError, OperationalError


class HallPassError(Exception):
    """Base class for errors surfaced to the user."""

    status_code = 400

    def __init__(self, message=""):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class AuthenticationError(HallPassError):
    """Bad credentials or an expired session."""

    status_code = 401


class ValidationError(HallPassError):
    """Malformed input: short password, mismatched confirmation, empty message."""


class NotFoundError(HallPassError):
    """Unknown class code, missing conversation, and similar lookups."""

    status_code = 404


class AuthorizationError(HallPassError):
    """Role or admin-level mismatch."""

    status_code = 403


class TransientNetworkError(HallPassError):
    """An aborted or interrupted request that may succeed when repeated."""

    status_code = 503


class EmailDeliveryError(HallPassError):
    """The email backend refused or failed to deliver a message."""

    status_code = 502


TRANSIENT_ERROR_NAMES = ("AbortError", "TimeoutError")

# An OperationalError is transient only for connection loss or lock contention.
TRANSIENT_DB_MARKERS = (
    "connection",
    "could not connect",
    "server closed",
    "gone away",
    "terminating",
    "timed out",
    "timeout",
    "locked",
    "aborted",
)


def is_transient_error(exc) -> bool:
    """Return True if *exc* looks like an interrupted request rather than a real failure."""
    if isinstance(exc, (TransientNetworkError, InterfaceError, TimeoutError)):
        return True
    if isinstance(exc, OperationalError):
        message = str(exc).lower()
        return any(marker in message for marker in TRANSIENT_DB_MARKERS)
    if type(exc).__name__ in TRANSIENT_ERROR_NAMES:
        return True
    return "aborted" in str(exc).lower()
