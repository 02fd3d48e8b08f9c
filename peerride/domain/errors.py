"""
Tagged failures surfaced to callers.

Every operation either returns a result or raises one of the
``PeerRideError`` subclasses below.  The API layer renders them as
``{"error": kind, "detail": message}`` with the matching HTTP status.
"""


class PeerRideError(Exception):
    kind = "internal"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgument(PeerRideError):
    kind = "invalid-argument"
    status_code = 400


class Unauthenticated(PeerRideError):
    kind = "unauthenticated"
    status_code = 401


class PermissionDenied(PeerRideError):
    kind = "permission-denied"
    status_code = 403


class NotFound(PeerRideError):
    kind = "not-found"
    status_code = 404


class FailedPrecondition(PeerRideError):
    kind = "failed-precondition"
    status_code = 409


class AlreadyExists(PeerRideError):
    kind = "already-exists"
    status_code = 409


class ResourceExhausted(PeerRideError):
    kind = "resource-exhausted"
    status_code = 429


class Unavailable(PeerRideError):
    kind = "unavailable"
    status_code = 503
