class ElectionError(Exception):
    """Base exception for election operations"""

    status_code = 400


class ValidationError(ElectionError):
    """Raised when a required field is missing or invalid"""

    status_code = 400


class DuplicateError(ElectionError):
    """Raised on a unique-key collision"""

    status_code = 409


class NotFoundError(ElectionError):
    """Raised when a lookup has to be reported to the caller"""

    status_code = 404


class AuthorizationError(ElectionError):
    """Raised when an admin action is attempted without admin login"""

    status_code = 403


class Unauthenticated(AuthorizationError):
    """Raised when a student action is attempted without a logged-in student"""

    status_code = 401


class VotingClosedError(ElectionError):
    """Raised when a vote arrives after the voting deadline"""

    status_code = 403


class StorageError(ElectionError):
    """Raised when the directory store cannot be read or written"""

    status_code = 500
