"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """User, profile, result or history does not exist"""

    pass


class PreconditionFailedError(DomainException):
    """Request is well-formed but the user's state does not allow it"""

    pass


class UserNotVerifiedError(PreconditionFailedError):
    """Profile generation has not completed for the user"""

    pass


class InsufficientDataError(PreconditionFailedError):
    """Not enough transaction history to compute a score"""

    pass


class RunInProgressError(PreconditionFailedError):
    """Another scoring run for the same user is still in flight"""

    pass


class AlreadyAnchoredError(PreconditionFailedError):
    """Result already carries ledger/content references"""

    pass


class ExternalServiceError(DomainException):
    """External collaborator is unreachable or returned an error"""

    pass


class ModelServiceError(ExternalServiceError):
    """Credit scoring / anomaly model call failed"""

    pass


class LedgerError(ExternalServiceError):
    """Ledger anchoring or lookup failed"""

    pass


class ContentStoreError(ExternalServiceError):
    """Content-addressed store upload or retrieval failed"""

    pass


class PersistenceError(DomainException):
    """Record store write failed"""

    pass


class ValidationError(DomainException):
    """Input is malformed"""

    pass


class DuplicateRecordError(ValidationError):
    """Unique field (email or identity string) already registered"""

    pass
