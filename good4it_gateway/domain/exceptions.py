"""Domain-specific exceptions

Each class is one kind of failure the API surfaces to callers. ``code`` is a
stable machine-readable identifier (e.g. ``NOT_LENDER``), ``kind`` groups codes
so callers can tell validation, authorization, state and lookup failures apart.
"""


class DomainException(Exception):
    """Base exception for domain layer"""

    kind = "domain"
    default_code = "DOMAIN_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ValidationError(DomainException):
    """Malformed or missing input, rejected before any entity is touched"""

    kind = "validation"
    default_code = "INVALID_INPUT"


class AuthorizationError(DomainException):
    """Actor is not the party allowed to perform the operation"""

    kind = "authorization"
    default_code = "FORBIDDEN"


class NotFoundError(DomainException):
    """Referenced entity id does not resolve"""

    kind = "not_found"
    default_code = "NOT_FOUND"


class StateConflictError(DomainException):
    """Entity status does not permit the requested transition"""

    kind = "state_conflict"
    default_code = "INVALID_STATE"


class ConcurrencyConflictError(StateConflictError):
    """Entity was modified by a concurrent operation since it was loaded"""

    default_code = "CONCURRENT_MODIFICATION"


class ProofStorageError(DomainException):
    """Proof storage failed; the lifecycle step that required it is aborted"""

    kind = "dependency"
    default_code = "PROOF_STORAGE_FAILED"


class NotificationDeliveryError(DomainException):
    """Notification webhook rejected the event after all retries"""

    kind = "dependency"
    default_code = "NOTIFICATION_FAILED"
