class ServiceError(Exception):
    status = 400

    def __init__(self, code="SERVICE_ERROR", message="Service error", details=None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(ServiceError):
    status = 404

    def __init__(self, message="Resource not found", details=None):
        super().__init__("NOT_FOUND", message, details)


class ForbiddenError(ServiceError):
    status = 403

    def __init__(self, message="Access denied", details=None):
        super().__init__("FORBIDDEN", message, details)


class ValidationError(ServiceError):
    status = 422

    def __init__(self, message="Invalid request", details=None):
        super().__init__("VALIDATION_ERROR", message, details)


class DuplicateReservationError(ServiceError):
    status = 409

    def __init__(self, message="You already have an active reservation for this job", details=None):
        super().__init__("DUPLICATE_RESERVATION", message, details)


class ReservationLimitExceededError(ServiceError):
    status = 409

    def __init__(self, message="Maximum reservations limit reached", details=None):
        super().__init__("RESERVATION_LIMIT_EXCEEDED", message, details)


class ReservationsDisabledError(ServiceError):
    status = 403

    def __init__(self, message="Job reservations are currently disabled", details=None):
        super().__init__("RESERVATIONS_DISABLED", message, details)


class InsufficientBalanceError(ServiceError):
    def __init__(self, message="Not enough balance", details=None):
        super().__init__("INSUFFICIENT_BALANCE", message, details)


class InsufficientPendingBalanceError(ServiceError):
    def __init__(self, message="Not enough pending balance", details=None):
        super().__init__("INSUFFICIENT_PENDING_BALANCE", message, details)


class AlreadySettledError(ServiceError):
    status = 409

    def __init__(self, message="Work proof has already been paid", details=None):
        super().__init__("ALREADY_SETTLED", message, details)


class InvalidStateError(ServiceError):
    status = 409

    def __init__(self, message="Operation not allowed in the current state", details=None):
        super().__init__("INVALID_STATE", message, details)


class RevisionLimitExceededError(ServiceError):
    status = 409

    def __init__(self, message="Maximum revision requests reached", details=None):
        super().__init__("REVISION_LIMIT_EXCEEDED", message, details)


class StorageFailureError(ServiceError):
    status = 500

    def __init__(self, message="Storage operation failed", details=None):
        super().__init__("STORAGE_FAILURE", message, details)
