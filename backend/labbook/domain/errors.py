class BookingError(Exception):
    """Base class for every error raised by the booking domain."""


class ValidationError(BookingError):
    pass


class InvalidTimeWindowError(ValidationError):
    pass


class BusinessRuleViolation(BookingError):
    pass


class DateBlockedError(BusinessRuleViolation):
    def __init__(self, reason: str) -> None:
        super().__init__(f"date is blocked: {reason}")
        self.reason = reason


class DateAlreadyHasBookingsError(BusinessRuleViolation):
    pass


class DuplicateBookingError(BusinessRuleViolation):
    pass


class CapacityExceededError(BusinessRuleViolation):
    pass


class NotFoundError(BookingError):
    pass


class InvalidCodeError(NotFoundError):
    pass


class BookingNotFoundError(NotFoundError):
    pass


class AccessDeniedError(BookingError):
    pass


class ConflictError(BookingError):
    pass


class DuplicateBlockedDateError(ConflictError):
    pass


class DuplicateInstructorError(ConflictError):
    pass


class InfrastructureError(BookingError):
    pass


class CodeCollisionError(InfrastructureError):
    """Raised by a repository when a generated code is already taken."""


class CodeGenerationError(InfrastructureError):
    pass


class NotificationRecordError(InfrastructureError):
    pass
