class DomainError(Exception):
    code = "DOMAIN_ERROR"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)


class MalformedRequestError(DomainError):
    code = "BAD_REQUEST"


class UnknownFieldError(MalformedRequestError):
    code = "UNKNOWN_FIELD"


class InvalidSlotError(MalformedRequestError):
    code = "INVALID_SLOT"


class SlotInPastError(MalformedRequestError):
    code = "SLOT_IN_PAST"


class InvalidWindowError(MalformedRequestError):
    code = "INVALID_WINDOW"


class UnauthorizedError(DomainError):
    code = "NOT_ALLOWED"


class NotFoundError(DomainError):
    code = "NOT_FOUND"


class UserNotFoundError(NotFoundError):
    code = "USER_NOT_FOUND"


class ClosedSlotNotFoundError(NotFoundError):
    code = "CLOSED_SLOT_NOT_FOUND"


class ResourceClosedError(DomainError):
    code = "CLOSED"

    def __init__(self, message: str | None = None, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


class DayClosedError(ResourceClosedError):
    code = "DAY_CLOSED"


class FieldClosedError(ResourceClosedError):
    code = "FIELD_CLOSED_TIME"


class InsufficientCreditError(DomainError):
    code = "NO_CREDITS"


class QuotaExceededError(DomainError):
    code = "QUOTA_EXCEEDED"


class DailyQuotaExceededError(QuotaExceededError):
    code = "MAX_PER_DAY_LIMIT"


class WeeklyQuotaExceededError(QuotaExceededError):
    code = "MAX_PER_WEEK_LIMIT"


class ActiveQuotaExceededError(QuotaExceededError):
    code = "ACTIVE_BOOKING_LIMIT"


class SlotConflictError(DomainError):
    code = "SLOT_TAKEN"


class ConflictError(DomainError):
    code = "CONFLICT"


class UsernameTakenError(ConflictError):
    code = "USERNAME_TAKEN"
