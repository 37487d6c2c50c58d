"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class Unauthenticated(DomainException):
    """Session token missing, invalid or the identity service failed"""

    pass


class Forbidden(DomainException):
    """Authenticated caller touched data outside its scope"""

    pass


class NotAssigned(DomainException):
    """Collector has no route assignment covering the requested date"""

    pass


class InvalidDate(DomainException):
    """Date is malformed or beyond the route horizon"""

    pass


class StoreUnavailable(DomainException):
    """A store read or append failed"""

    pass


class InvalidAmount(DomainException):
    """Payment amount is zero or negative"""

    pass


class InvalidSubmission(DomainException):
    """Payment submission is structurally incomplete"""

    pass


class DuplicateSubmission(DomainException):
    """Idempotency key already committed; carries the original payment"""

    def __init__(self, message: str, payment=None):
        super().__init__(message)
        self.payment = payment


class NotFound(DomainException):
    """Referenced entity does not exist"""

    pass


class AssignmentConflict(DomainException):
    """Client already visited by another collector on that date"""

    pass


class AssignmentLocked(DomainException):
    """Assignments for past dates are never rewritten"""

    pass


class InvalidSchedule(DomainException):
    """Debt parameters cannot produce a valid payment schedule"""

    pass
