"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Malformed input; nothing was written"""

    pass


class NotFoundError(DomainException):
    """A referenced student, period, payment or charge does not resolve"""

    pass


class DuplicateReversalError(DomainException):
    """Payment was already reversed, or is itself a reversal"""

    pass


class PartialBatchFailure(DomainException):
    """One student failed inside a bulk operation; the batch keeps going"""

    def __init__(self, student_id: str, reason: str):
        super().__init__(f"{student_id}: {reason}")
        self.student_id = student_id
        self.reason = reason
