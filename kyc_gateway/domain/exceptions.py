"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class SignalUnavailableError(DomainException):
    """A signal producer failed, timed out, or returned unusable data"""

    def __init__(self, category: str, reason: str):
        super().__init__(f"{category} signal unavailable: {reason}")
        self.category = category
        self.reason = reason


class InvalidInputError(DomainException):
    """Risk factors, weights, or policy are malformed"""

    pass


class LedgerWriteError(DomainException):
    """Audit ledger or decision persistence failed after a decision was computed"""

    pass


class PolicyNotFoundError(DomainException):
    """No policy is configured for the requested tenant or industry"""

    pass
