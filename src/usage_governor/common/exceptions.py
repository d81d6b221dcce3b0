"""Usage-Governor exception hierarchy.

Admission denials are not exceptions; they come back as Decision values.
These cover programming errors and admin/provisioning operations.
"""


class GovernorError(Exception):
    """Base exception for all Usage-Governor errors."""

    def __init__(self, message: str = "", code: str = "GOVERNOR_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class UnknownFeatureError(GovernorError):
    """Raised when a feature identifier is outside the metered set."""

    def __init__(self, message: str = "Unknown feature"):
        super().__init__(message, code="UNKNOWN_FEATURE")


class UsageRecordNotFoundError(GovernorError):
    """Raised when a user has no usage record yet."""

    def __init__(self, message: str = "Usage record not found"):
        super().__init__(message, code="NOT_FOUND")


class PartnershipNotFoundError(GovernorError):
    """Raised when an institutional partnership cannot be found."""

    def __init__(self, message: str = "Institutional partnership not found"):
        super().__init__(message, code="NOT_FOUND")


class InvalidCreditAmountError(GovernorError):
    """Raised when a debit or grant amount is not a positive integer."""

    def __init__(self, message: str = "Credit amount must be positive"):
        super().__init__(message, code="INVALID_AMOUNT")


class ProvisioningError(GovernorError):
    """Raised when a provisioning change is not permitted."""

    def __init__(self, message: str = "Provisioning change not permitted"):
        super().__init__(message, code="PROVISIONING_DENIED")
