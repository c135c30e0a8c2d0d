# Overview: Domain error hierarchy shared by the sale and allocation engines.

"""
Distribution errors

Every failure is raised inside the service transaction, so the transaction is
rolled back and no partial state persists. Routes map each kind to an HTTP
status via `status_code`; `error_code` is the stable machine-readable kind.
"""


class DistributionError(Exception):
    """Base class for sale/allocation operation errors."""

    error_code = "DISTRIBUTION_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "error_code": self.error_code,
            "details": self.details,
        }


class UnauthorizedError(DistributionError):
    """Caller lacks the required role."""

    error_code = "UNAUTHORIZED"
    status_code = 403


class InvalidStateError(DistributionError):
    """Sale, round or group is not in the required phase."""

    error_code = "INVALID_STATE"
    status_code = 409


class NotEligibleError(DistributionError):
    """Account is not whitelisted, not a participant, or its unlock window is closed."""

    error_code = "NOT_ELIGIBLE"
    status_code = 403


class InsufficientPaymentError(DistributionError):
    error_code = "INSUFFICIENT_PAYMENT"
    status_code = 402


class TransferFailedError(DistributionError):
    """A boundary ledger call reported failure."""

    error_code = "TRANSFER_FAILED"
    status_code = 409


class OutOfRangeError(DistributionError):
    """Round or group index outside the valid set."""

    error_code = "OUT_OF_RANGE"
    status_code = 400


class AlreadySettledError(DistributionError):
    """Balance fully unlocked or distribution schedule exhausted."""

    error_code = "ALREADY_SETTLED"
    status_code = 409


class ValidationError(DistributionError):
    """400-level input problem."""

    error_code = "VALIDATION_ERROR"
    status_code = 400
