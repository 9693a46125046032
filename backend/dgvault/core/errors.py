"""Error taxonomy shared by the vendor and withdrawal services.

Services raise these; the API layer renders them as
``{"success": false, "error": ..., "code": ...}`` with the matching status.
"""

from typing import Optional


class VaultError(Exception):
    """Base class for expected, structured failures."""

    code = "VAULT_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "code": self.code}


class InvalidRequest(VaultError):
    """Malformed input; not retryable as-is."""
    code = "INVALID_REQUEST"


class WithdrawalLimitExceeded(InvalidRequest):
    code = "LIMIT_EXCEEDED"


class MembershipRequired(VaultError):
    code = "MEMBERSHIP_REQUIRED"
    status_code = 403


class SignatureInvalid(VaultError):
    code = "SIGNATURE_INVALID"
    status_code = 403


class DuplicateInFlight(VaultError):
    """Same signature is already being settled; poll instead of resubmitting."""
    code = "DUPLICATE_IN_FLIGHT"
    status_code = 409


class InsufficientBalance(VaultError):
    code = "INSUFFICIENT_BALANCE"


class ApprovalRequired(VaultError):
    code = "APPROVAL_REQUIRED"
    status_code = 412

    def __init__(self, message: str, steps: Optional[list] = None):
        super().__init__(message)
        self.steps = steps or []

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["steps"] = self.steps
        return data


class OnChainFailure(VaultError):
    """Settlement failed after the record was persisted."""
    code = "ON_CHAIN_FAILURE"
    status_code = 502

    def __init__(self, message: str, withdrawal_id: Optional[str] = None):
        super().__init__(message)
        self.withdrawal_id = withdrawal_id

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.withdrawal_id:
            data["withdrawalId"] = self.withdrawal_id
        return data


class RateLimited(VaultError):
    code = "RATE_LIMITED"
    status_code = 429

    def __init__(self, message: str, reset_at: float, retry_after: int = 0):
        super().__init__(message)
        self.reset_at = reset_at  # epoch milliseconds
        self.retry_after = retry_after  # seconds, for the Retry-After header

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["resetAt"] = self.reset_at
        return data


class NotFound(VaultError):
    code = "NOT_FOUND"
    status_code = 404
