"""
Custom exception hierarchy for the land title registry.

Each exception type maps to a specific category of rejected operation,
so callers (and the HTTP layer) can tell a malformed request apart from
a missing record, a missing role or an out-of-order sale step.

Every exception leaves the registry exactly as it was before the call.
"""

from __future__ import annotations


class LandRegistryError(Exception):
    """Base exception for all registry failures."""

    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(LandRegistryError):
    """Malformed or missing input."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("VALIDATION_FAILED", message, details)


class AuthorizationError(LandRegistryError):
    """The caller lacks the required role or ownership."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("UNAUTHORIZED", message, details)


class NotFoundError(LandRegistryError):
    """A referenced parcel, thram or token does not exist."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("NOT_FOUND", message, details)


class MismatchError(LandRegistryError):
    """Cross-referenced identifiers disagree (e.g. plot filed under another thram)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("IDENTIFIER_MISMATCH", message, details)


class InvalidStateError(LandRegistryError):
    """The operation is not valid in the current sale state."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("INVALID_STATE", message, details)


class NotVerifiedError(LandRegistryError):
    """The token has not passed bank, court and tax verification."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("NOT_VERIFIED", message, details)


class AlreadyVerifiedError(LandRegistryError):
    """A verifier role already approved this token."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("ALREADY_VERIFIED", message, details)


class AlreadyListedError(LandRegistryError):
    """The token already has an active sale."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("ALREADY_LISTED", message, details)


class AlreadyCompleteError(LandRegistryError):
    """The sale has been paid for and can no longer be cancelled."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("ALREADY_COMPLETE", message, details)


class InsufficientAreaError(LandRegistryError):
    """Requested area exceeds the parcel's available (un-fractionalized) area."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("INSUFFICIENT_AREA", message, details)


class PaymentMismatchError(LandRegistryError):
    """Submitted value differs from the listing price."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("PAYMENT_MISMATCH", message, details)


class DuplicatePaymentError(LandRegistryError):
    """Payment for this sale was already recorded."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("DUPLICATE_PAYMENT", message, details)


class NoFundsError(LandRegistryError):
    """The caller has no pending withdrawal balance."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("NO_FUNDS", message, details)


class TransferFailedError(LandRegistryError):
    """The external value transfer was rejected."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("TRANSFER_FAILED", message, details)


class SetupError(LandRegistryError):
    """A component was wired to collaborators it is not authorized to administer."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("SETUP_FAILED", message, details)


class ReentrancyError(LandRegistryError):
    """A guarded escrow operation was re-entered before it finished."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("REENTRANT_CALL", message, details)


class BurnDisabledError(LandRegistryError):
    """Ownership tokens are permanent."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("BURN_DISABLED", message, details)
