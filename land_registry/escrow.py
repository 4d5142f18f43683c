"""
Escrowed sale of ownership tokens.

Flow for one token:

  list_land_for_sale       seller, token fully verified  → PENDING_VERIFICATION
  verify_land_details      escrow administrator          → VERIFIED
  make_payment             buyer, exact price            → PAYMENT_COMPLETE
  transfer_ownership_after_payment                       → custody to buyer, record cleared
  withdraw                 seller pulls the credited price

Listing locks the token in the engine so the seller cannot move it while
the sale is open; the lock is released by the transfer to the buyer or by
cancel_sale, which clears the record from any state before PAYMENT_COMPLETE.

Payment, transfer and withdrawal share one reentrancy lock, and each of
them finishes its own bookkeeping (status flip, balance zeroing) before
value or custody leaves the escrow. If the outbound step fails, the whole
operation is rolled back.
"""

from __future__ import annotations

import logging
from typing import Optional

from .events import EventLog
from .exceptions import (
    AlreadyCompleteError,
    AlreadyListedError,
    AuthorizationError,
    DuplicatePaymentError,
    InvalidStateError,
    NoFundsError,
    NotVerifiedError,
    PaymentMismatchError,
    TransferFailedError,
    ValidationError,
)
from .models import SaleRecord, SaleStatus
from .ownership import Ownable
from .tokenization import TokenizationEngine
from .transaction import Transactional, atomic, non_reentrant
from .validators import is_null_identity
from .value_transfer import ValueTransfer
from .verifier_registry import VerifierRegistry

logger = logging.getLogger(__name__)


class EscrowSettlement(Ownable, Transactional):
    """Drives the sale state machine and holds sale proceeds until withdrawn."""

    component = "EscrowSettlement"
    _state_fields = ("_owner", "_sales", "_pending_withdrawals", "_escrow_balance")

    def __init__(
        self,
        owner: str,
        tokens: TokenizationEngine,
        verifiers: VerifierRegistry,
        value_transfer: ValueTransfer,
        events: Optional[EventLog] = None,
        identity: str = "escrow-settlement",
    ):
        super().__init__(owner, events if events is not None else EventLog())
        self.identity = identity
        self._tokens = tokens
        self._verifiers = verifiers
        self._value_transfer = value_transfer

        self._sales: dict[int, SaleRecord] = {}
        self._pending_withdrawals: dict[str, int] = {}
        self._escrow_balance = 0

    # ─── Sale Lifecycle ──────────────────────────────────────────────

    def list_land_for_sale(self, caller: str, token_id: int, price: int) -> SaleRecord:
        if self._tokens.owner_of(token_id) != caller:
            raise AuthorizationError(
                f"Only the holder of token {token_id} can list it",
                details={"caller": caller, "token_id": token_id},
            )
        if not self._verifiers.is_land_verified(token_id):
            raise NotVerifiedError(
                f"Token {token_id} lacks bank, court and tax verification",
                details={
                    "token_id": token_id,
                    "verification": self._verifiers.get_verification(token_id).model_dump(),
                },
            )
        existing = self._sales.get(token_id)
        if existing is not None and existing.status != SaleStatus.NOT_FOR_SALE:
            raise AlreadyListedError(
                f"Token {token_id} is already listed ({existing.status.value})",
                details={"token_id": token_id, "status": existing.status.value},
            )
        if price <= 0:
            raise ValidationError(
                f"Sale price must be positive (got {price})",
                details={"price": price},
            )

        sale = SaleRecord(token_id=token_id, seller=caller, price=price)
        with atomic(self, self._tokens, self._events):
            self._tokens.lock_token(self.identity, token_id)
            self._sales[token_id] = sale
            self._events.emit(
                self.component, "LandListed", token_id, seller=caller, price=price
            )
        return sale.model_copy()

    def verify_land_details(self, caller: str, token_id: int) -> SaleRecord:
        self._require_owner(caller, "verify sale details")
        sale = self._require_status(token_id, SaleStatus.PENDING_VERIFICATION)
        sale.status = SaleStatus.VERIFIED
        self._events.emit(self.component, "SaleVerified", token_id)
        return sale.model_copy()

    @non_reentrant
    def make_payment(self, caller: str, token_id: int, value: int) -> SaleRecord:
        """Pay the exact listing price; credits the seller's withdrawable balance."""
        sale = self._sales.get(token_id)
        if sale is None:
            raise InvalidStateError(
                f"Token {token_id} is not for sale",
                details={"token_id": token_id, "status": SaleStatus.NOT_FOR_SALE.value},
            )
        if sale.payment_received or sale.status == SaleStatus.PAYMENT_COMPLETE:
            raise DuplicatePaymentError(
                f"Payment for token {token_id} was already received",
                details={"token_id": token_id, "buyer": sale.buyer},
            )
        if sale.status != SaleStatus.VERIFIED:
            raise InvalidStateError(
                f"Token {token_id} sale is {sale.status.value}, expected VERIFIED",
                details={"token_id": token_id, "status": sale.status.value},
            )
        if is_null_identity(caller):
            raise ValidationError("Buyer must be a non-null identity")
        if caller == sale.seller:
            raise AuthorizationError(
                "Sellers cannot purchase their own listing",
                details={"token_id": token_id, "caller": caller},
            )
        if value != sale.price:
            raise PaymentMismatchError(
                f"Payment of {value} does not match price {sale.price}",
                details={"token_id": token_id, "value": value, "price": sale.price},
            )
        holder = self._tokens.owner_of(token_id)
        if holder != sale.seller:
            raise InvalidStateError(
                f"Token {token_id} is no longer held by the seller",
                details={"token_id": token_id, "holder": holder, "seller": sale.seller},
            )

        sale.buyer = caller
        sale.payment_received = True
        sale.status = SaleStatus.PAYMENT_COMPLETE
        self._pending_withdrawals[sale.seller] = (
            self._pending_withdrawals.get(sale.seller, 0) + value
        )
        self._escrow_balance += value
        self._events.emit(
            self.component,
            "PaymentReceived",
            token_id,
            buyer=caller,
            seller=sale.seller,
            amount=value,
        )
        return sale.model_copy()

    @non_reentrant
    def transfer_ownership_after_payment(self, caller: str, token_id: int) -> str:
        """Move the paid-for token to its buyer and close the sale. Returns the buyer."""
        sale = self._require_status(token_id, SaleStatus.PAYMENT_COMPLETE)
        if not sale.payment_received or sale.buyer is None:
            raise InvalidStateError(
                f"Token {token_id} has no recorded payment",
                details={"token_id": token_id},
            )
        holder = self._tokens.owner_of(token_id)
        if holder != sale.seller:
            raise InvalidStateError(
                f"Token {token_id} is no longer held by the seller",
                details={"token_id": token_id, "holder": holder, "seller": sale.seller},
            )

        with atomic(self, self._tokens, self._events):
            del self._sales[token_id]
            self._tokens.transfer_custody(self.identity, token_id, sale.buyer)
            self._events.emit(
                self.component,
                "LandOwnershipTransferred",
                token_id,
                seller=sale.seller,
                buyer=sale.buyer,
                triggered_by=caller,
            )
        return sale.buyer

    @non_reentrant
    def withdraw(self, caller: str) -> int:
        """Send the caller everything credited to them. Returns the amount sent."""
        amount = self._pending_withdrawals.get(caller, 0)
        if amount <= 0:
            raise NoFundsError(
                "No funds available for withdrawal", details={"caller": caller}
            )

        with atomic(self, self._events):
            del self._pending_withdrawals[caller]
            self._escrow_balance -= amount
            self._send(caller, amount)
            self._events.emit(self.component, "Withdrawal", caller, amount=amount)
        return amount

    def cancel_sale(self, caller: str, token_id: int) -> None:
        sale = self._sales.get(token_id)
        if sale is None:
            raise InvalidStateError(
                f"Token {token_id} is not for sale",
                details={"token_id": token_id},
            )
        if caller != sale.seller:
            raise AuthorizationError(
                "Only the seller can cancel a sale",
                details={"caller": caller, "seller": sale.seller},
            )
        if sale.status == SaleStatus.PAYMENT_COMPLETE:
            raise AlreadyCompleteError(
                f"Token {token_id} has been paid for and cannot be cancelled",
                details={"token_id": token_id},
            )
        with atomic(self, self._tokens, self._events):
            del self._sales[token_id]
            self._tokens.unlock_token(self.identity, token_id)
            self._events.emit(self.component, "SaleCancelled", token_id, seller=caller)

    # ─── Reads ───────────────────────────────────────────────────────

    def get_sale(self, token_id: int) -> Optional[SaleRecord]:
        sale = self._sales.get(token_id)
        return sale.model_copy() if sale else None

    def get_sale_status(self, token_id: int) -> SaleStatus:
        sale = self._sales.get(token_id)
        return sale.status if sale else SaleStatus.NOT_FOR_SALE

    def pending_withdrawal(self, identity: str) -> int:
        return self._pending_withdrawals.get(identity, 0)

    @property
    def escrow_balance(self) -> int:
        """Value held on behalf of sellers who have not withdrawn yet."""
        return self._escrow_balance

    # ─── Internal Helpers ────────────────────────────────────────────

    def _require_status(self, token_id: int, expected: SaleStatus) -> SaleRecord:
        sale = self._sales.get(token_id)
        current = sale.status if sale else SaleStatus.NOT_FOR_SALE
        if sale is None or current != expected:
            raise InvalidStateError(
                f"Token {token_id} sale is {current.value}, expected {expected.value}",
                details={"token_id": token_id, "status": current.value},
            )
        return sale

    def _send(self, recipient: str, amount: int) -> None:
        try:
            self._value_transfer.send(recipient, amount)
        except TransferFailedError:
            raise
        except Exception as exc:
            raise TransferFailedError(
                f"Transfer of {amount} to {recipient} failed: {exc}",
                details={"recipient": recipient, "amount": amount},
            ) from exc
