"""
Outbound value transfer used by the escrow to pay sellers.

The escrow only needs ``send(recipient, amount)``. Whatever settles real
money sits behind that call; InMemoryValueTransfer keeps balances in
process memory and can be told to reject a recipient, or to run a hook
when a recipient is paid, so failure and reentrancy paths can be driven
from tests and from the demo.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Protocol

from .exceptions import TransferFailedError, ValidationError

logger = logging.getLogger(__name__)

ReceiveHook = Callable[[str, int], None]


class ValueTransfer(Protocol):
    def send(self, recipient: str, amount: int) -> None:
        """Deliver ``amount`` to ``recipient`` or raise TransferFailedError."""
        ...


class InMemoryValueTransfer:
    """Credits recipient accounts held in a dict."""

    def __init__(self) -> None:
        self.balances: dict[str, int] = defaultdict(int)
        self._rejecting: set[str] = set()
        self._hooks: dict[str, ReceiveHook] = {}

    def reject_transfers_to(self, recipient: str) -> None:
        self._rejecting.add(recipient)

    def accept_transfers_to(self, recipient: str) -> None:
        self._rejecting.discard(recipient)

    def on_receive(self, recipient: str, hook: ReceiveHook) -> None:
        """Run ``hook(recipient, amount)`` before crediting ``recipient``."""
        self._hooks[recipient] = hook

    def send(self, recipient: str, amount: int) -> None:
        if amount <= 0:
            raise ValidationError(
                f"Transfer amount must be positive (got {amount})",
                details={"amount": amount},
            )
        if recipient in self._rejecting:
            logger.warning("Recipient %s rejected a transfer of %d", recipient, amount)
            raise TransferFailedError(
                f"Recipient {recipient} rejected the transfer",
                details={"recipient": recipient, "amount": amount},
            )
        hook = self._hooks.get(recipient)
        if hook is not None:
            hook(recipient, amount)
        self.balances[recipient] += amount

    def balance_of(self, identity: str) -> int:
        return self.balances.get(identity, 0)
