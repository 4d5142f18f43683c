"""
Wires the registry components together.

Wiring order (leaf-first, each step depending only on the ones before):
  ┌──────────────────┐
  │ ParcelRegistry   │   approver files and verifies parcels
  └────────┬─────────┘
           │
  ┌────────▼─────────┐
  │ Tokenization     │   authorized to fractionalize parcels
  └────────┬─────────┘
           │
  ┌────────▼─────────┐     ┌────────────────────────┐
  │ VerifierRegistry ├────►│ VerifierAdministration │  registry handed over
  └────────┬─────────┘     └────────────────────────┘
           │
  ┌────────▼─────────┐
  │ EscrowSettlement │   authorized as token custodian
  └──────────────────┘

All components share one EventLog so observers see a single ordered
stream of changes.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from . import config
from .escrow import EscrowSettlement
from .events import EventLog
from .models import VerifierRole
from .parcel_registry import ParcelRegistry
from .tokenization import TokenizationEngine
from .value_transfer import InMemoryValueTransfer, ValueTransfer
from .verifier_admin import VerifierAdministration
from .verifier_registry import VerifierRegistry

logger = logging.getLogger(__name__)


class LandRegistrySystem:
    """A fully wired registry.

    Usage:
        system = LandRegistrySystem(deployer="0xA", approver="0xB")
        system.parcels.register_land("0xB", "THRAM-1", "PLOT-001", ...)
        token_id = system.tokens.mint_plot_token("0xA", "PLOT-001", ...)
    """

    def __init__(
        self,
        deployer: Optional[str] = None,
        approver: Optional[str] = None,
        value_transfer: Optional[ValueTransfer] = None,
        verifiers: Optional[dict[VerifierRole, Sequence[str]]] = None,
    ):
        self.deployer = deployer or config.DEPLOYER_ID
        self.approver = approver or config.APPROVER_ID
        self.events = EventLog()

        # ── Step 1: Parcel registry ─────────────────────────────────
        self.parcels = ParcelRegistry(self.approver, self.events)

        # ── Step 2: Tokenization engine ─────────────────────────────
        self.tokens = TokenizationEngine(self.deployer, self.parcels, self.events)
        self.parcels.authorize_tokenizer(self.approver, self.tokens.identity)

        # ── Step 3: Verifier registry + governance façade ───────────
        self.verifiers = VerifierRegistry(
            self.deployer, self.events, token_exists=self.tokens.has_token
        )
        self.verifier_admin = VerifierAdministration(self.verifiers, self.deployer, self.events)
        self.verifiers.transfer_ownership(self.deployer, self.verifier_admin.identity)

        # ── Step 4: Escrow ──────────────────────────────────────────
        self.value_transfer = value_transfer if value_transfer is not None else InMemoryValueTransfer()
        self.escrow = EscrowSettlement(
            self.deployer, self.tokens, self.verifiers, self.value_transfer, self.events
        )
        self.tokens.add_custodian(self.deployer, self.escrow.identity)

        # ── Step 5: Seed verifiers ──────────────────────────────────
        if verifiers is None:
            verifiers = {
                VerifierRole.BANK: config.BANK_VERIFIERS,
                VerifierRole.COURT: config.COURT_VERIFIERS,
                VerifierRole.TAX: config.TAX_VERIFIERS,
            }
        self._seed_verifiers(verifiers)

        logger.info(
            "Land registry wired (deployer=%s, approver=%s)", self.deployer, self.approver
        )

    def _seed_verifiers(self, verifiers: dict[VerifierRole, Sequence[str]]) -> None:
        identities: list[str] = []
        role_types: list[VerifierRole] = []
        for role, members in verifiers.items():
            for identity in members:
                identities.append(identity)
                role_types.append(role)
        if identities:
            self.verifier_admin.batch_add_verifiers(self.deployer, identities, role_types)

    def summary(self) -> dict[str, int]:
        return {
            "parcels": len(self.parcels),
            "tokens": self.tokens.total_supply,
            "events": len(self.events),
            "escrow_balance": self.escrow.escrow_balance,
        }
