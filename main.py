#!/usr/bin/env python3
"""
Land Registry — Entry Point
============================

Walks one parcel through the whole title workflow and prints the result:
register → verify → tokenize → bank/court/tax approval → list →
escrow check → payment → transfer → withdrawal.

Usage:
    python main.py
    LAND_REGISTRY_LOG_LEVEL=DEBUG python main.py
"""

from __future__ import annotations

import logging
import sys

from land_registry import config
from land_registry.exceptions import LandRegistryError, NoFundsError
from land_registry.models import OwnershipType, VerifierRole
from land_registry.system import LandRegistrySystem


# ─── Demo Identities ────────────────────────────────────────────────

DEPLOYER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
LANDOWNER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
BUYER = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
BANK = "0x90F79bf6EB2c4f870365E785982E1f101E93b906"
COURT = "0x9965507D1a55bcC2695C58ba16FB37d819B0A4dc"
TAX = "0x14dC79964da2C08b23698B3D3cc7Ca32193d9955"

SALE_PRICE = 1_250_000


# ─── ANSI Color Constants ───────────────────────────────────────────

_RED = "\033[91m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"
_BOLD = "\033[1m"
_RESET = "\033[0m"
_WIDTH = 72


# ─── Pretty Printer Helpers ─────────────────────────────────────────


def _step(label: str) -> None:
    print(f"  {_GREEN}✔{_RESET} {label}")


def _print_parcel(parcel) -> None:
    """Print a parcel record."""
    print(f"  Thram:       {parcel.thram_number}")
    print(f"  Plot:        {parcel.plot_number}")
    print(f"  Location:    {parcel.location}")
    print(f"  Area:        {parcel.total_area} {_DIM}(available {parcel.available_area}){_RESET}")
    print(f"  Ownership:   {parcel.ownership_type.value}")
    for share in parcel.owners:
        print(f"    {share.owner}  {share.did}  {share.percentage / 100:.2f}%")
    print(f"  Verified:    {parcel.is_verified}")


def _print_events(events) -> None:
    """Print the event feed (compact format)."""
    print(f"  {_CYAN}EVENTS ({len(events)}){_RESET}")
    for e in events:
        print(f"    {_DIM}#{e.sequence:03d}{_RESET} {e.component:<24} {e.name:<26} {e.key}")
    print()


# ─── Scenario ───────────────────────────────────────────────────────


def run_demo(system: LandRegistrySystem) -> int:
    """Run the full sale workflow. Returns the sold token id."""
    approver = system.approver

    system.parcels.register_land(
        approver,
        "THRAM-123",
        "PLOT-001",
        "Paro, Lango gewog",
        10,
        50,
        [LANDOWNER],
        ["did:eth:landowner"],
        [config.BASIS_POINTS_TOTAL],
        OwnershipType.SINGLE,
    )
    _step("Parcel PLOT-001 registered")

    system.parcels.verify_land(approver, "THRAM-123", "PLOT-001")
    _step("Parcel verified by approver")

    token_id = system.tokens.mint_plot_token(
        system.deployer, "PLOT-001", [LANDOWNER], ["did:eth:landowner"], [config.BASIS_POINTS_TOTAL]
    )
    _step(f"Plot token #{token_id} minted to landowner")

    system.verifiers.verify_tax_status(TAX, token_id)
    system.verifiers.verify_bank_status(BANK, token_id)
    system.verifiers.verify_court_status(COURT, token_id)
    _step(f"Bank, court and tax approvals recorded (fully verified: "
          f"{system.verifiers.is_land_verified(token_id)})")

    system.escrow.list_land_for_sale(LANDOWNER, token_id, SALE_PRICE)
    system.escrow.verify_land_details(system.deployer, token_id)
    _step(f"Listed at {SALE_PRICE:,} and cleared by escrow")

    system.escrow.make_payment(BUYER, token_id, SALE_PRICE)
    system.escrow.transfer_ownership_after_payment(BUYER, token_id)
    _step(f"Buyer paid; token now held by {system.tokens.owner_of(token_id)}")

    withdrawn = system.escrow.withdraw(LANDOWNER)
    _step(f"Landowner withdrew {withdrawn:,}")

    try:
        system.escrow.withdraw(LANDOWNER)
    except NoFundsError:
        _step("Second withdrawal correctly rejected")

    return token_id


# ─── Main ────────────────────────────────────────────────────────────


def main():
    """Wire the registry, run the workflow and print the report."""
    logging.basicConfig(level=config.LOG_LEVEL)

    print(f"\n{'=' * _WIDTH}")
    print(f"{_BOLD}{_CYAN}  LAND TITLE WORKFLOW{_RESET}")
    print(f"{'=' * _WIDTH}")

    system = LandRegistrySystem(
        deployer=DEPLOYER,
        approver=DEPLOYER,
        verifiers={
            VerifierRole.BANK: [BANK],
            VerifierRole.COURT: [COURT],
            VerifierRole.TAX: [TAX],
        },
    )

    try:
        token_id = run_demo(system)
    except LandRegistryError as exc:
        print(f"\n  {_RED}{_BOLD}[{exc.code}]{_RESET} {exc}")
        for k, v in exc.details.items():
            print(f"      {_DIM}{k}: {v}{_RESET}")
        sys.exit(1)

    print(f"{'─' * _WIDTH}")
    _print_parcel(system.parcels.get_land_by_plot("PLOT-001"))
    print(f"  Token:       #{token_id} held by {system.tokens.owner_of(token_id)}")
    print(f"  Seller paid: {system.value_transfer.balance_of(LANDOWNER):,}")
    print(f"{'─' * _WIDTH}")
    _print_events(system.events.events())

    print(f"{'=' * _WIDTH}")
    print(f"  {_GREEN}{_BOLD}SALE SETTLED{_RESET}")
    print(f"{'=' * _WIDTH}\n")
    sys.exit(0)


if __name__ == "__main__":
    main()
