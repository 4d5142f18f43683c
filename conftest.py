"""Pytest configuration — ensures the project root is importable and provides a wired registry."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))

from land_registry.models import VerifierRole  # noqa: E402
from land_registry.system import LandRegistrySystem  # noqa: E402

DEPLOYER = "0xDeployer"
APPROVER = "0xApprover"
OWNER_1 = "0xOwner1"
OWNER_2 = "0xOwner2"
BUYER = "0xBuyer"
BANK = "0xBank"
COURT = "0xCourt"
TAX = "0xTax"


@pytest.fixture
def system() -> LandRegistrySystem:
    """A fresh, isolated registry per test with one verifier per role."""
    return LandRegistrySystem(
        deployer=DEPLOYER,
        approver=APPROVER,
        verifiers={
            VerifierRole.BANK: [BANK],
            VerifierRole.COURT: [COURT],
            VerifierRole.TAX: [TAX],
        },
    )


@pytest.fixture
def registered(system: LandRegistrySystem) -> LandRegistrySystem:
    """Registry with PLOT-001 (10.50 acres under THRAM-1, OWNER_1 at 100%) filed and verified."""
    system.parcels.register_land(
        APPROVER, "THRAM-1", "PLOT-001", "North Valley", 10, 50,
        [OWNER_1], ["did:eth:owner1"], [10000],
    )
    system.parcels.verify_land(APPROVER, "THRAM-1", "PLOT-001")
    return system


@pytest.fixture
def verified_token(registered: LandRegistrySystem) -> int:
    """A plot token held by OWNER_1 with all three approvals."""
    token_id = registered.tokens.mint_plot_token(
        DEPLOYER, "PLOT-001", [OWNER_1], ["did:eth:owner1"], [10000]
    )
    registered.verifiers.verify_bank_status(BANK, token_id)
    registered.verifiers.verify_court_status(COURT, token_id)
    registered.verifiers.verify_tax_status(TAX, token_id)
    return token_id
