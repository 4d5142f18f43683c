"""Registry configuration."""

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env from project root (before any os.getenv calls)
load_dotenv(BASE_DIR / ".env")

# Domain constants
BASIS_POINTS_TOTAL = 10_000  # 100.00% expressed in basis points
DECIMALS_PER_ACRE = 100
NULL_IDENTITY = "0x0000000000000000000000000000000000000000"

# Identities used when the system wires itself up
DEPLOYER_ID = os.getenv("LAND_REGISTRY_DEPLOYER", "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266")
APPROVER_ID = os.getenv("LAND_REGISTRY_APPROVER", DEPLOYER_ID)


def _split_identities(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


# Verifiers seeded through the administration façade at startup
BANK_VERIFIERS = _split_identities(os.getenv("LAND_REGISTRY_BANK_VERIFIERS", ""))
COURT_VERIFIERS = _split_identities(os.getenv("LAND_REGISTRY_COURT_VERIFIERS", ""))
TAX_VERIFIERS = _split_identities(os.getenv("LAND_REGISTRY_TAX_VERIFIERS", ""))

LOG_LEVEL = os.getenv("LAND_REGISTRY_LOG_LEVEL", "INFO").upper()
