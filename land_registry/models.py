"""
Pydantic models for registry records — strict typing at every boundary.

Areas are two integer magnitudes (acres + hundredths of an acre) so that
no floating point ever touches a land measurement. Percentages are basis
points: 10000 means 100.00%.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import DECIMALS_PER_ACRE


# ─── Enumerations ───────────────────────────────────────────────────


class OwnershipType(str, Enum):
    """How a parcel is held."""

    SINGLE = "SINGLE"
    JOINT = "JOINT"
    HOUSEHOLD_HEAD = "HOUSEHOLD_HEAD"


class TokenType(str, Enum):
    """What an ownership token represents."""

    THRAM = "THRAM"  # Every plot filed under a thram
    PLOT = "PLOT"  # One whole plot
    FRACTION = "FRACTION"  # A slice of a plot's available area


class VerifierRole(IntEnum):
    """Independent approval roles. Integer codes are part of the batch API."""

    BANK = 0
    COURT = 1
    TAX = 2


class SaleStatus(str, Enum):
    """Escrow state machine."""

    NOT_FOR_SALE = "NOT_FOR_SALE"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    VERIFIED = "VERIFIED"
    PAYMENT_COMPLETE = "PAYMENT_COMPLETE"


# ─── Validation Finding ─────────────────────────────────────────────


class ValidationFinding(BaseModel):
    """A single rejected input with a machine-readable code."""

    code: str  # e.g. "PERCENTAGE_SUM_INVALID"
    field: str  # Which argument this relates to
    message: str
    details: dict = Field(default_factory=dict)


# ─── Area ───────────────────────────────────────────────────────────


class LandArea(BaseModel):
    """An area of land in acres plus decimals (1 acre = 100 decimals)."""

    model_config = ConfigDict(frozen=True)

    acres: int = Field(ge=0)
    decimals: int = Field(ge=0, lt=DECIMALS_PER_ACRE)

    @classmethod
    def zero(cls) -> LandArea:
        return cls(acres=0, decimals=0)

    @classmethod
    def from_decimals(cls, total: int) -> LandArea:
        if total < 0:
            raise ValueError(f"Area cannot be negative: {total} decimals")
        acres, decimals = divmod(total, DECIMALS_PER_ACRE)
        return cls(acres=acres, decimals=decimals)

    @property
    def total_decimals(self) -> int:
        return self.acres * DECIMALS_PER_ACRE + self.decimals

    @property
    def is_zero(self) -> bool:
        return self.total_decimals == 0

    def covers(self, other: LandArea) -> bool:
        """True if ``other`` fits inside this area."""
        return other.total_decimals <= self.total_decimals

    def minus(self, other: LandArea) -> LandArea:
        """Subtract with a borrow across the acre/decimal boundary."""
        return LandArea.from_decimals(self.total_decimals - other.total_decimals)

    def __str__(self) -> str:
        return f"{self.acres}.{self.decimals:02d} ac"


# ─── Ownership ──────────────────────────────────────────────────────


class OwnerShare(BaseModel):
    """One owner's stake in a parcel or token."""

    model_config = ConfigDict(frozen=True)

    owner: str  # Opaque identity (address)
    did: str  # External decentralized identifier, never interpreted
    percentage: int  # Basis points


# ─── Parcel ─────────────────────────────────────────────────────────


class Parcel(BaseModel):
    """A registered plot of land. Created once, never deleted."""

    thram_number: str
    plot_number: str
    location: str
    total_area: LandArea
    available_area: LandArea
    registered_at: datetime
    is_verified: bool = False
    ownership_type: OwnershipType
    owners: list[OwnerShare]


# ─── Ownership Token ────────────────────────────────────────────────


class OwnershipToken(BaseModel):
    """Immutable claim on a thram, a plot, or a fraction of a plot."""

    model_config = ConfigDict(frozen=True)

    token_id: int
    token_type: TokenType
    thram_number: str
    plot_number: str = ""  # Empty for THRAM tokens
    area: LandArea
    created_at: datetime
    owners: tuple[OwnerShare, ...]


# ─── Verification ───────────────────────────────────────────────────


class VerificationRecord(BaseModel):
    """Per-token approval bits. ``is_verified`` flips to True once, never back."""

    token_id: int
    bank_status: bool = False
    court_status: bool = False
    tax_status: bool = False
    is_verified: bool = False

    @property
    def all_roles_approved(self) -> bool:
        return self.bank_status and self.court_status and self.tax_status


# ─── Sale ───────────────────────────────────────────────────────────


class SaleRecord(BaseModel):
    """An active escrow sale. Removed on transfer or cancellation."""

    token_id: int
    seller: str
    buyer: Optional[str] = None
    price: int
    status: SaleStatus = SaleStatus.PENDING_VERIFICATION
    payment_received: bool = False


# ─── Events ─────────────────────────────────────────────────────────


class LedgerEvent(BaseModel):
    """An immutable, sequenced notification of a state change."""

    model_config = ConfigDict(frozen=True)

    sequence: int
    component: str  # e.g. "ParcelRegistry"
    name: str  # e.g. "LandRegistered"
    key: str  # Affected record key (plot number, token id, identity)
    fields: dict[str, Any] = Field(default_factory=dict)
    emitted_at: datetime
