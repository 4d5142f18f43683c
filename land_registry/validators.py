"""
Deterministic input checks for registry operations.

Each validator function:
  - Takes raw operation arguments
  - Returns a list of ValidationFinding objects (empty = all clear)
  - Is independently testable and never mutates anything

Components collect findings from several validators and hand them to
raise_for_findings(), which rejects the whole operation at once so the
caller sees every problem, not just the first.
"""

from __future__ import annotations

from typing import Optional, Sequence

from .config import BASIS_POINTS_TOTAL, DECIMALS_PER_ACRE, NULL_IDENTITY
from .exceptions import ValidationError
from .models import ValidationFinding


# ─── Helpers ─────────────────────────────────────────────────────────


def is_null_identity(identity: Optional[str]) -> bool:
    """None, blank strings and the zero address are not identities."""
    if identity is None:
        return True
    stripped = identity.strip()
    return not stripped or stripped.lower() == NULL_IDENTITY


def raise_for_findings(findings: list[ValidationFinding], operation: str) -> None:
    """Reject the operation if any validator produced a finding."""
    if not findings:
        return
    summary = "; ".join(f.message for f in findings)
    raise ValidationError(
        f"{operation} rejected: {summary}",
        details={"findings": [f.model_dump() for f in findings]},
    )


# ─── Individual Validators ───────────────────────────────────────────


def validate_identity(identity: Optional[str], field: str) -> list[ValidationFinding]:
    """Reject null/empty identities."""
    if is_null_identity(identity):
        return [
            ValidationFinding(
                code="NULL_IDENTITY",
                field=field,
                message=f"'{field}' must be a non-null identity",
                details={"value": identity},
            )
        ]
    return []


def validate_land_identifiers(thram_number: str, plot_number: str) -> list[ValidationFinding]:
    """Thram and plot numbers must be non-empty."""
    findings: list[ValidationFinding] = []

    if not thram_number or not thram_number.strip():
        findings.append(
            ValidationFinding(
                code="EMPTY_THRAM_NUMBER",
                field="thram_number",
                message="Thram number must not be empty",
            )
        )
    if not plot_number or not plot_number.strip():
        findings.append(
            ValidationFinding(
                code="EMPTY_PLOT_NUMBER",
                field="plot_number",
                message="Plot number must not be empty",
            )
        )

    return findings


def validate_area(
    acres: int, decimals: int, field: str = "area", allow_zero: bool = False
) -> list[ValidationFinding]:
    """Both magnitudes must be non-negative integers and decimals below one acre."""
    findings: list[ValidationFinding] = []

    if acres < 0 or decimals < 0:
        findings.append(
            ValidationFinding(
                code="NEGATIVE_AREA",
                field=field,
                message=f"Area cannot be negative (acres={acres}, decimals={decimals})",
                details={"acres": acres, "decimals": decimals},
            )
        )
        return findings

    if decimals >= DECIMALS_PER_ACRE:
        findings.append(
            ValidationFinding(
                code="DECIMALS_OUT_OF_RANGE",
                field=field,
                message=(
                    f"Decimals must be below {DECIMALS_PER_ACRE} "
                    f"(got {decimals}); express whole acres in the acre component"
                ),
                details={"decimals": decimals},
            )
        )

    if not allow_zero and acres == 0 and decimals == 0:
        findings.append(
            ValidationFinding(
                code="ZERO_AREA",
                field=field,
                message="Area must be greater than zero",
            )
        )

    return findings


def validate_owner_shares(
    owners: Sequence[Optional[str]],
    dids: Sequence[str],
    percentages: Sequence[int],
) -> list[ValidationFinding]:
    """Owner, DID and percentage vectors must line up and sum to 100.00%."""
    findings: list[ValidationFinding] = []

    if not (len(owners) == len(dids) == len(percentages)):
        findings.append(
            ValidationFinding(
                code="ARRAY_LENGTH_MISMATCH",
                field="owners",
                message=(
                    f"Owners ({len(owners)}), DIDs ({len(dids)}) and "
                    f"percentages ({len(percentages)}) must have equal length"
                ),
                details={
                    "owners": len(owners),
                    "dids": len(dids),
                    "percentages": len(percentages),
                },
            )
        )
        return findings

    if not owners:
        findings.append(
            ValidationFinding(
                code="NO_OWNERS",
                field="owners",
                message="At least one owner is required",
            )
        )
        return findings

    for index, owner in enumerate(owners):
        if is_null_identity(owner):
            findings.append(
                ValidationFinding(
                    code="NULL_OWNER",
                    field="owners",
                    message=f"Owner at position {index} is a null identity",
                    details={"index": index},
                )
            )

    for index, did in enumerate(dids):
        if not did or not did.strip():
            findings.append(
                ValidationFinding(
                    code="EMPTY_DID",
                    field="dids",
                    message=f"DID at position {index} is empty",
                    details={"index": index},
                )
            )

    for index, pct in enumerate(percentages):
        if pct <= 0:
            findings.append(
                ValidationFinding(
                    code="INVALID_PERCENTAGE",
                    field="percentages",
                    message=f"Percentage at position {index} must be positive (got {pct})",
                    details={"index": index, "percentage": pct},
                )
            )

    total = sum(percentages)
    if total != BASIS_POINTS_TOTAL:
        findings.append(
            ValidationFinding(
                code="PERCENTAGE_SUM_INVALID",
                field="percentages",
                message=(
                    f"Ownership percentages must sum to {BASIS_POINTS_TOTAL} "
                    f"basis points (got {total})"
                ),
                details={"sum": total, "expected": BASIS_POINTS_TOTAL},
            )
        )

    return findings


# ─── Orchestrator ────────────────────────────────────────────────────


def validate_registration(
    thram_number: str,
    plot_number: str,
    area_acres: int,
    area_decimals: int,
    owners: Sequence[Optional[str]],
    dids: Sequence[str],
    percentages: Sequence[int],
) -> list[ValidationFinding]:
    """Run every check a new parcel must pass."""
    findings: list[ValidationFinding] = []
    findings.extend(validate_land_identifiers(thram_number, plot_number))
    findings.extend(validate_area(area_acres, area_decimals, field="area"))
    findings.extend(validate_owner_shares(owners, dids, percentages))
    return findings
