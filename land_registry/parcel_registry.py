"""
Canonical parcel records.

The registry authority ("approver") is the only identity that can file or
verify a parcel. Area is only ever taken away from a parcel, by
fractionalization when a fraction token is minted against it; parcels
are never deleted.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from .events import EventLog
from .exceptions import (
    AuthorizationError,
    InsufficientAreaError,
    MismatchError,
    NotFoundError,
    SetupError,
    ValidationError,
)
from .models import LandArea, OwnerShare, OwnershipType, Parcel
from .transaction import Transactional
from .validators import (
    is_null_identity,
    raise_for_findings,
    validate_area,
    validate_identity,
    validate_registration,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ParcelRegistry(Transactional):
    """Owns parcel records and their thram/owner/DID indexes."""

    component = "ParcelRegistry"
    _state_fields = (
        "_parcels",
        "_plots_by_thram",
        "_plots_by_owner",
        "_plots_by_did",
        "_tokenizers",
    )

    def __init__(self, approver: str, events: Optional[EventLog] = None, clock: Clock = _utcnow):
        if is_null_identity(approver):
            raise SetupError("ParcelRegistry requires a non-null approver")
        self._approver = approver
        self._events = events if events is not None else EventLog()
        self._clock = clock

        self._parcels: dict[str, Parcel] = {}
        self._plots_by_thram: dict[str, list[str]] = {}
        self._plots_by_owner: dict[str, list[str]] = {}
        self._plots_by_did: dict[str, list[str]] = {}
        # Identities (tokenization engines) allowed to fractionalize
        self._tokenizers: set[str] = set()

    @property
    def approver(self) -> str:
        return self._approver

    # ─── Authorization ───────────────────────────────────────────────

    def authorize_tokenizer(self, caller: str, identity: str) -> None:
        """Let a tokenization engine deduct area on fraction mints."""
        self._require_approver(caller, "authorize a tokenizer")
        raise_for_findings(validate_identity(identity, "identity"), "authorize_tokenizer")
        self._tokenizers.add(identity)
        self._events.emit(self.component, "TokenizerAuthorized", identity)

    def _require_approver(self, caller: str, action: str) -> None:
        if caller != self._approver:
            raise AuthorizationError(
                f"Only the approver can {action}",
                details={"caller": caller},
            )

    # ─── Mutations ───────────────────────────────────────────────────

    def register_land(
        self,
        caller: str,
        thram_number: str,
        plot_number: str,
        location: str,
        area_acres: int,
        area_decimals: int,
        owners: Sequence[str],
        dids: Sequence[str],
        percentages: Sequence[int],
        ownership_type: OwnershipType = OwnershipType.SINGLE,
    ) -> Parcel:
        """File a new parcel. Each plot number can be registered exactly once."""
        self._require_approver(caller, "register land")

        findings = validate_registration(
            thram_number, plot_number, area_acres, area_decimals, owners, dids, percentages
        )
        raise_for_findings(findings, "register_land")

        if plot_number in self._parcels:
            raise ValidationError(
                f"Plot '{plot_number}' is already registered",
                details={"plot_number": plot_number},
            )

        area = LandArea(acres=area_acres, decimals=area_decimals)
        shares = [
            OwnerShare(owner=o, did=d, percentage=p)
            for o, d, p in zip(owners, dids, percentages)
        ]
        parcel = Parcel(
            thram_number=thram_number,
            plot_number=plot_number,
            location=location,
            total_area=area,
            available_area=area,
            registered_at=self._clock(),
            ownership_type=ownership_type,
            owners=shares,
        )

        self._parcels[plot_number] = parcel
        self._plots_by_thram.setdefault(thram_number, []).append(plot_number)
        for owner in dict.fromkeys(owners):
            self._plots_by_owner.setdefault(owner, []).append(plot_number)
        for did in dict.fromkeys(dids):
            self._plots_by_did.setdefault(did, []).append(plot_number)

        self._events.emit(
            self.component,
            "LandRegistered",
            plot_number,
            thram_number=thram_number,
            plot_number=plot_number,
            location=location,
            area=area,
            owners=list(owners),
            dids=list(dids),
            percentages=list(percentages),
            ownership_type=ownership_type,
            registered_at=parcel.registered_at.isoformat(),
        )
        return parcel.model_copy(deep=True)

    def verify_land(self, caller: str, thram_number: str, plot_number: str) -> bool:
        """Mark a parcel verified.

        Returns True when the flag flipped, False when the parcel was
        already verified (a no-op that emits nothing).
        """
        self._require_approver(caller, "verify land")
        parcel = self._get(plot_number)

        if parcel.thram_number != thram_number:
            raise MismatchError(
                f"Plot '{plot_number}' is filed under thram '{parcel.thram_number}', "
                f"not '{thram_number}'",
                details={
                    "plot_number": plot_number,
                    "recorded_thram": parcel.thram_number,
                    "supplied_thram": thram_number,
                },
            )

        if parcel.is_verified:
            logger.debug("Plot %s already verified; nothing to do", plot_number)
            return False

        parcel.is_verified = True
        self._events.emit(
            self.component,
            "LandVerified",
            plot_number,
            thram_number=thram_number,
            plot_number=plot_number,
        )
        return True

    def fractionalize_land(
        self, caller: str, plot_number: str, acres: int, decimals: int
    ) -> LandArea:
        """Deduct area from a parcel's available pool. Returns what remains."""
        if caller != self._approver and caller not in self._tokenizers:
            raise AuthorizationError(
                "Only the approver or an authorized tokenizer can fractionalize land",
                details={"caller": caller},
            )
        raise_for_findings(
            validate_area(acres, decimals, field="deduction"), "fractionalize_land"
        )
        parcel = self._get(plot_number)
        requested = LandArea(acres=acres, decimals=decimals)

        if not parcel.available_area.covers(requested):
            raise InsufficientAreaError(
                f"Plot '{plot_number}' has {parcel.available_area} available, "
                f"cannot deduct {requested}",
                details={
                    "plot_number": plot_number,
                    "available": parcel.available_area.model_dump(),
                    "requested": requested.model_dump(),
                },
            )

        parcel.available_area = parcel.available_area.minus(requested)
        self._events.emit(
            self.component,
            "LandFractionalized",
            plot_number,
            deducted=requested,
            remaining=parcel.available_area,
        )
        return parcel.available_area

    # ─── Reads ───────────────────────────────────────────────────────

    def get_land_by_plot(self, plot_number: str) -> Parcel:
        return self._get(plot_number).model_copy(deep=True)

    def get_plots_by_thram(self, thram_number: str) -> list[Parcel]:
        plots = self._plots_by_thram.get(thram_number)
        if not plots:
            raise NotFoundError(
                f"No plots registered under thram '{thram_number}'",
                details={"thram_number": thram_number},
            )
        return [self._parcels[p].model_copy(deep=True) for p in plots]

    def get_lands_by_owner(self, owner: str) -> list[Parcel]:
        return [
            self._parcels[p].model_copy(deep=True)
            for p in self._plots_by_owner.get(owner, [])
        ]

    def get_lands_by_user_did(self, did: str) -> list[Parcel]:
        return [
            self._parcels[p].model_copy(deep=True)
            for p in self._plots_by_did.get(did, [])
        ]

    def has_plot(self, plot_number: str) -> bool:
        return plot_number in self._parcels

    def has_thram(self, thram_number: str) -> bool:
        return bool(self._plots_by_thram.get(thram_number))

    def __len__(self) -> int:
        return len(self._parcels)

    # ─── Internal Helpers ────────────────────────────────────────────

    def _get(self, plot_number: str) -> Parcel:
        parcel = self._parcels.get(plot_number)
        if parcel is None:
            raise NotFoundError(
                f"Plot '{plot_number}' is not registered",
                details={"plot_number": plot_number},
            )
        return parcel
