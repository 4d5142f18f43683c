"""
Ownership token minting and custody.

Three kinds of token share one id counter (starting at 1):
  - THRAM:    a claim on everything filed under a thram number (no area)
  - PLOT:     a claim on one whole plot (its total area)
  - FRACTION: a claim on part of a plot; minting it deducts that area
              from the parcel through ParcelRegistry, in the same
              transaction as the token itself

Token records never change after minting and are never destroyed. What
does change is custody: the first listed owner holds a fresh token, and
the holder (or an authorized custodian such as the escrow) can move it.
A custodian can lock a token while it holds it for a sale; the holder
cannot move a locked token until the lock is released.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from .events import EventLog
from .exceptions import (
    AuthorizationError,
    BurnDisabledError,
    InsufficientAreaError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from .models import LandArea, OwnerShare, OwnershipToken, TokenType
from .ownership import Ownable
from .parcel_registry import ParcelRegistry
from .transaction import Transactional, atomic
from .validators import (
    is_null_identity,
    raise_for_findings,
    validate_area,
    validate_identity,
    validate_owner_shares,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenizationEngine(Ownable, Transactional):
    """Mints and tracks custody of ownership tokens."""

    component = "TokenizationEngine"
    _state_fields = (
        "_owner",
        "_tokens",
        "_holders",
        "_token_uris",
        "_token_ids_by_thram",
        "_token_ids_by_plot",
        "_next_token_id",
        "_custodians",
        "_locks",
    )

    def __init__(
        self,
        owner: str,
        parcels: ParcelRegistry,
        events: Optional[EventLog] = None,
        identity: str = "tokenization-engine",
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(owner, events if events is not None else EventLog())
        self.identity = identity
        self._parcels = parcels
        self._clock = clock

        self._tokens: dict[int, OwnershipToken] = {}
        self._holders: dict[int, str] = {}
        self._token_uris: dict[int, str] = {}
        self._token_ids_by_thram: dict[str, list[int]] = {}
        self._token_ids_by_plot: dict[str, list[int]] = {}
        self._next_token_id = 1
        self._custodians: set[str] = set()
        # token id -> custodian holding the token for an active sale
        self._locks: dict[int, str] = {}

    # ─── Minting ─────────────────────────────────────────────────────

    def mint_thram_token(
        self,
        caller: str,
        thram_number: str,
        owners: Sequence[str],
        dids: Sequence[str],
        percentages: Sequence[int],
    ) -> int:
        self._require_owner(caller, "mint tokens")
        raise_for_findings(validate_owner_shares(owners, dids, percentages), "mint_thram_token")
        if not self._parcels.has_thram(thram_number):
            raise NotFoundError(
                f"No plots registered under thram '{thram_number}'",
                details={"thram_number": thram_number},
            )
        with atomic(self, self._events):
            return self._issue(
                TokenType.THRAM, thram_number, "", LandArea.zero(), owners, dids, percentages
            )

    def mint_plot_token(
        self,
        caller: str,
        plot_number: str,
        owners: Sequence[str],
        dids: Sequence[str],
        percentages: Sequence[int],
    ) -> int:
        self._require_owner(caller, "mint tokens")
        raise_for_findings(validate_owner_shares(owners, dids, percentages), "mint_plot_token")
        parcel = self._parcels.get_land_by_plot(plot_number)
        with atomic(self, self._events):
            return self._issue(
                TokenType.PLOT,
                parcel.thram_number,
                plot_number,
                parcel.total_area,
                owners,
                dids,
                percentages,
            )

    def mint_fraction_token(
        self,
        caller: str,
        plot_number: str,
        acres: int,
        decimals: int,
        owners: Sequence[str],
        dids: Sequence[str],
        percentages: Sequence[int],
    ) -> int:
        """Mint a claim on part of a plot, deducting the area from the parcel."""
        self._require_owner(caller, "mint tokens")
        findings = validate_owner_shares(owners, dids, percentages)
        findings.extend(validate_area(acres, decimals, field="fraction"))
        raise_for_findings(findings, "mint_fraction_token")

        parcel = self._parcels.get_land_by_plot(plot_number)
        requested = LandArea(acres=acres, decimals=decimals)
        if not parcel.available_area.covers(requested):
            raise InsufficientAreaError(
                f"Plot '{plot_number}' has {parcel.available_area} available, "
                f"cannot mint a fraction of {requested}",
                details={
                    "plot_number": plot_number,
                    "available": parcel.available_area.model_dump(),
                    "requested": requested.model_dump(),
                },
            )

        with atomic(self, self._parcels, self._events):
            self._parcels.fractionalize_land(self.identity, plot_number, acres, decimals)
            return self._issue(
                TokenType.FRACTION,
                parcel.thram_number,
                plot_number,
                requested,
                owners,
                dids,
                percentages,
            )

    def burn(self, caller: str, token_id: int) -> None:
        """Tokens are permanent so the audit trail stays unbroken."""
        raise BurnDisabledError(
            "Burning is disabled for audit trail purposes",
            details={"token_id": token_id, "caller": caller},
        )

    # ─── Metadata ────────────────────────────────────────────────────

    def set_token_uri(self, caller: str, token_id: int, uri: str) -> None:
        self._require_owner(caller, "set token metadata")
        self._get(token_id)
        if not uri or not uri.strip():
            raise ValidationError("Token URI must not be empty", details={"token_id": token_id})
        self._token_uris[token_id] = uri
        self._events.emit(self.component, "TokenURISet", token_id, uri=uri)

    def token_uri(self, token_id: int) -> str:
        self._get(token_id)
        return self._token_uris.get(token_id, "")

    # ─── Custody ─────────────────────────────────────────────────────

    def add_custodian(self, caller: str, identity: str) -> None:
        """Allow ``identity`` (e.g. the escrow) to move tokens it does not hold."""
        self._require_owner(caller, "add custodians")
        raise_for_findings(validate_identity(identity, "identity"), "add_custodian")
        self._custodians.add(identity)
        self._events.emit(self.component, "CustodianAdded", identity)

    def remove_custodian(self, caller: str, identity: str) -> None:
        self._require_owner(caller, "remove custodians")
        if identity not in self._custodians:
            raise ValidationError(
                f"{identity} is not a custodian", details={"identity": identity}
            )
        self._custodians.discard(identity)
        self._events.emit(self.component, "CustodianRemoved", identity)

    def is_custodian(self, identity: str) -> bool:
        return identity in self._custodians

    def lock_token(self, caller: str, token_id: int) -> None:
        """Freeze custody so only ``caller`` (a custodian) can move the token."""
        self._require_custodian(caller, "lock tokens")
        self._get(token_id)
        locked_by = self._locks.get(token_id)
        if locked_by is not None:
            raise InvalidStateError(
                f"Token {token_id} is already locked by {locked_by}",
                details={"token_id": token_id, "locked_by": locked_by},
            )
        self._locks[token_id] = caller
        self._events.emit(self.component, "TokenLocked", token_id, custodian=caller)

    def unlock_token(self, caller: str, token_id: int) -> None:
        self._get(token_id)
        locked_by = self._locks.get(token_id)
        if locked_by is None:
            raise InvalidStateError(
                f"Token {token_id} is not locked", details={"token_id": token_id}
            )
        if caller != locked_by:
            raise AuthorizationError(
                "Only the locking custodian can unlock a token",
                details={"caller": caller, "locked_by": locked_by},
            )
        del self._locks[token_id]
        self._events.emit(self.component, "TokenUnlocked", token_id, custodian=caller)

    def is_locked(self, token_id: int) -> bool:
        return token_id in self._locks

    def transfer_custody(self, caller: str, token_id: int, to: str) -> None:
        """Move a token to a new holder.

        A locked token can only be moved by the custodian that locked it,
        and the move releases the lock.
        """
        self._get(token_id)
        holder = self._holders[token_id]
        locked_by = self._locks.get(token_id)
        if locked_by is not None and caller != locked_by:
            raise InvalidStateError(
                f"Token {token_id} is locked by {locked_by} and cannot be moved",
                details={"token_id": token_id, "caller": caller, "locked_by": locked_by},
            )
        if caller != holder and caller not in self._custodians:
            raise AuthorizationError(
                f"Caller neither holds token {token_id} nor is a custodian",
                details={"caller": caller, "holder": holder},
            )
        if is_null_identity(to):
            raise ValidationError(
                "Cannot transfer a token to a null identity",
                details={"token_id": token_id},
            )
        self._locks.pop(token_id, None)
        self._holders[token_id] = to
        self._events.emit(
            self.component, "Transfer", token_id, from_holder=holder, to_holder=to
        )

    def owner_of(self, token_id: int) -> str:
        self._get(token_id)
        return self._holders[token_id]

    def balance_of(self, identity: str) -> int:
        return sum(1 for holder in self._holders.values() if holder == identity)

    # ─── Reads ───────────────────────────────────────────────────────

    def get_token(self, token_id: int) -> OwnershipToken:
        return self._get(token_id)

    def has_token(self, token_id: int) -> bool:
        return token_id in self._tokens

    def get_tokens_by_thram(self, thram_number: str) -> list[int]:
        return list(self._token_ids_by_thram.get(thram_number, []))

    def get_tokens_by_plot(self, plot_number: str) -> list[int]:
        return list(self._token_ids_by_plot.get(plot_number, []))

    @property
    def total_supply(self) -> int:
        return len(self._tokens)

    # ─── Internal Helpers ────────────────────────────────────────────

    def _require_custodian(self, caller: str, action: str) -> None:
        if caller not in self._custodians:
            raise AuthorizationError(
                f"Only a registered custodian can {action}",
                details={"caller": caller},
            )

    def _get(self, token_id: int) -> OwnershipToken:
        token = self._tokens.get(token_id)
        if token is None:
            raise NotFoundError(
                f"Token {token_id} does not exist", details={"token_id": token_id}
            )
        return token

    def _issue(
        self,
        token_type: TokenType,
        thram_number: str,
        plot_number: str,
        area: LandArea,
        owners: Sequence[str],
        dids: Sequence[str],
        percentages: Sequence[int],
    ) -> int:
        token_id = self._next_token_id
        token = OwnershipToken(
            token_id=token_id,
            token_type=token_type,
            thram_number=thram_number,
            plot_number=plot_number,
            area=area,
            created_at=self._clock(),
            owners=tuple(
                OwnerShare(owner=o, did=d, percentage=p)
                for o, d, p in zip(owners, dids, percentages)
            ),
        )
        self._next_token_id += 1
        self._tokens[token_id] = token
        self._holders[token_id] = owners[0]

        if token_type == TokenType.THRAM:
            self._token_ids_by_thram.setdefault(thram_number, []).append(token_id)
        else:
            self._token_ids_by_plot.setdefault(plot_number, []).append(token_id)

        self._events.emit(
            self.component,
            "LandTokenized",
            token_id,
            token_type=token_type,
            thram_number=thram_number,
            plot_number=plot_number,
            area=area,
            owners=list(owners),
            dids=list(dids),
            percentages=list(percentages),
        )
        logger.info("Minted %s token %d (%s)", token_type.value, token_id, area)
        return token_id
