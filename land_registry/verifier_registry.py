"""
Bank, court and tax verification of ownership tokens.

Three independent role sets decide who may approve. Each role approves a
token at most once; the derived ``is_verified`` flag becomes True the
moment the last of the three approvals lands, and stays True for good.
The registry never looks at tokens themselves, only at token ids; when
given a ``token_exists`` lookup it refuses approvals for unminted ids.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .events import EventLog
from .exceptions import AlreadyVerifiedError, AuthorizationError, NotFoundError, ValidationError
from .models import VerificationRecord, VerifierRole
from .ownership import Ownable
from .transaction import Transactional
from .validators import raise_for_findings, validate_identity

logger = logging.getLogger(__name__)

_ROLE_STATUS_FIELD = {
    VerifierRole.BANK: "bank_status",
    VerifierRole.COURT: "court_status",
    VerifierRole.TAX: "tax_status",
}

_ROLE_EVENT = {
    VerifierRole.BANK: "BankVerified",
    VerifierRole.COURT: "CourtVerified",
    VerifierRole.TAX: "TaxVerified",
}


class VerifierRegistry(Ownable, Transactional):
    """Role membership plus per-token approval bits."""

    component = "VerifierRegistry"
    _state_fields = ("_owner", "_members", "_records")

    def __init__(
        self,
        owner: str,
        events: Optional[EventLog] = None,
        token_exists: Optional[Callable[[int], bool]] = None,
    ):
        super().__init__(owner, events if events is not None else EventLog())
        # Without a lookup any positive id is accepted
        self._token_exists = token_exists
        self._members: dict[VerifierRole, set[str]] = {role: set() for role in VerifierRole}
        self._records: dict[int, VerificationRecord] = {}

    # ─── Membership ──────────────────────────────────────────────────

    def add_verifier(self, caller: str, identity: str, role: VerifierRole) -> None:
        self._require_owner(caller, "add verifiers")
        raise_for_findings(validate_identity(identity, "identity"), "add_verifier")
        members = self._members[role]
        if identity in members:
            raise ValidationError(
                f"{identity} is already a {role.name.lower()} verifier",
                details={"identity": identity, "role": role.name},
            )
        members.add(identity)
        self._events.emit(self.component, "VerifierAdded", identity, role=role)

    def remove_verifier(self, caller: str, identity: str, role: VerifierRole) -> None:
        self._require_owner(caller, "remove verifiers")
        raise_for_findings(validate_identity(identity, "identity"), "remove_verifier")
        members = self._members[role]
        if identity not in members:
            raise ValidationError(
                f"{identity} is not a {role.name.lower()} verifier",
                details={"identity": identity, "role": role.name},
            )
        members.discard(identity)
        self._events.emit(self.component, "VerifierRemoved", identity, role=role)

    def add_bank_verifier(self, caller: str, identity: str) -> None:
        self.add_verifier(caller, identity, VerifierRole.BANK)

    def remove_bank_verifier(self, caller: str, identity: str) -> None:
        self.remove_verifier(caller, identity, VerifierRole.BANK)

    def add_court_verifier(self, caller: str, identity: str) -> None:
        self.add_verifier(caller, identity, VerifierRole.COURT)

    def remove_court_verifier(self, caller: str, identity: str) -> None:
        self.remove_verifier(caller, identity, VerifierRole.COURT)

    def add_tax_verifier(self, caller: str, identity: str) -> None:
        self.add_verifier(caller, identity, VerifierRole.TAX)

    def remove_tax_verifier(self, caller: str, identity: str) -> None:
        self.remove_verifier(caller, identity, VerifierRole.TAX)

    def is_verifier(self, role: VerifierRole, identity: str) -> bool:
        return identity in self._members[role]

    # ─── Approvals ───────────────────────────────────────────────────

    def verify_bank_status(self, caller: str, token_id: int) -> VerificationRecord:
        return self._approve(caller, token_id, VerifierRole.BANK)

    def verify_court_status(self, caller: str, token_id: int) -> VerificationRecord:
        return self._approve(caller, token_id, VerifierRole.COURT)

    def verify_tax_status(self, caller: str, token_id: int) -> VerificationRecord:
        return self._approve(caller, token_id, VerifierRole.TAX)

    def verify_status(self, caller: str, token_id: int, role: VerifierRole) -> VerificationRecord:
        return self._approve(caller, token_id, role)

    def is_land_verified(self, token_id: int) -> bool:
        record = self._records.get(token_id)
        return record.is_verified if record else False

    def get_verification(self, token_id: int) -> VerificationRecord:
        record = self._records.get(token_id)
        if record is None:
            return VerificationRecord(token_id=token_id)
        return record.model_copy()

    # ─── Internal Helpers ────────────────────────────────────────────

    def _approve(self, caller: str, token_id: int, role: VerifierRole) -> VerificationRecord:
        if caller not in self._members[role]:
            raise AuthorizationError(
                f"Caller is not a {role.name.lower()} verifier",
                details={"caller": caller, "role": role.name},
            )
        if token_id <= 0:
            raise ValidationError(
                f"Token id must be positive (got {token_id})",
                details={"token_id": token_id},
            )
        if self._token_exists is not None and not self._token_exists(token_id):
            raise NotFoundError(
                f"Token {token_id} does not exist", details={"token_id": token_id}
            )

        existing = self._records.get(token_id) or VerificationRecord(token_id=token_id)
        status_field = _ROLE_STATUS_FIELD[role]
        if getattr(existing, status_field):
            raise AlreadyVerifiedError(
                f"Token {token_id} already has {role.name.lower()} approval",
                details={"token_id": token_id, "role": role.name},
            )

        record = existing.model_copy(update={status_field: True})
        self._records[token_id] = record
        self._events.emit(self.component, _ROLE_EVENT[role], token_id, verifier=caller)

        if record.all_roles_approved and not record.is_verified:
            record.is_verified = True
            self._events.emit(self.component, "LandFullyVerified", token_id)
            logger.info("Token %s fully verified", token_id)

        return record.model_copy()
