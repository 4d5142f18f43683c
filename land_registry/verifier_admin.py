"""
Governance façade over the VerifierRegistry.

Bootstrap contract: the façade may only be built on top of a registry
whose current owner is the initializing identity. The initializer then
hands the registry to the façade (registry.transfer_ownership(initializer,
admin.identity)), after which all membership changes go through here.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Union

from .events import EventLog
from .exceptions import SetupError, ValidationError
from .models import VerifierRole
from .ownership import Ownable
from .transaction import Transactional, atomic
from .verifier_registry import VerifierRegistry

logger = logging.getLogger(__name__)

RoleCode = Union[int, VerifierRole]


def _parse_role(raw: RoleCode, index: int) -> VerifierRole:
    try:
        return VerifierRole(raw)
    except ValueError:
        raise ValidationError(
            f"Unknown verifier role type {raw!r} at position {index} "
            f"(expected 0=BANK, 1=COURT, 2=TAX)",
            details={"index": index, "role_type": raw},
        )


class VerifierAdministration(Ownable, Transactional):
    """Batches verifier membership changes under one governance identity."""

    component = "VerifierAdministration"
    _state_fields = ("_owner",)

    def __init__(
        self,
        registry: VerifierRegistry,
        initializer: str,
        events: Optional[EventLog] = None,
        identity: str = "verifier-administration",
    ):
        if registry.owner != initializer:
            raise SetupError(
                "VerifierRegistry is not owned by the initializing identity",
                details={"registry_owner": registry.owner, "initializer": initializer},
            )
        super().__init__(initializer, events if events is not None else EventLog())
        self.identity = identity
        self._registry = registry

    @property
    def registry(self) -> VerifierRegistry:
        return self._registry

    def batch_add_verifiers(
        self, caller: str, identities: Sequence[str], role_types: Sequence[RoleCode]
    ) -> int:
        """Add every (identity, role) pair or none of them."""
        return self._apply_batch(caller, identities, role_types, add=True)

    def batch_remove_verifiers(
        self, caller: str, identities: Sequence[str], role_types: Sequence[RoleCode]
    ) -> int:
        """Remove every (identity, role) pair or none of them."""
        return self._apply_batch(caller, identities, role_types, add=False)

    def transfer_registry_ownership(self, caller: str, new_owner: str) -> None:
        """Delegate the underlying registry to another governance identity."""
        self._require_owner(caller, "transfer registry ownership")
        self._registry.transfer_ownership(self.identity, new_owner)

    def _apply_batch(
        self,
        caller: str,
        identities: Sequence[str],
        role_types: Sequence[RoleCode],
        add: bool,
    ) -> int:
        action = "add" if add else "remove"
        self._require_owner(caller, f"{action} verifiers")

        if len(identities) != len(role_types):
            raise ValidationError(
                f"Identities ({len(identities)}) and role types "
                f"({len(role_types)}) must have equal length",
                details={"identities": len(identities), "role_types": len(role_types)},
            )
        roles = [_parse_role(raw, i) for i, raw in enumerate(role_types)]

        with atomic(self._registry, self._events):
            for identity, role in zip(identities, roles):
                if add:
                    self._registry.add_verifier(self.identity, identity, role)
                else:
                    self._registry.remove_verifier(self.identity, identity, role)

        logger.info("Batch %s of %d verifier(s) applied", action, len(roles))
        return len(roles)
