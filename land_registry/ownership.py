"""Single-owner governance pointer shared by the administrative components."""

from __future__ import annotations

import logging

from .events import EventLog
from .exceptions import AuthorizationError, SetupError, ValidationError
from .validators import is_null_identity

logger = logging.getLogger(__name__)


class Ownable:
    """Holds the current governing identity and checks it on each call.

    Delegation is a plain re-assignment of ``_owner`` through
    transfer_ownership(); nothing else may change it.
    """

    component = "Ownable"

    def __init__(self, owner: str, events: EventLog):
        if is_null_identity(owner):
            raise SetupError(
                f"{self.component} requires a non-null owner",
                details={"owner": owner},
            )
        self._owner = owner
        self._events = events

    @property
    def owner(self) -> str:
        return self._owner

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """Hand governance to ``new_owner``."""
        self._require_owner(caller, "transfer ownership")
        if is_null_identity(new_owner):
            raise ValidationError(
                "New owner must be a non-null identity",
                details={"new_owner": new_owner},
            )
        previous = self._owner
        self._owner = new_owner
        self._events.emit(
            self.component,
            "OwnershipTransferred",
            new_owner,
            previous_owner=previous,
            new_owner=new_owner,
        )

    def _require_owner(self, caller: str, action: str) -> None:
        if caller != self._owner:
            logger.debug("%s: %s denied for %s", self.component, action, caller)
            raise AuthorizationError(
                f"Only the {self.component} owner can {action}",
                details={"caller": caller, "owner": self._owner},
            )
