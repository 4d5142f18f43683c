"""
Transaction boundary and reentrancy guard.

Components that own mutable state declare which attributes make up that
state. atomic() snapshots every participant on entry and restores all of
them if the block raises, so an operation spanning several components
(fraction mint deducting parcel area, escrow releasing custody) either
fully completes or leaves every record exactly as it was.

Usage:
    with atomic(engine, parcels, events):
        parcels.fractionalize_land(...)
        engine._issue_token(...)
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Iterator, TypeVar

from .exceptions import ReentrancyError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class Transactional:
    """Mixin for components whose state can be snapshotted and restored."""

    _state_fields: tuple[str, ...] = ()

    def snapshot(self) -> dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self._state_fields}

    def restore(self, state: dict[str, Any]) -> None:
        for name, value in state.items():
            setattr(self, name, value)


@contextmanager
def atomic(*participants: Transactional) -> Iterator[None]:
    """Run a block as one unit across all participants."""
    snapshots = [(participant, participant.snapshot()) for participant in participants]
    try:
        yield
    except Exception:
        for participant, state in reversed(snapshots):
            participant.restore(state)
        logger.debug(
            "Transaction rolled back across %s",
            ", ".join(type(p).__name__ for p in participants),
        )
        raise


def non_reentrant(method: F) -> F:
    """Reject nested calls into any guarded method of the same instance.

    The lock is held for the full duration of the call, including any
    outbound value or custody transfer.
    """

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        if getattr(self, "_reentrancy_lock", False):
            raise ReentrancyError(
                f"Reentrant call to {method.__name__} rejected",
                details={"operation": method.__name__},
            )
        self._reentrancy_lock = True
        try:
            return method(self, *args, **kwargs)
        finally:
            self._reentrancy_lock = False

    return wrapper  # type: ignore[return-value]
