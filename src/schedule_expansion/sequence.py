"""SequenceAllocator — per-owner, per-kind display numbers.

A number is handed out only after the store has atomically claimed it, so
two callers racing on the same (owner, kind) can never both receive it.
A lost claim means someone else moved the maximum: re-read and try again.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from schedule_expansion.config import ALLOCATION_RETRIES
from schedule_expansion.types import ConcurrencyError, EntityKind, OwnerId

if TYPE_CHECKING:
    from schedule_expansion.store import RecordStore

logger = logging.getLogger(__name__)


class SequenceAllocator:
    """Hands out the next display number for an (owner, kind) pair."""

    def __init__(self, store: RecordStore, max_retries: int = ALLOCATION_RETRIES) -> None:
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")
        self._store = store
        self.max_retries = max_retries

    def next_number(self, owner_id: OwnerId, kind: EntityKind) -> int:
        """Claim and return max(existing) + 1; 1 when nothing exists yet.

        Raises ConcurrencyError when every attempt loses its claim.
        """
        for attempt in range(1, self.max_retries + 1):
            candidate = self._store.find_max_display_number(owner_id, kind) + 1
            if self._store.claim_display_number(owner_id, kind, candidate):
                logger.debug(
                    "Allocated %s number %d for owner %r (attempt %d)",
                    kind.value, candidate, owner_id, attempt,
                )
                return candidate
            logger.debug(
                "Lost claim on %s number %d for owner %r (attempt %d/%d)",
                kind.value, candidate, owner_id, attempt, self.max_retries,
            )

        logger.warning(
            "Giving up allocating a %s number for owner %r after %d attempts",
            kind.value, owner_id, self.max_retries,
        )
        raise ConcurrencyError(owner_id, kind, self.max_retries)
