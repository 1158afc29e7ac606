# errorly/services/votes.py
"""Vote reconciliation: turn a user's intent into create / flip / remove."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Tuple

from errorly.errors import LocalPrecondition
from errorly.gateway import SyncGateway
from errorly.models import TargetKind, VoteDirection, VoteOperation
from errorly.services.store import EntityStore

logger = logging.getLogger(__name__)


@dataclass
class VoteOutcome:
    """Result of a confirmed vote round trip."""
    kind: TargetKind
    target_id: int
    operation: VoteOperation
    direction: VoteDirection
    score: int


def decide_vote_operation(current: VoteDirection, requested: VoteDirection) -> VoteOperation:
    """
    Pick the server operation for a requested direction.

    Args:
        current: Direction the user currently holds on the target
        requested: Direction the user just asked for (positive or negative)

    Returns:
        create when nothing is held, delete when the same direction is
        requested again (toggle-off), update when the direction flips
    """
    if requested is VoteDirection.absent:
        raise LocalPrecondition("A vote must be positive or negative")
    if current is VoteDirection.absent:
        return VoteOperation.create
    if current is requested:
        return VoteOperation.delete
    return VoteOperation.update


def resulting_direction(operation: VoteOperation, requested: VoteDirection) -> VoteDirection:
    if operation is VoteOperation.delete:
        return VoteDirection.absent
    return requested


class VoteReconciler:
    """Casts votes through the gateway and applies confirmed results to the store."""

    def __init__(self, store: EntityStore, gateway: SyncGateway):
        self.store = store
        self.gateway = gateway
        # Casts issued and still awaiting an answer, per target; used only to
        # report superseded responses. Entries go once a target is quiet.
        self._issued: Dict[Tuple[TargetKind, int], int] = defaultdict(int)
        self._in_flight: Dict[Tuple[TargetKind, int], int] = defaultdict(int)

    async def cast_vote(self, kind: TargetKind, target_id: int, positive: bool) -> VoteOutcome:
        """
        Cast a vote and reconcile the store with the backend's answer.

        The decision is taken from the store as it is when the cast is issued.
        Nothing is written locally until the backend confirms; on failure the
        error propagates and the store is untouched. Overlapping casts on the
        same target are not serialized: the last response to arrive wins.
        """
        if not self.store.contains(kind, target_id):
            raise LocalPrecondition(f"No {kind.value} {target_id} to vote on")

        requested = VoteDirection.from_positive(positive)
        current = self.store.vote_direction(kind, target_id)
        operation = decide_vote_operation(current, requested)

        key = (kind, target_id)
        self._issued[key] += 1
        self._in_flight[key] += 1
        ticket = self._issued[key]

        try:
            updated = await self.gateway.send_vote(operation, kind, target_id, positive)
        finally:
            latest = self._issued[key]
            self._in_flight[key] -= 1
            if not self._in_flight[key]:
                del self._in_flight[key]
                del self._issued[key]

        if ticket != latest:
            logger.warning(
                "Applying superseded vote response for %s %s (%s, cast %d of %d)",
                kind.value, target_id, operation.value, ticket, latest,
            )

        direction = resulting_direction(operation, requested)
        self.store.patch_score(kind, target_id, updated.score)
        if self.store.contains(kind, target_id):
            self.store.set_vote(kind, target_id, direction)

        logger.debug("Vote %s on %s %s -> %s (score %d)",
                     operation.value, kind.value, target_id, direction.value, updated.score)
        return VoteOutcome(
            kind=kind,
            target_id=target_id,
            operation=operation,
            direction=direction,
            score=updated.score,
        )
