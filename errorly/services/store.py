# errorly/services/store.py
"""In-memory entity store: the single local source of truth between round trips."""

from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from errorly.models import Comment, Post, TargetKind, VoteDirection, VoteRecord

Entity = Union[Post, Comment]
VoteKey = Tuple[TargetKind, int]


def kind_of(entity: Entity) -> TargetKind:
    return TargetKind.post if isinstance(entity, Post) else TargetKind.comment


class EntityStore:
    """
    Posts, comments and the current user's vote directions, keyed by id.

    Records are pydantic models and are only ever replaced whole, so a reader
    never observes a half-written entity. The store keeps no derived state.
    """

    def __init__(self):
        self._posts: Dict[int, Post] = {}
        self._comments: Dict[int, Comment] = {}
        self._votes: Dict[VoteKey, VoteDirection] = {}

    def _table(self, kind: TargetKind) -> Dict[int, Entity]:
        return self._posts if kind is TargetKind.post else self._comments

    # Reads
    def get(self, kind: TargetKind, entity_id: int) -> Optional[Entity]:
        return self._table(kind).get(entity_id)

    def contains(self, kind: TargetKind, entity_id: int) -> bool:
        return entity_id in self._table(kind)

    def posts(self) -> List[Post]:
        return list(self._posts.values())

    def comments(self) -> List[Comment]:
        return list(self._comments.values())

    # Structural mutations
    def replace_all(self, kind: TargetKind, entities: Iterable[Entity]) -> None:
        self._table(kind).clear()
        self._table(kind).update((e.id, e) for e in entities)

    def replace_where(
        self, kind: TargetKind, predicate: Callable[[Entity], bool], entities: Iterable[Entity]
    ) -> None:
        """Swap out only the records matching predicate; the rest keep their place."""
        table = self._table(kind)
        kept = [(i, e) for i, e in table.items() if not predicate(e)]
        table.clear()
        table.update(kept)
        table.update((e.id, e) for e in entities)

    def upsert(self, entity: Entity) -> None:
        self._table(kind_of(entity))[entity.id] = entity

    def insert_first(self, entity: Entity) -> None:
        """Put a freshly created record ahead of everything already held."""
        table = self._table(kind_of(entity))
        rest = [(i, e) for i, e in table.items() if i != entity.id]
        table.clear()
        table[entity.id] = entity
        table.update(rest)

    def remove(self, kind: TargetKind, entity_id: int) -> bool:
        self._votes.pop((kind, entity_id), None)
        return self._table(kind).pop(entity_id, None) is not None

    # Field-level mutations
    def patch(self, kind: TargetKind, entity_id: int, **fields) -> bool:
        """Replace only the named fields; a missing record is left missing."""
        table = self._table(kind)
        current = table.get(entity_id)
        if current is None:
            return False
        table[entity_id] = current.model_copy(update=fields)
        return True

    def patch_score(self, kind: TargetKind, entity_id: int, score: int) -> bool:
        return self.patch(kind, entity_id, score=score)

    # Vote directions
    def vote_direction(self, kind: TargetKind, entity_id: int) -> VoteDirection:
        return self._votes.get((kind, entity_id), VoteDirection.absent)

    def set_vote(self, kind: TargetKind, entity_id: int, direction: VoteDirection) -> None:
        if direction is VoteDirection.absent:
            self._votes.pop((kind, entity_id), None)
        else:
            self._votes[(kind, entity_id)] = direction

    def replace_votes(self, records: Iterable[VoteRecord]) -> None:
        votes: Dict[VoteKey, VoteDirection] = {}
        for record in records:
            direction = VoteDirection.from_positive(record.positive)
            if record.post_id is not None:
                votes[(TargetKind.post, record.post_id)] = direction
            if record.comment_id is not None:
                votes[(TargetKind.comment, record.comment_id)] = direction
        self._votes = votes
