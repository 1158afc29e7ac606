# errorly/services/session.py
"""
Board session: view state plus the handlers for every user action.

Each mutating handler sends its request first and touches the store only
after the backend confirms. Failures are caught here, logged, and surfaced
through ViewState.last_error; the previous view persists.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar, Union

from errorly.config import DEFAULT_ORDER
from errorly.errors import BoardError, LocalPrecondition
from errorly.gateway import SyncGateway
from errorly.models import Comment, Post, SortOrder, TargetKind, VoteDirection
from errorly.services.comments import CommentNode, build_comment_tree
from errorly.services.feed import parse_order, tag_universe, visible_posts
from errorly.services.store import EntityStore
from errorly.services.votes import VoteOutcome, VoteReconciler

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _default_order() -> SortOrder:
    try:
        return parse_order(DEFAULT_ORDER)
    except LocalPrecondition:
        logger.warning("Ignoring invalid default order %r", DEFAULT_ORDER)
        return SortOrder.newest


@dataclass
class ViewState:
    """Everything the UI shows that is not an entity."""
    search_term: str = ""
    selected_tags: List[str] = field(default_factory=list)
    order: SortOrder = field(default_factory=_default_order)
    open_post_id: Optional[int] = None
    editing_post_id: Optional[int] = None
    tag_universe: List[str] = field(default_factory=list)
    last_error: Optional[str] = None


class BoardSession:
    """One logical user session against the backend."""

    def __init__(self, gateway: SyncGateway, store: Optional[EntityStore] = None):
        self.gateway = gateway
        self.store = store or EntityStore()
        self.votes = VoteReconciler(self.store, gateway)
        self.view = ViewState()

    async def _run(self, action: str, call: Callable[[], Awaitable[T]]) -> Optional[T]:
        try:
            result = await call()
        except BoardError as e:
            logger.error("Failed to %s: %s", action, e)
            self.view.last_error = f"Failed to {action}: {e}"
            return None
        self.view.last_error = None
        return result

    def _fail_locally(self, action: str, error: LocalPrecondition) -> None:
        logger.warning("Refused to %s: %s", action, error)
        self.view.last_error = f"Failed to {action}: {error}"

    # Loading
    def _apply_posts(self, posts: List[Post]) -> None:
        self.store.replace_all(TargetKind.post, posts)
        self.view.tag_universe = tag_universe(posts)
        # Selections must never point at a post the backend no longer has
        if self.current_post is None:
            self.view.open_post_id = None
        if self.current_edit is None:
            self.view.editing_post_id = None

    def _apply_comments(self, post_id: int, comments: List[Comment]) -> None:
        # Only this post's thread is replaced; a late answer for another post
        # must not wipe the thread that is open now
        self.store.replace_where(TargetKind.comment, lambda c: c.post_id == post_id, comments)

    async def load_posts(self) -> bool:
        async def call():
            self._apply_posts(await self.gateway.list_posts())
            return True
        return bool(await self._run("fetch posts", call))

    async def load_votes(self) -> bool:
        async def call():
            self.store.replace_votes(await self.gateway.list_votes())
            return True
        return bool(await self._run("fetch votes", call))

    async def start(self) -> bool:
        posts_ok = await self.load_posts()
        posts_error = self.view.last_error
        votes_ok = await self.load_votes()
        # A later success must not hide why the posts could not be loaded
        if posts_error is not None:
            self.view.last_error = posts_error
        return posts_ok and votes_ok

    async def _refresh_posts(self) -> None:
        """Re-fetch posts after a failed delete, keeping the original error."""
        try:
            self._apply_posts(await self.gateway.list_posts())
        except BoardError as e:
            logger.warning("Could not refresh posts: %s", e)

    async def _refresh_comments(self, post_id: int) -> None:
        try:
            self._apply_comments(post_id, await self.gateway.list_comments(post_id))
        except BoardError as e:
            logger.warning("Could not refresh comments for post %s: %s", post_id, e)

    # Posts
    async def create_post(self, title: str, content: str, tags: Sequence[str] = ()) -> Optional[Post]:
        async def call():
            if not title.strip():
                raise LocalPrecondition("A post needs a title")
            post = await self.gateway.create_post(title, content, list(tags))
            self.store.insert_first(post)
            return post
        return await self._run("create post", call)

    def begin_edit(self, post_id: int) -> bool:
        if not self.store.contains(TargetKind.post, post_id):
            self._fail_locally("edit post", LocalPrecondition(f"No post {post_id}"))
            return False
        self.view.editing_post_id = post_id
        return True

    def cancel_edit(self) -> None:
        self.view.editing_post_id = None

    async def edit_post(self, post_id: int, title: str, content: str, tags: Sequence[str]) -> Optional[Post]:
        """
        Save an edit; only title, content, tags and last_updated are merged.

        The score is left as the store has it, so a vote confirmed while the
        edit was in flight is not lost.
        """
        async def call():
            if not self.store.contains(TargetKind.post, post_id):
                raise LocalPrecondition(f"No post {post_id}")
            updated = await self.gateway.update_post(post_id, title, content, list(tags))
            self.store.patch(
                TargetKind.post,
                post_id,
                title=updated.title,
                content=updated.content,
                tags=updated.tags,
                last_updated=updated.last_updated,
            )
            if self.view.editing_post_id == post_id:
                self.view.editing_post_id = None
            return self.store.get(TargetKind.post, post_id)
        return await self._run(f"update post {post_id}", call)

    async def delete_post(self, post_id: int) -> bool:
        async def call():
            await self.gateway.delete_post(post_id)
            self.store.remove(TargetKind.post, post_id)
            if self.view.open_post_id == post_id:
                self.view.open_post_id = None
            if self.view.editing_post_id == post_id:
                self.view.editing_post_id = None
            return True

        if await self._run(f"delete post {post_id}", call):
            return True
        await self._refresh_posts()
        return False

    # Open post and its comments
    async def open_post(self, post_id: int) -> bool:
        if not self.store.contains(TargetKind.post, post_id):
            self._fail_locally("open post", LocalPrecondition(f"No post {post_id}"))
            return False
        self.view.open_post_id = post_id
        return await self.load_comments(post_id)

    def close_post(self) -> None:
        self.view.open_post_id = None

    async def load_comments(self, post_id: int) -> bool:
        async def call():
            self._apply_comments(post_id, await self.gateway.list_comments(post_id))
            return True
        return bool(await self._run("fetch comments", call))

    async def add_comment(self, content: str, parent_comment_id: Optional[int] = None) -> Optional[Comment]:
        """Post a top-level comment on the open post, or a reply when a parent is given."""
        action = "create reply" if parent_comment_id is not None else "create comment"

        async def call():
            post_id = self.view.open_post_id
            if post_id is None:
                raise LocalPrecondition("No post is open")
            if not content.strip():
                raise LocalPrecondition("Comment is empty")
            comment = await self.gateway.create_comment(post_id, content.strip(), parent_comment_id)
            if comment.post_id is None:
                comment = comment.model_copy(update={"post_id": post_id})
            self.store.upsert(comment)
            return comment
        return await self._run(action, call)

    async def edit_comment(self, comment_id: int, content: str) -> Optional[Comment]:
        async def call():
            if not self.store.contains(TargetKind.comment, comment_id):
                raise LocalPrecondition(f"No comment {comment_id}")
            if not content.strip():
                raise LocalPrecondition("Comment is empty")
            updated = await self.gateway.update_comment(comment_id, content.strip())
            self.store.patch(
                TargetKind.comment,
                comment_id,
                content=updated.content,
                last_updated=updated.last_updated,
            )
            return self.store.get(TargetKind.comment, comment_id)
        return await self._run(f"update comment {comment_id}", call)

    async def delete_comment(self, comment_id: int) -> bool:
        """Delete one comment. Its replies stay and surface as top-level comments."""
        async def call():
            await self.gateway.delete_comment(comment_id)
            self.store.remove(TargetKind.comment, comment_id)
            return True

        if await self._run(f"delete comment {comment_id}", call):
            return True
        if self.view.open_post_id is not None:
            await self._refresh_comments(self.view.open_post_id)
        return False

    # Votes
    async def cast_vote(
        self, kind: Union[TargetKind, str], target_id: Optional[int], positive: bool
    ) -> Optional[VoteOutcome]:
        async def call():
            if target_id is None:
                raise LocalPrecondition("Nothing selected to vote on")
            try:
                target_kind = TargetKind(kind)
            except ValueError:
                raise LocalPrecondition(f"Cannot vote on {kind!r}")
            return await self.votes.cast_vote(target_kind, target_id, positive)
        return await self._run("vote", call)

    def vote_direction(self, kind: TargetKind, target_id: int) -> VoteDirection:
        return self.store.vote_direction(kind, target_id)

    # Filters
    def set_search(self, term: str) -> None:
        self.view.search_term = term

    def toggle_tag(self, tag: str) -> None:
        if tag in self.view.selected_tags:
            self.view.selected_tags = [t for t in self.view.selected_tags if t != tag]
        else:
            self.view.selected_tags = [*self.view.selected_tags, tag]

    def set_order(self, order: Union[SortOrder, str]) -> bool:
        try:
            self.view.order = parse_order(order)
        except LocalPrecondition as e:
            self._fail_locally("change order", e)
            return False
        return True

    def clear_filters(self) -> None:
        self.view.search_term = ""
        self.view.selected_tags = []

    # Derived views
    @property
    def current_post(self) -> Optional[Post]:
        if self.view.open_post_id is None:
            return None
        return self.store.get(TargetKind.post, self.view.open_post_id)

    @property
    def current_edit(self) -> Optional[Post]:
        if self.view.editing_post_id is None:
            return None
        return self.store.get(TargetKind.post, self.view.editing_post_id)

    def visible_posts(self) -> List[Post]:
        return visible_posts(
            self.store.posts(),
            self.view.search_term,
            self.view.selected_tags,
            self.view.order,
        )

    def comment_tree(self, post_id: Optional[int] = None) -> List[CommentNode]:
        post_id = self.view.open_post_id if post_id is None else post_id
        if post_id is None:
            return []
        return build_comment_tree(self.store.comments(), post_id)
