# errorly/services/comments.py
"""Comment tree construction from the flat comment collection."""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Set

from errorly.models import Comment


@dataclass
class CommentNode:
    """A comment and its replies, in collection order."""
    comment: Comment
    depth: int = 0
    children: List["CommentNode"] = field(default_factory=list)


@dataclass
class CommentDepthAnalysis:
    """Summary of a post's comment tree."""
    post_id: int
    max_depth: int
    total_comments: int
    total_replies: int
    orphans: int


def build_comment_tree(comments: Iterable[Comment], post_id: int) -> List[CommentNode]:
    """
    Build the reply forest for one post.

    Args:
        comments: Flat comment collection, in insertion order
        post_id: Post whose comments should be arranged

    Returns:
        Root nodes, each carrying its replies to any depth. Comments whose
        parent is not among this post's comments are promoted to roots. A
        malformed parent chain that loops back on itself is cut where it
        revisits a comment, and comments reachable only through such a loop
        become roots, so every comment of the post appears exactly once.
    """
    selected = [c for c in comments if c.post_id == post_id]
    known_ids = {c.id for c in selected}

    children: Dict[int, List[Comment]] = defaultdict(list)
    roots: List[Comment] = []
    for comment in selected:
        parent_id = comment.parent_comment_id
        if parent_id is None or parent_id == comment.id or parent_id not in known_ids:
            roots.append(comment)
        else:
            children[parent_id].append(comment)

    visited: Set[int] = set()
    forest: List[CommentNode] = []

    def grow(root_comment: Comment) -> CommentNode:
        root = CommentNode(root_comment)
        visited.add(root_comment.id)
        stack = [root]
        while stack:
            node = stack.pop()
            for child in children.get(node.comment.id, ()):
                if child.id in visited:
                    continue
                visited.add(child.id)
                child_node = CommentNode(child, depth=node.depth + 1)
                node.children.append(child_node)
                stack.append(child_node)
        return root

    for comment in roots:
        if comment.id not in visited:
            forest.append(grow(comment))

    # Anything left sits on a parent cycle with no way in from a root
    for comment in selected:
        if comment.id not in visited:
            forest.append(grow(comment))

    return forest


def iter_nodes(forest: Iterable[CommentNode]) -> Iterator[CommentNode]:
    """Pre-order walk over a forest."""
    stack = list(reversed(list(forest)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def count_nodes(forest: Iterable[CommentNode]) -> int:
    return sum(1 for _ in iter_nodes(forest))


def max_depth(forest: Iterable[CommentNode]) -> int:
    """Number of levels in the deepest thread (0 for an empty forest)."""
    return max((node.depth + 1 for node in iter_nodes(forest)), default=0)


def analyze_depth(forest: List[CommentNode], post_id: int) -> CommentDepthAnalysis:
    total = count_nodes(forest)
    orphans = sum(1 for root in forest if root.comment.parent_comment_id is not None)
    return CommentDepthAnalysis(
        post_id=post_id,
        max_depth=max_depth(forest),
        total_comments=total,
        total_replies=total - len(forest),
        orphans=orphans,
    )


def tree_to_dict(forest: Iterable[CommentNode], post_id: Optional[int] = None) -> Dict:
    """
    Nested JSON-ready structure of a comment forest.

    Args:
        forest: Output of build_comment_tree
        post_id: Included in the result when given

    Returns:
        {"post_id": ..., "comments": [{..., "children": [...]}, ...]}
    """
    def build_tree_node(node: CommentNode) -> Dict:
        comment = node.comment
        return {
            "id": comment.id,
            "content": comment.content,
            "score": comment.score,
            "created_at": comment.created_at.isoformat(),
            "user_id": comment.user_id,
            "children": [build_tree_node(child) for child in node.children],
        }

    result: Dict = {"comments": [build_tree_node(root) for root in forest]}
    if post_id is not None:
        result = {"post_id": post_id, **result}
    return result
