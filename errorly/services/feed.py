# errorly/services/feed.py
"""
Feed derivation: search, tag filter and ordering over the post collection.

Everything here is pure. The input collection is copied, never sorted in
place, and ties keep collection order because Python's sort is stable.
"""

from typing import Callable, Dict, Iterable, List, Sequence, Tuple, Union

from errorly.errors import LocalPrecondition
from errorly.models import Post, SortOrder

# order -> (sort key, descending)
_ORDERINGS: Dict[SortOrder, Tuple[Callable[[Post], object], bool]] = {
    SortOrder.newest: (lambda p: p.created_at, True),
    SortOrder.oldest: (lambda p: p.created_at, False),
    SortOrder.popular: (lambda p: p.score, True),
    SortOrder.unpopular: (lambda p: p.score, False),
}


def parse_order(order: Union[SortOrder, str]) -> SortOrder:
    try:
        return SortOrder(order)
    except ValueError:
        choices = ", ".join(o.value for o in SortOrder)
        raise LocalPrecondition(f"Unknown order {order!r} (expected one of: {choices})")


def matches_search(post: Post, search_term: str) -> bool:
    """Case-insensitive substring match against title or content."""
    needle = search_term.lower()
    return needle in post.title.lower() or needle in post.content.lower()


def matches_tags(post: Post, selected_tags: Iterable[str]) -> bool:
    """True when every selected tag is on the post."""
    return all(tag in post.tags for tag in selected_tags)


def filter_posts(posts: Iterable[Post], search_term: str = "", selected_tags: Sequence[str] = ()) -> List[Post]:
    filtered = list(posts)
    if search_term:
        filtered = [p for p in filtered if matches_search(p, search_term)]
    if selected_tags:
        filtered = [p for p in filtered if matches_tags(p, selected_tags)]
    return filtered


def sort_posts(posts: Iterable[Post], order: Union[SortOrder, str] = SortOrder.newest) -> List[Post]:
    key, descending = _ORDERINGS[parse_order(order)]
    return sorted(posts, key=key, reverse=descending)


def visible_posts(
    posts: Iterable[Post],
    search_term: str = "",
    selected_tags: Sequence[str] = (),
    order: Union[SortOrder, str] = SortOrder.newest,
) -> List[Post]:
    """
    Derive the list of posts to show.

    Args:
        posts: Current post collection
        search_term: Substring to look for in title or content; empty matches all
        selected_tags: Tags a post must all carry; empty matches all
        order: newest, oldest, popular or unpopular

    Returns:
        New list, filtered first and then sorted
    """
    order = parse_order(order)
    return sort_posts(filter_posts(posts, search_term, selected_tags), order)


def tag_universe(posts: Iterable[Post]) -> List[str]:
    """All distinct tags, in the order they are first seen."""
    return list(dict.fromkeys(tag for post in posts for tag in post.tags))
