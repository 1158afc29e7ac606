# errorly/cli.py
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

import typer

from errorly.config import DEFAULT_ORDER, LOG_LEVEL
from errorly.gateway import SyncGateway
from errorly.models import Post, TargetKind, VoteDirection
from errorly.services.comments import CommentNode, analyze_depth, iter_nodes
from errorly.services.session import BoardSession

app = typer.Typer(help="Errorly discussion board client")

T = TypeVar("T")

_ARROWS = {
    VoteDirection.positive: "▲",
    VoteDirection.negative: "▼",
    VoteDirection.absent: " ",
}


@app.callback()
def main(
    log_level: str = typer.Option(LOG_LEVEL, "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)"),
):
    """Browse, post, comment and vote on Errorly."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_gateway() -> SyncGateway:
    return SyncGateway()


def _run(flow: Callable[[BoardSession], Awaitable[T]]) -> T:
    async def runner() -> T:
        async with build_gateway() as gateway:
            return await flow(BoardSession(gateway))
    return asyncio.run(runner())


def _require(session: BoardSession, ok: object) -> None:
    if not ok:
        typer.echo(f"❌ {session.view.last_error or 'Operation failed'}", err=True)
        raise typer.Exit(1)


def _echo_post_line(session: BoardSession, post: Post) -> None:
    arrow = _ARROWS[session.vote_direction(TargetKind.post, post.id)]
    tags = " ".join(f"[{t}]" for t in post.tags)
    typer.echo(f"{arrow} {post.score:>5}  #{post.id:<6} {post.title}  {tags}".rstrip())


def _echo_thread(session: BoardSession, forest: List[CommentNode]) -> None:
    for node in iter_nodes(forest):
        comment = node.comment
        arrow = _ARROWS[session.vote_direction(TargetKind.comment, comment.id)]
        indent = "  " * node.depth
        typer.echo(f"{indent}{arrow} {comment.score:>3}  #{comment.id} {comment.user_id}: {comment.content}")


@app.command("posts")
def posts_cmd(
    search: str = typer.Option("", "--search", "-s", help="Case-insensitive text to look for"),
    tag: List[str] = typer.Option([], "--tag", "-t", help="Only posts carrying every given tag"),
    order: str = typer.Option(DEFAULT_ORDER, "--order", "-o", help="newest, oldest, popular or unpopular"),
):
    """List posts after search, tag filter and ordering."""
    async def flow(session: BoardSession):
        _require(session, await session.start())
        session.set_search(search)
        for t in tag:
            session.toggle_tag(t)
        _require(session, session.set_order(order))
        posts = session.visible_posts()
        if not posts:
            typer.echo("No posts match")
            return
        typer.echo(f"\n📋 {len(posts)} post(s), {session.view.order.value} first:")
        typer.echo("─" * 60)
        for post in posts:
            _echo_post_line(session, post)

    _run(flow)


@app.command("tags")
def tags_cmd():
    """List every tag in use."""
    async def flow(session: BoardSession):
        _require(session, await session.load_posts())
        if not session.view.tag_universe:
            typer.echo("No tags yet")
            return
        for t in session.view.tag_universe:
            typer.echo(t)

    _run(flow)


@app.command("show")
def show_cmd(post_id: int = typer.Argument(..., help="Post to open", min=1)):
    """Show a post and its comment thread."""
    async def flow(session: BoardSession):
        _require(session, await session.start())
        _require(session, await session.open_post(post_id))
        post = session.current_post

        typer.echo(f"\n#{post.id} {post.title}  (score {post.score})")
        if post.tags:
            typer.echo("Tags: " + ", ".join(post.tags))
        typer.echo("─" * 60)
        typer.echo(post.content)

        forest = session.comment_tree()
        analysis = analyze_depth(forest, post_id)
        typer.echo("─" * 60)
        if analysis.total_comments == 0:
            typer.echo("💬 No comments yet")
            return
        typer.echo(
            f"💬 {analysis.total_comments} comment(s), {analysis.total_replies} repl(ies), "
            f"{analysis.max_depth} level(s)"
        )
        _echo_thread(session, forest)

    _run(flow)


@app.command("new-post")
def new_post_cmd(
    title: str = typer.Argument(..., help="Post title"),
    content: str = typer.Argument(..., help="Post body"),
    tag: List[str] = typer.Option([], "--tag", "-t", help="Tag to attach (repeatable)"),
):
    """Create a post."""
    async def flow(session: BoardSession):
        post = await session.create_post(title, content, tag)
        _require(session, post)
        typer.echo(f"✓ Created post #{post.id}")

    _run(flow)


@app.command("edit-post")
def edit_post_cmd(
    post_id: int = typer.Argument(..., min=1),
    title: Optional[str] = typer.Option(None, "--title", help="New title"),
    content: Optional[str] = typer.Option(None, "--content", help="New body"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="Replace tags (repeatable)"),
    clear_tags: bool = typer.Option(False, "--clear-tags", help="Remove every tag from the post"),
):
    """Edit a post's title, content or tags."""
    async def flow(session: BoardSession):
        _require(session, await session.load_posts())
        _require(session, session.begin_edit(post_id))
        current = session.current_edit
        post = await session.edit_post(
            post_id,
            title if title is not None else current.title,
            content if content is not None else current.content,
            [] if clear_tags else (tag if tag else current.tags),
        )
        _require(session, post)
        typer.echo(f"✓ Updated post #{post.id}")

    _run(flow)


@app.command("delete-post")
def delete_post_cmd(post_id: int = typer.Argument(..., min=1)):
    """Delete a post."""
    async def flow(session: BoardSession):
        _require(session, await session.delete_post(post_id))
        typer.echo(f"✓ Deleted post #{post_id}")

    _run(flow)


@app.command("comment")
def comment_cmd(
    post_id: int = typer.Argument(..., min=1),
    content: str = typer.Argument(..., help="Comment text"),
    reply_to: Optional[int] = typer.Option(None, "--reply-to", "-r", help="Comment to reply to"),
):
    """Comment on a post, or reply to a comment."""
    async def flow(session: BoardSession):
        _require(session, await session.load_posts())
        _require(session, await session.open_post(post_id))
        comment = await session.add_comment(content, parent_comment_id=reply_to)
        _require(session, comment)
        typer.echo(f"✓ Added comment #{comment.id}")

    _run(flow)


@app.command("edit-comment")
def edit_comment_cmd(
    post_id: int = typer.Argument(..., min=1),
    comment_id: int = typer.Argument(..., min=1),
    content: str = typer.Argument(..., help="New comment text"),
):
    """Edit one of your comments."""
    async def flow(session: BoardSession):
        _require(session, await session.load_posts())
        _require(session, await session.open_post(post_id))
        _require(session, await session.edit_comment(comment_id, content))
        typer.echo(f"✓ Updated comment #{comment_id}")

    _run(flow)


@app.command("delete-comment")
def delete_comment_cmd(
    post_id: int = typer.Argument(..., min=1),
    comment_id: int = typer.Argument(..., min=1),
):
    """Delete a comment; its replies stay on the post."""
    async def flow(session: BoardSession):
        _require(session, await session.load_posts())
        _require(session, await session.open_post(post_id))
        _require(session, await session.delete_comment(comment_id))
        typer.echo(f"✓ Deleted comment #{comment_id}")

    _run(flow)


@app.command("vote")
def vote_cmd(
    kind: TargetKind = typer.Argument(..., help="post or comment"),
    target_id: int = typer.Argument(..., min=1),
    up: bool = typer.Option(True, "--up/--down", help="Vote direction"),
    post_id: Optional[int] = typer.Option(None, "--post", "-p", help="Post the comment belongs to"),
):
    """Vote on a post or comment; repeating the same vote removes it."""
    if kind is TargetKind.comment and post_id is None:
        typer.echo("❌ --post is required when voting on a comment", err=True)
        raise typer.Exit(1)

    async def flow(session: BoardSession):
        _require(session, await session.start())
        if kind is TargetKind.comment:
            _require(session, await session.open_post(post_id))
        outcome = await session.cast_vote(kind, target_id, up)
        _require(session, outcome)
        typer.echo(
            f"✓ {outcome.operation.value} vote on {kind.value} #{target_id}: "
            f"{_ARROWS[outcome.direction]} {outcome.direction.value} (score {outcome.score})"
        )

    _run(flow)


if __name__ == "__main__":
    app()
