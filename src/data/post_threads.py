"""
Post threading for channel views.

Turns the flat post collection of a ``PostThread`` into (root, replies) groups
ordered by the server-declared ``order`` list. Everything here is a pure
function of its inputs: groups are recomputed on every post-set change.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from functools import cmp_to_key
from typing import NamedTuple

from models import Post, PostThread, User

logger = logging.getLogger(__name__)

SYSTEM_POST_PREFIX = "system_"
SYSTEM_ROLE = "system"


class ThreadGroup(NamedTuple):
    root: Post
    children: list[Post]


def ids_order_sorting(order: list[str]) -> Callable[[str, str], int]:
    """Comparator over post ids driven by the position in ``order``.

    ``order`` is newest-first, so a strictly greater index sorts earlier:
    ``compare(a, b) < 0`` iff ``index(a) > index(b)``. Ids absent from
    ``order`` get index -1 and therefore sort after every listed id.
    """
    index = {pid: i for i, pid in reversed(list(enumerate(order)))}

    def compare(a: str, b: str) -> int:
        ia = index.get(a, -1)
        ib = index.get(b, -1)
        if ia > ib:
            return -1
        if ia < ib:
            return 1
        return 0

    return compare


def _by_time(post: Post) -> tuple[int, str]:
    return (post.create_at, post.id)


def split_posts(posts: Iterable[Post]) -> tuple[list[Post], list[Post]]:
    """Partition posts into (roots, replies)."""
    roots: list[Post] = []
    replies: list[Post] = []
    for post in posts:
        (roots if post.is_root else replies).append(post)
    return roots, replies


def _grouped_roots(thread: PostThread) -> tuple[list[Post], dict[str, list[Post]]]:
    """Roots sorted oldest first, plus replies bucketed by root id."""
    missing = thread.missing_ids()
    if missing:
        logger.warning(
            "Post order references %d unknown post(s): %s",
            len(missing),
            ", ".join(missing[:5]),
        )

    roots, replies = split_posts(thread.posts.values())

    children: dict[str, list[Post]] = {root.id: [] for root in roots}
    orphans = 0
    for reply in sorted(replies, key=_by_time):
        bucket = children.get(reply.root_id)
        if bucket is None:
            orphans += 1
            continue
        bucket.append(reply)
    if orphans:
        logger.debug("Skipped %d reply(ies) without a loaded root", orphans)

    return sorted(roots, key=_by_time), children


def group_threads(thread: PostThread | None) -> list[ThreadGroup]:
    """Group ``thread`` into (root, children) pairs in ``order`` sequence.

    Groups follow the relative position of each root id in ``thread.order``
    (newest first). Roots missing from the order are appended, oldest first.
    Replies are sorted by ``create_at`` ascending; replies whose root is not
    in the window are left out.
    """
    if thread is None:
        return []
    roots, children = _grouped_roots(thread)
    position = {pid: i for i, pid in reversed(list(enumerate(thread.order)))}
    tail = len(thread.order)
    ordered = sorted(roots, key=lambda p: position.get(p.id, tail))
    return [ThreadGroup(root, children[root.id]) for root in ordered]


def reading_order(thread: PostThread | None) -> list[ThreadGroup]:
    """Groups sorted with :func:`ids_order_sorting`, oldest thread first.

    This is the transcript order a channel view renders top to bottom.
    Roots missing from the order still come last.
    """
    if thread is None:
        return []
    roots, children = _grouped_roots(thread)
    compare = ids_order_sorting(thread.order)
    by_order = cmp_to_key(lambda a, b: compare(a.id, b.id))
    return [ThreadGroup(root, children[root.id]) for root in sorted(roots, key=by_order)]


def orphan_replies(thread: PostThread) -> list[Post]:
    """Replies whose ``root_id`` does not match any root in the window."""
    root_ids = {p.id for p in thread.posts.values() if p.is_root}
    return sorted(
        (p for p in thread.posts.values() if not p.is_root and p.root_id not in root_ids),
        key=_by_time,
    )


def is_system_post(post: Post, users: Mapping[str, User]) -> bool:
    """A post is a system post when its type has the system prefix and its
    author holds any ``system*`` role (``system_user``, ``system_admin``...)."""
    author = users.get(post.user_id)
    if author is None:
        return False
    return post.type.startswith(SYSTEM_POST_PREFIX) and SYSTEM_ROLE in author.roles


def tag_system_posts(thread: PostThread, users: Mapping[str, User]) -> PostThread:
    """Return ``thread`` with ``is_system`` set on every post.

    Posts whose author is not in the directory keep their current flag.
    """
    tagged = {}
    for pid, post in thread.posts.items():
        if post.user_id not in users:
            tagged[pid] = post
            continue
        flag = is_system_post(post, users)
        if post.is_system != flag:
            post = post.model_copy(update={"is_system": flag})
        tagged[pid] = post
    return thread.model_copy(update={"posts": tagged})
