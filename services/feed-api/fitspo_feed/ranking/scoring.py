"""
Hotness scoring.

score = likes + comments + shares

No weighting and no time decay: the hot feed only ever looks at today's
posts, so recency is handled by the eligibility window rather than the
score. The formula is a policy; every consumer takes a Scorer argument and
defaults to hotness_score.
"""
from typing import Callable, Iterable

from fitspo_feed.schemas import PostRecord, ScoredPost

Scorer = Callable[[PostRecord], int]


def hotness_score(post: PostRecord) -> int:
    return post.like_count + post.comment_count + post.share_count


def score_posts(posts: Iterable[PostRecord], scorer: Scorer = hotness_score) -> list[ScoredPost]:
    return [ScoredPost(post, scorer(post)) for post in posts]


def ranking_key(scored: ScoredPost) -> tuple:
    """Strict total order: score desc, newest first, then id asc."""
    post = scored.post
    return (-scored.score, -post.created_at.timestamp(), post.id)
