from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from fitspo_feed.ranking.scoring import hotness_score, ranking_key, score_posts
from fitspo_feed.schemas import PostRecord, ScoredPost

from stubs import make_post


def test_score_sums_interactions():
    post = make_post("p1", likes=3, comments=2, shares=1)
    assert hotness_score(post) == 6


def test_score_of_untouched_post_is_zero():
    assert hotness_score(make_post("p1")) == 0


def test_missing_counters_default_to_zero():
    post = PostRecord.model_validate(
        {
            "id": "p1",
            "author_id": "u1",
            "created_at": datetime(2024, 5, 17, tzinfo=timezone.utc),
            "like_count": 4,
            "comment_count": None,
        }
    )
    assert (post.like_count, post.comment_count, post.share_count) == (4, 0, 0)
    assert hotness_score(post) == 4


def test_negative_counter_is_rejected():
    with pytest.raises(ValidationError):
        make_post("p1", likes=-1)


def test_coordinates_must_come_in_pairs():
    with pytest.raises(ValidationError):
        make_post("p1", latitude=40.7)
    post = make_post("p2", latitude=40.7, longitude=-74.0)
    assert post.has_coordinates


def test_naive_created_at_is_utc():
    post = make_post("p1", created_at=datetime(2024, 5, 17, 9, 30))
    assert post.created_at.tzinfo == timezone.utc


def test_ranking_key_breaks_ties_by_time_then_id():
    newer = make_post("b", minutes_ago=0, likes=5)
    older = make_post("a", minutes_ago=10, likes=5)
    twin = make_post("a2", created_at=newer.created_at, likes=5)
    louder = make_post("z", minutes_ago=60, likes=9)

    scored = score_posts([older, twin, newer, louder])
    ordered = [s.post.id for s in sorted(scored, key=ranking_key)]

    # score desc, then newest, then id asc
    assert ordered == ["z", "a2", "b", "a"]


def test_score_posts_uses_injected_scorer():
    post = make_post("p1", likes=1, shares=2)
    [scored] = score_posts([post], scorer=lambda p: p.share_count * 10)
    assert scored == ScoredPost(post, 20)


def test_records_are_immutable():
    post = make_post("p1", likes=1)
    with pytest.raises(ValidationError):
        post.like_count = 5


def test_weather_symbol_and_fahrenheit():
    day = make_post("p1", weather_icon="02d", temp=20.0)
    night = make_post("p2", weather_icon="01n")
    assert day.weather_symbol == "cloud.sun"
    assert night.weather_symbol == "moon"
    assert day.temp_fahrenheit == pytest.approx(68.0)
    assert make_post("p3").weather_symbol is None
    assert make_post("p4", created_at=datetime.now(timezone.utc) - timedelta(days=1)).temp_fahrenheit is None
