import random
from collections import Counter
from pathlib import Path

import pytest

from kitbuilder.sources.base import CategoryResult, sample_path, sanitize_filename, select_random


@pytest.mark.parametrize("size,count,expected", [(10, 3, 3), (2, 5, 2), (4, 4, 4), (0, 3, 0), (5, 0, 0)])
def test_select_random_size(size, count, expected):
    items = list(range(size))
    chosen = select_random(items, count, random.Random(1))
    assert len(chosen) == expected
    assert len(set(chosen)) == expected
    assert set(chosen) <= set(items)


def test_select_random_does_not_mutate_input():
    items = ["a", "b", "c", "d"]
    select_random(items, 2, random.Random(3))
    assert items == ["a", "b", "c", "d"]


def test_select_random_is_uniform():
    # M=5, N=2: each item should be picked in 2/5 of runs
    rng = random.Random(12345)
    counts = Counter()
    for _ in range(3000):
        counts.update(select_random("abcde", 2, rng))
    assert set(counts) == set("abcde")
    for item in "abcde":
        assert 1050 <= counts[item] <= 1350


@pytest.mark.parametrize("name,expected", [
    ("Deep Kick", "Deep Kick"),
    ("kick/808", "kick_808"),
    ("a\\b", "a_b"),
    ("  ", "sample"),
])
def test_sanitize_filename(name, expected):
    assert sanitize_filename(name) == expected


def test_sanitize_filename_truncates():
    assert len(sanitize_filename("x" * 500)) == 200


def test_sample_path():
    assert sample_path(Path("sounds/kick"), "Hit/1", ".mp3") == Path("sounds/kick/Hit_1.mp3")


def test_category_result():
    result = CategoryResult(category="kick", requested=3, selected=3, downloaded=2)
    assert result.ok
    assert result.to_dict() == {
        "category": "kick", "requested": 3, "selected": 3, "downloaded": 2, "skipped": 0, "error": None,
    }
    assert not CategoryResult(category="snare", requested=1, error="boom").ok
