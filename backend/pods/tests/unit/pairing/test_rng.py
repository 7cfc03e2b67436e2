from collections import Counter

import pytest

from pods.pairing import rng


class TestShuffle:
    def test_shuffle_keeps_every_item(self):
        items = list(range(20))
        rng.shuffle(items)
        assert sorted(items) == list(range(20))

    def test_shuffled_leaves_input_untouched(self):
        items = ("a", "b", "c", "d")
        result = rng.shuffled(items)

        assert items == ("a", "b", "c", "d")
        assert sorted(result) == ["a", "b", "c", "d"]

    def test_shuffle_of_empty_and_single_item(self):
        empty: list[int] = []
        single = [1]
        rng.shuffle(empty)
        rng.shuffle(single)

        assert empty == []
        assert single == [1]

    def test_every_position_reachable(self):
        first_items = Counter(rng.shuffled(["a", "b", "c"])[0] for _ in range(300))
        assert set(first_items) == {"a", "b", "c"}


class TestDraws:
    def test_uniform_in_range(self):
        assert all(0.0 <= rng.uniform(2.5) < 2.5 for _ in range(100))

    def test_coin_flip_returns_both_sides(self):
        assert {rng.coin_flip() for _ in range(200)} == {True, False}

    def test_choice_picks_a_member(self):
        assert rng.choice(["x", "y"]) in {"x", "y"}

    def test_choice_rejects_empty_sequence(self):
        with pytest.raises(ValueError, match="empty sequence"):
            rng.choice([])
