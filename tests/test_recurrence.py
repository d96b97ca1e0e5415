"""
Tests for the weekly recurrence codec.
"""

import pendulum
import pytest

from availability_engine.domain.exceptions import InvalidInput
from availability_engine.domain.recurrence import (
    Weekly,
    decode,
    encode,
    from_rule,
    resolve,
    to_rule,
    weekday_of,
)


class TestEncode:
    """Tests for encode."""

    def test_encode_orders_sunday_first(self):
        assert encode({5, 1, 3}) == "weekly:Mon,Wed,Fri"
        assert encode([6, 0]) == "weekly:Sun,Sat"

    def test_encode_empty_set_raises(self):
        with pytest.raises(InvalidInput):
            encode(set())

    def test_encode_out_of_range_raises(self):
        with pytest.raises(InvalidInput):
            encode({1, 7})


class TestDecode:
    """Tests for decode, which never raises."""

    def test_decode_canonical_token(self):
        assert decode("weekly:Mon,Wed,Fri") == frozenset({1, 3, 5})

    def test_decode_is_case_and_whitespace_tolerant(self):
        assert decode("  WEEKLY: mon , wed ") == frozenset({1, 3})

    def test_decode_skips_unknown_names(self):
        assert decode("weekly:Mon,Funday") == frozenset({1})

    def test_decode_returns_empty_for_missing_or_foreign_tokens(self):
        assert decode(None) == frozenset()
        assert decode("") == frozenset()
        assert decode("daily") == frozenset()
        assert decode(42) == frozenset()

    def test_decode_of_encode_is_identity(self):
        for days in ({0}, {1, 2, 3, 4, 5}, set(range(7))):
            assert decode(encode(days)) == frozenset(days)


class TestRules:
    """Tests for Weekly and the token/rule helpers."""

    def test_weekly_requires_days(self):
        with pytest.raises(InvalidInput):
            Weekly(frozenset())

    def test_weekly_rejects_invalid_day(self):
        with pytest.raises(InvalidInput):
            Weekly.of(1, 9)

    def test_to_rule_and_back(self):
        rule = to_rule("weekly:Tue,Thu")
        assert rule == Weekly.of(2, 4)
        assert from_rule(rule) == "weekly:Tue,Thu"
        assert str(rule) == "weekly:Tue,Thu"

    def test_empty_token_is_one_time(self):
        assert to_rule("weekly:") is None
        assert from_rule(None) is None
        assert resolve(None) == frozenset()

    def test_includes(self):
        rule = Weekly.of(1, 3)
        assert rule.includes(1)
        assert not rule.includes(2)


def test_weekday_of_is_sunday_first():
    """Sunday maps to 0 and Saturday to 6."""
    assert weekday_of(pendulum.date(2025, 3, 9)) == 0   # Sunday
    assert weekday_of(pendulum.date(2025, 3, 10)) == 1  # Monday
    assert weekday_of(pendulum.date(2025, 3, 15)) == 6  # Saturday
