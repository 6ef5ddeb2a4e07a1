import math

import pytest

from ozonator.core.config import Settings
from ozonator.core.utils import InvalidId, ValidId, chunked, clean_text, parse_external_id, valid_ids


@pytest.mark.parametrize("raw, expected", [
    (42, 42),
    ("42", 42),
    (" 7 ", 7),
    (12.0, 12),
])
def test_parse_external_id_accepts_numbers_and_digit_strings(raw, expected):
    assert parse_external_id(raw) == ValidId(expected)


@pytest.mark.parametrize("raw", [None, True, False, 0, -5, 1.5, math.nan, math.inf, "", "abc", "12a", {}, []])
def test_parse_external_id_rejects_junk(raw):
    assert isinstance(parse_external_id(raw), InvalidId)


def test_valid_ids_drops_invalid_and_keeps_first_seen_order():
    assert valid_ids(["3", 1, None, 3, "x", 2.0, 1]) == [3, 1, 2]


def test_chunked_splits_into_fixed_sizes():
    assert list(chunked([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]
    assert list(chunked([], 3)) == []
    with pytest.raises(ValueError):
        list(chunked([1], 0))


def test_clean_text():
    assert clean_text("  a ") == "a"
    assert clean_text("   ") is None
    assert clean_text(12) == "12"
    assert clean_text({"a": 1}) is None


@pytest.mark.parametrize("raw, expected", [
    (None, 30),
    ("abc", 30),
    (0, 30),
    (-3, 30),
    (45, 45),
    ("90", 90),
    (10000, 3650),
])
def test_log_retention_days_is_normalized(raw, expected):
    kwargs = {} if raw is None else {"LOG_RETENTION_DAYS": raw}
    assert Settings(**kwargs).LOG_RETENTION_DAYS == expected
