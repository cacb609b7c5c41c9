"""Unit tests for canonical pair ordering."""

import pytest

from bookmate.core.errors import ErrorKind, InvalidPairError
from bookmate.core.pairs import CanonicalPair, canonical_pair


@pytest.mark.unit
class TestCanonicalPair:
    """Test canonical_pair and the CanonicalPair type."""

    def test_orders_lowest_first(self):
        pair = canonical_pair("a2", "a1")
        assert pair == CanonicalPair("a1", "a2")
        assert pair.lo == "a1"
        assert pair.hi == "a2"

    @pytest.mark.parametrize(
        "a,b",
        [
            ("a1", "a2"),
            ("u-9", "u-10"),
            ("Zed", "alice"),
            ("5b1c0c5e-0000-4000-8000-000000000001", "5b1c0c5e-0000-4000-8000-000000000002"),
        ],
    )
    def test_symmetric(self, a, b):
        assert canonical_pair(a, b) == canonical_pair(b, a)
        assert canonical_pair(a, b).lo < canonical_pair(a, b).hi

    def test_uses_string_order_not_numeric(self):
        """'u-10' sorts before 'u-9' under code point order."""
        assert canonical_pair("u-9", "u-10").lo == "u-10"

    def test_self_pair_rejected(self):
        with pytest.raises(InvalidPairError) as exc_info:
            canonical_pair("a1", "a1")

        assert exc_info.value.kind is ErrorKind.INVALID_PAIR
        assert exc_info.value.context == {"user_id": "a1"}

    def test_lock_key_is_order_independent(self):
        assert canonical_pair("b", "a").lock_key == "a:b"
        assert canonical_pair("a", "b").lock_key == "a:b"

    def test_other_and_contains(self):
        pair = canonical_pair("a1", "a2")

        assert pair.contains("a1")
        assert pair.contains("a2")
        assert not pair.contains("a3")
        assert pair.other("a1") == "a2"
        assert pair.other("a2") == "a1"

        with pytest.raises(ValueError):
            pair.other("a3")

    def test_pair_is_immutable(self):
        pair = canonical_pair("a1", "a2")
        with pytest.raises(AttributeError):
            pair.lo = "z"
