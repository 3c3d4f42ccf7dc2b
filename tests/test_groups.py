"""Tests for contacts_bench.groups — bucket table and classification."""

from __future__ import annotations

import pytest

from contacts_bench.groups import (
    FAVORITES_GROUP,
    UNDEFINED_GROUP,
    classify,
    group_order,
    group_rank,
)
from contacts_bench.models import RawContact

pytestmark = pytest.mark.unit


def _raw(**fields) -> RawContact:
    fields.setdefault("id", "c-1")
    return RawContact.model_validate(fields)


class TestGroupOrder:
    def test_sentinel_buckets_bracket_the_alphabets(self):
        order = group_order()
        assert order[FAVORITES_GROUP] == 0
        assert order["A"] == 1
        assert order["Z"] == 26
        assert order["\u0391"] == 27  # Greek alpha
        assert order["Ω"] == 50
        assert order["\u0410"] == 51  # Cyrillic a
        assert order["Я"] == 86
        assert order[UNDEFINED_GROUP] == 87
        assert max(order.values()) == order[UNDEFINED_GROUP]

    def test_serbian_letters_present(self):
        order = group_order()
        for letter in "ЂЈЉЊЋЏ":
            assert letter in order

    def test_table_is_shared_and_read_only(self):
        order = group_order()
        assert group_order() is order
        with pytest.raises(TypeError):
            order["?"] = 99  # type: ignore[index]

    def test_rank_sorts_buckets(self):
        labels = [UNDEFINED_GROUP, "Я", "B", None, FAVORITES_GROUP, "Ω", "A"]
        ranked = sorted(labels, key=group_rank)
        assert ranked[:5] == [FAVORITES_GROUP, "A", "B", "Ω", "Я"]
        assert set(ranked[5:]) == {UNDEFINED_GROUP, None}

    def test_unknown_label_ranks_as_undefined(self):
        assert group_rank("?") == group_rank(UNDEFINED_GROUP)


class TestClassify:
    @pytest.mark.parametrize(
        ("family", "expected"),
        [
            ("zeta", "Z"),
            ("Zeta", "Z"),
            ("ωμέγα", "Ω"),
            ("иванов", "И"),
            ("ђорђевић", "Ђ"),
        ],
    )
    def test_first_letter_bucket(self, family, expected):
        assert classify(_raw(familyName=[family])) == expected

    def test_missing_family_name(self):
        assert classify(_raw(givenName=["Ada"])) is None

    def test_empty_family_name(self):
        assert classify(_raw(familyName=[""])) is None

    def test_character_outside_table(self):
        assert classify(_raw(familyName=["Ñandú"])) is None
        assert classify(_raw(familyName=["42nd Street"])) is None
        assert classify(_raw(familyName=["ßeta"])) is None

    def test_same_first_letter_same_group(self):
        assert classify(_raw(familyName=["Adams"])) == classify(_raw(familyName=["apple"]))

    def test_result_is_table_key(self):
        for family in ("Berg", "Δέλτα", "Юг", "!", "é"):
            group = classify(_raw(familyName=[family]))
            assert group is None or (len(group) == 1 and group in group_order())
