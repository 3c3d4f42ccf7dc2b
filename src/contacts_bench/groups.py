"""Alphabetic bucket classification across Latin, Greek and Cyrillic scripts."""

from __future__ import annotations

import functools
from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contacts_bench.models import RawContact

FAVORITES_GROUP = "favorites"
UNDEFINED_GROUP = "und"

_LATIN = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_GREEK = "ΑΒΓΔΕΖΗΘΙΚΛΜΝΞΟΠΡΣΤΥΦΧΨΩ"
# Russian plus the Serbian additions (Ђ Ј Љ Њ Ћ Џ).
_CYRILLIC = "АБВГДЂЕЁЖЗИЙЈКЛЉМНЊОПРСТЋУФХЦЧЏШЩЭЮЯ"


@functools.cache
def group_order() -> Mapping[str, int]:
    """Return the shared bucket → rank table.

    ``favorites`` ranks 0, each letter ranks by its position in the
    concatenated alphabets starting at 1, and ``und`` ranks last.
    """
    letters = _LATIN + _GREEK + _CYRILLIC
    order: dict[str, int] = {FAVORITES_GROUP: 0}
    for index, letter in enumerate(letters, start=1):
        order[letter] = index
    order[UNDEFINED_GROUP] = len(letters) + 1
    return MappingProxyType(order)


def group_rank(label: str | None) -> int:
    """Rank a bucket label for display ordering; unknown labels rank as ``und``."""
    order = group_order()
    if label is None:
        return order[UNDEFINED_GROUP]
    return order.get(label, order[UNDEFINED_GROUP])


def classify(contact: RawContact) -> str | None:
    """Return the bucket letter for *contact* from the first family name.

    A missing family name, or one starting with a character outside the
    ordering table, yields ``None``.
    """
    family = contact.family_name
    value = family[0] if family else None
    if not value:
        return None
    letter = value[0].upper()
    if len(letter) != 1 or letter not in group_order():
        return None
    return letter
