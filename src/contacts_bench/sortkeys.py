"""Ordering strings for contacts.

``build_sort_key`` produces the value stored in ``ContactRecord.sort_key``;
``collation_key`` turns it into the form the store's ordered index compares.
"""

from __future__ import annotations

import unicodedata
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contacts_bench.models import ContactField, DisplayName, RawContact

SENTINEL = "#"

# Code point the fallback sentinel collates as: above every alphabet in the group table.
_SENTINEL_COLLATION = "\U0010fffd"


def to_ascii(value: str) -> str:
    """Fold accents away (``é`` → ``e``); letters without a Latin base are kept."""
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def collation_key(sort_key: str, *, fallback: bool) -> str:
    """Return the comparison form of *sort_key*.

    Only the sentinel closing a *fallback* key (one built from org, phone and
    email) collates after all letters. A ``#`` inside a name keeps its own
    code point, so ``#1 FAN`` still sorts before the nameless contact.
    """
    if fallback and sort_key.endswith(SENTINEL):
        return sort_key[: -len(SENTINEL)] + _SENTINEL_COLLATION
    return sort_key


def _first_value(values: list[str] | None) -> str:
    if values and values[0]:
        return str(values[0]).strip()
    return ""


def _first_field_value(fields: list[ContactField] | None) -> str:
    if fields:
        return fields[0].value.strip()
    return ""


def _finish(value: str) -> str:
    return to_ascii(value).upper().strip()


def name_key(display: DisplayName | RawContact) -> str:
    """Return the folded name part of a sort key, or ``""`` when there is none.

    A synthesized display name (``modified``) is not a name.
    """
    if getattr(display, "modified", None):
        return ""
    # A name made only of combining marks folds to nothing.
    return _finish(_first_value(display.given_name) + _first_value(display.family_name))


def build_sort_key(contact: RawContact, display: DisplayName | RawContact | None = None) -> str:
    """Build the ordering string for *contact*.

    Names come from *display* when given, else from the contact itself.
    Contacts without a name fall through to ``org + tel + email + '#'``.
    """
    named = name_key(contact if display is None else display)
    if named:
        return named

    parts = [
        ",".join(contact.org or []),
        _first_field_value(contact.tel),
        _first_field_value(contact.email),
        SENTINEL,
    ]
    return _finish("".join(parts))
