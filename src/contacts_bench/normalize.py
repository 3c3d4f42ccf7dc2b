"""Raw contact → canonical ``ContactRecord`` conversion."""

from __future__ import annotations

from contacts_bench.groups import classify
from contacts_bench.models import ContactRecord, DisplayName, RawContact
from contacts_bench.sortkeys import build_sort_key

NO_NAME = "noName"


def _has_text(values: list[str] | None) -> bool:
    return bool(values and values[0] and values[0].strip())


def has_name(contact: RawContact) -> bool:
    """True when the first given or family name has non-whitespace text."""
    return _has_text(contact.given_name) or _has_text(contact.family_name)


def display_name(contact: RawContact) -> DisplayName:
    """Return the contact's name, or a placeholder built from its other fields."""
    if has_name(contact):
        return DisplayName(
            given_name=list(contact.given_name or []),
            family_name=list(contact.family_name) if contact.family_name is not None else None,
        )

    if contact.org:
        placeholder = contact.org[0]
    elif contact.tel:
        placeholder = contact.tel[0].value
    elif contact.email:
        placeholder = contact.email[0].value
    else:
        placeholder = NO_NAME
    return DisplayName(given_name=[placeholder], modified=True)


def normalize(contact: RawContact) -> ContactRecord:
    """Convert *contact* into its canonical stored form. Never raises."""
    display = display_name(contact)
    return ContactRecord(
        id=contact.id,
        display_name=display,
        sort_key=[build_sort_key(contact, display)],
        group=classify(contact),
        org=contact.org[0] if contact.org else None,
    )
