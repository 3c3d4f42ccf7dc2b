"""Native contact source contract and the bundled implementations."""

from __future__ import annotations

import abc
import asyncio
import json
import logging
from collections.abc import AsyncIterator, Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from contacts_bench.errors import SourceEnumerationError
from contacts_bench.models import RawContact, SortHint

logger = logging.getLogger(__name__)


class ContactSource(abc.ABC):
    """Read-only directory that yields raw contacts one at a time."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Stable source name used in logs."""
        ...

    @abc.abstractmethod
    def enumerate(self, sort_hint: SortHint | None = None) -> AsyncIterator[RawContact]:
        """Yield every contact, ordered per *sort_hint* when the source supports it.

        Exhaustion ends the iteration. A failure raises
        ``SourceEnumerationError``.
        """
        ...


def _sort_value(contact: RawContact, field: str) -> tuple[bool, str]:
    values = contact.given_name if field == "givenName" else contact.family_name
    first = values[0].strip().casefold() if values and values[0] else ""
    # Contacts without the field go last.
    return (first == "", first)


def order_contacts(contacts: Iterable[RawContact], sort_hint: SortHint | None) -> list[RawContact]:
    """Order *contacts* the way the native directory honours a sort hint."""
    hint = sort_hint or SortHint()
    ordered = sorted(contacts, key=lambda contact: _sort_value(contact, hint.sort_by))
    if hint.sort_order == "descending":
        ordered.reverse()
    return ordered


class StaticContactSource(ContactSource):
    """Source over an in-memory list of contacts."""

    def __init__(self, contacts: Iterable[RawContact | dict[str, Any]], *, name: str = "static"):
        self._contacts = [
            item if isinstance(item, RawContact) else RawContact.model_validate(item)
            for item in contacts
        ]
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    async def enumerate(self, sort_hint: SortHint | None = None) -> AsyncIterator[RawContact]:
        for contact in order_contacts(self._contacts, sort_hint):
            # Each pull is a suspension point, as with a native cursor.
            await asyncio.sleep(0)
            yield contact


class JsonFileContactSource(ContactSource):
    """Source reading a JSON array, or JSON Lines, of raw contacts from disk."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def name(self) -> str:
        return f"json:{self._path.name}"

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> list[RawContact]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SourceEnumerationError(f"Cannot read contacts file {self._path}: {exc}") from exc

        try:
            stripped = text.lstrip()
            if stripped.startswith("["):
                payload = json.loads(text)
            else:
                payload = [json.loads(line) for line in text.splitlines() if line.strip()]
        except json.JSONDecodeError as exc:
            raise SourceEnumerationError(
                f"Contacts file {self._path} is not valid JSON: {exc}"
            ) from exc

        if not isinstance(payload, list):
            raise SourceEnumerationError(f"Contacts file {self._path} must hold a JSON array")

        contacts: list[RawContact] = []
        for position, item in enumerate(payload):
            try:
                contacts.append(RawContact.model_validate(item))
            except ValidationError as exc:
                raise SourceEnumerationError(
                    f"Contact #{position} in {self._path} is invalid: {exc}"
                ) from exc
        logger.debug("Loaded %d contacts from %s", len(contacts), self._path)
        return contacts

    async def enumerate(self, sort_hint: SortHint | None = None) -> AsyncIterator[RawContact]:
        contacts = await asyncio.to_thread(self._load)
        for contact in order_contacts(contacts, sort_hint):
            await asyncio.sleep(0)
            yield contact
