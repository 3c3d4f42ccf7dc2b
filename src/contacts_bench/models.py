"""Contact data shapes shared by the normalizer, the store and the pipeline.

Raw contacts arrive in the source directory's camelCase wire form; the
canonical ``ContactRecord`` is persisted in the same camelCase form.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contacts_bench.sortkeys import collation_key, name_key

SortField = Literal["givenName", "familyName"]
SortOrder = Literal["ascending", "descending"]


class ContactField(BaseModel):
    """One typed value of a multi-valued field (phone number, email address)."""

    model_config = ConfigDict(extra="ignore")

    value: str = ""
    type: list[str] | None = None


class RawContact(BaseModel):
    """A contact as yielded by the native directory.

    Every field except ``id`` may be absent. ``tel`` and ``email`` accept either
    ``{"value": ...}`` objects or bare strings.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(min_length=1)
    given_name: list[str] | None = Field(default=None, alias="givenName")
    family_name: list[str] | None = Field(default=None, alias="familyName")
    org: list[str] | None = None
    tel: list[ContactField] | None = None
    email: list[ContactField] | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("given_name", "family_name", "org", mode="before")
    @classmethod
    def _coerce_string_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        if isinstance(value, list):
            return [
                item if isinstance(item, str) else str(item) for item in value if item is not None
            ]
        return value

    @field_validator("tel", "email", mode="before")
    @classmethod
    def _coerce_field_list(cls, value: Any) -> Any:
        if isinstance(value, str | dict):
            value = [value]
        if isinstance(value, list):
            return [{"value": item} if isinstance(item, str) else item for item in value]
        return value


class DisplayName(BaseModel):
    """Name shown for a contact; ``modified`` marks a synthesized placeholder."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    given_name: list[str] = Field(default_factory=list, alias="givenName")
    family_name: list[str] | None = Field(default=None, alias="familyName")
    modified: bool | None = None


class ContactRecord(BaseModel):
    """Canonical contact as persisted in the indexed store."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(min_length=1)
    display_name: DisplayName = Field(alias="displayName")
    sort_key: list[str] = Field(alias="sortKey", min_length=1, max_length=1)
    group: str | None = None
    org: str | None = None

    @property
    def order_string(self) -> str:
        return self.sort_key[0]

    @property
    def order_key(self) -> str:
        """Form of ``sortKey[0]`` the ordered index compares."""
        return collation_key(self.order_string, fallback=not name_key(self.display_name))

    def to_document(self) -> dict[str, Any]:
        """Serialize to the stored camelCase document."""
        document = self.model_dump(by_alias=True, mode="json")
        display = document["displayName"]
        for optional in ("familyName", "modified"):
            if display.get(optional) is None:
                display.pop(optional, None)
        return document


class SortHint(BaseModel):
    """Enumeration order requested from the native source."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    sort_by: SortField = Field(default="givenName", alias="sortBy")
    sort_order: SortOrder = Field(default="ascending", alias="sortOrder")


class MigrationReport(BaseModel):
    """Outcome of one migration run."""

    model_config = ConfigDict(extra="forbid")

    count: int
    elapsed_ms: float


class ScanReport(BaseModel):
    """Timing of one full traversal."""

    model_config = ConfigDict(extra="forbid")

    count: int
    first_result_ms: float | None = None
    total_ms: float
