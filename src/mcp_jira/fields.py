"""Field name <-> field id directory for a Jira instance.

Jira addresses fields by opaque ids (``summary``, ``customfield_10042``)
while people know them by display name ("Story Points"). The directory
fetches ``/rest/api/2/field`` once, keeps both projections, and
translates caller payloads in either direction. Translation misses are
never errors: an unknown key is passed through unchanged so already
resolved ids and meta-fields such as ``project`` or ``issuetype`` survive.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, ConfigDict

logger = get_logger(__name__)

UNKNOWN = "Unknown"


class UnknownFieldError(LookupError):
    """A field name is not known to the server, even after a refresh."""

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Unknown field {field_name}")


class FieldDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str = UNKNOWN
    item_type: str = UNKNOWN

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> FieldDescriptor:
        schema = record.get("schema") or {}
        return cls(
            id=record["id"],
            name=record["name"],
            type=schema.get("type", UNKNOWN),
            item_type=schema.get("items", UNKNOWN),
        )


# --- name-or-id resolution ---


@dataclass(frozen=True)
class Resolved:
    """The key was found; ``value`` is what it maps to."""

    value: str


@dataclass(frozen=True)
class PassThrough:
    """The key was not found; ``value`` is the key itself."""

    value: str


def resolve(mapping: Mapping[str, str], key: str) -> Resolved | PassThrough:
    if key in mapping:
        return Resolved(mapping[key])
    return PassThrough(key)


# --- directory ---


class FieldDirectory:
    """Instance-owned cache of the server's field list.

    ``fetch`` is an async callable returning the raw body of the field
    listing endpoint. The directory starts unpopulated; an empty listing
    is a valid populated state.
    """

    def __init__(self, fetch: Callable[[], Awaitable[Any]]):
        self._fetch = fetch
        self._by_name: dict[str, FieldDescriptor] | None = None
        self._by_id: dict[str, FieldDescriptor] | None = None
        self._pending: asyncio.Future | None = None

    @property
    def populated(self) -> bool:
        return self._by_name is not None

    @property
    def by_name(self) -> Mapping[str, FieldDescriptor]:
        return MappingProxyType(self._by_name or {})

    @property
    def by_id(self) -> Mapping[str, FieldDescriptor]:
        return MappingProxyType(self._by_id or {})

    def __len__(self) -> int:
        return len(self._by_name or {})

    async def populate(self, force: bool = False) -> FieldDirectory:
        """Load the field list unless it is cached and ``force`` is false.

        Unpopulated and forced callers share a single in-flight refresh.
        Readers of a populated directory keep using the current snapshot
        while a refresh runs. A failed refresh propagates and leaves the
        previous snapshot in place.
        """
        if self.populated and not force:
            return self

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._refresh())
            self._pending.add_done_callback(self._refresh_done)

        await asyncio.shield(self._pending)
        return self

    def _refresh_done(self, future: asyncio.Future) -> None:
        if self._pending is future:
            self._pending = None
        # Mark the exception retrieved when every awaiter was cancelled
        if not future.cancelled():
            future.exception()

    async def _refresh(self) -> None:
        data = await self._fetch()

        by_name: dict[str, FieldDescriptor] = {}
        by_id: dict[str, FieldDescriptor] = {}
        if isinstance(data, list):
            for record in data:
                field = FieldDescriptor.from_record(record)
                by_name[field.name] = field
                by_id[field.id] = field
        else:
            logger.debug("Field listing was not a list (%s); directory is empty", type(data).__name__)

        self._by_name, self._by_id = by_name, by_id
        logger.debug("Field directory refreshed with %d fields", len(by_name))

    # --- lookups ---

    def name_to_id(self, name: str) -> str | None:
        field = self.by_name.get(name)
        return field.id if field is not None else None

    def id_to_name(self, field_id: str) -> str | None:
        field = self.by_id.get(field_id)
        return field.name if field is not None else None

    def get(self, name: str) -> FieldDescriptor | None:
        return self.by_name.get(name)

    async def require(self, name: str) -> FieldDescriptor:
        """Return the descriptor for ``name``, refreshing once on a miss."""
        await self.populate()
        field = self.get(name)
        if field is None:
            await self.populate(force=True)
            field = self.get(name)
        if field is None:
            raise UnknownFieldError(name)
        return field

    # --- payload translation ---

    async def to_ids(
        self,
        fields: Mapping[str, Any],
        wrap: Callable[[Any], Any] | None = None,
    ) -> dict[str, Any]:
        """Re-key a name -> value mapping by field id."""
        await self.populate()
        ids = {name: field.id for name, field in self.by_name.items()}
        return {
            resolve(ids, name).value: wrap(value) if wrap is not None else value
            for name, value in fields.items()
        }

    async def to_names(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Re-key an id -> value mapping by display name."""
        await self.populate()
        names = {field_id: field.name for field_id, field in self.by_id.items()}
        return {resolve(names, field_id).value: value for field_id, value in fields.items()}
