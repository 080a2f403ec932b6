"""Base types and protocol for calendar backends."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import IntFlag
from typing import Protocol, Union, runtime_checkable

from ..flags import ObjectType, Permissions
from ..uri import compose_uri


class BackendAction(IntFlag):
    """Optional operations a backend may implement."""

    CREATE_CALENDAR = 1
    UPDATE_CALENDAR = 2
    DELETE_CALENDAR = 4
    MERGE_CALENDAR = 8
    CREATE_OBJECT = 16
    UPDATE_OBJECT = 32
    DELETE_OBJECT = 64
    FIND_IN_PERIOD = 128
    FIND_OBJECTS_BY_TYPE = 256
    FIND_IN_PERIOD_BY_TYPE = 512
    SEARCH_BY_PROPERTIES = 1024


@dataclass(frozen=True)
class Supported:
    """All requested actions are implemented."""

    level: BackendAction


@dataclass(frozen=True)
class Unsupported:
    """At least one requested action is missing; ``missing`` names them."""

    missing: BackendAction


Capability = Union[Supported, Unsupported]


@dataclass
class Timezone:
    std_offset: int
    dst_offset: int
    name: str


@dataclass
class CalendarRecord:
    """Unified calendar representation.

    Fields left as ``None`` were not supplied; ``overlay`` relies on that.
    """

    backend_id: str | None = None
    uri: str | None = None
    user_id: str | None = None
    owner_id: str | None = None
    display_name: str | None = None
    color: str | None = None
    change_tag: int | None = None
    sort_order: int | None = None
    enabled: bool | None = None
    components: ObjectType | None = None
    permissions: Permissions | None = None
    timezone: Timezone | None = None

    @property
    def public_uri(self) -> str | None:
        if self.backend_id is None or self.uri is None:
            return None
        return compose_uri(self.backend_id, self.uri)

    def overlay(self, changes: CalendarRecord) -> CalendarRecord:
        """Return a copy of this record with the supplied fields of ``changes`` applied."""
        supplied = {
            f.name: getattr(changes, f.name)
            for f in dataclasses.fields(changes)
            if getattr(changes, f.name) is not None
        }
        return dataclasses.replace(self, **supplied)


@dataclass
class ObjectRecord:
    """A calendar object (event, journal or todo) as raw iCalendar data."""

    backend_id: str
    calendar_uri: str
    uri: str
    user_id: str | None = None
    etag: str | None = None
    component: ObjectType = ObjectType.EVENT
    data: str = ""


@runtime_checkable
class CalendarBackend(Protocol):
    """Protocol that all calendar backends must satisfy."""

    name: str

    def supports_actions(self, actions: BackendAction) -> Capability: ...

    def should_cache_calendars(self, user_id: str) -> bool: ...

    async def should_cache_objects(self, calendar_uri: str, user_id: str) -> bool: ...

    async def find_calendar(self, calendar_uri: str, user_id: str) -> CalendarRecord: ...

    async def find_calendars(
        self, user_id: str, limit: int | None = None, offset: int | None = None
    ) -> list[CalendarRecord]: ...

    async def find_object(self, calendar_uri: str, object_uri: str, user_id: str) -> ObjectRecord: ...

    async def find_objects(
        self,
        calendar_uri: str,
        user_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[ObjectRecord]: ...

    def can_be_enabled(self) -> bool: ...


class Backend:
    """Shared behaviour for concrete backends.

    Subclasses list the optional operations they implement in
    ``implemented_actions``.
    """

    implemented_actions = BackendAction(0)

    def __init__(self, name: str, config: dict | None = None):
        self.name = name
        self._config = config or {}

    def supports_actions(self, actions: BackendAction) -> Capability:
        missing = BackendAction(int(actions) & ~int(self.implemented_actions))
        if missing:
            return Unsupported(missing)
        return Supported(BackendAction(actions))

    def should_cache_calendars(self, user_id: str) -> bool:
        return bool(self._config.get("cache", False))

    def can_be_enabled(self) -> bool:
        return True


def paginate(items: list, limit: int | None = None, offset: int | None = None) -> list:
    # Negative limit or offset counts as absent
    start = max(offset or 0, 0)
    if limit is None or limit < 0:
        return items[start:]
    return items[start:start + limit]
