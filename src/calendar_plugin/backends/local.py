"""In-memory calendar backend with full calendar and object CRUD."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from ..errors import AlreadyExists, NotFound
from ..flags import ObjectType, Permissions
from .base import Backend, BackendAction, CalendarRecord, ObjectRecord, paginate

logger = logging.getLogger("calendar-plugin")

DEFAULT_COLOR = "#1d2d44"


class LocalBackend(Backend):
    """Calendar backend keeping calendars and objects in process memory.

    Calendars are scoped per user; uris are stored lower-cased so they survive
    the public uri round trip.
    """

    implemented_actions = (
        BackendAction.CREATE_CALENDAR
        | BackendAction.UPDATE_CALENDAR
        | BackendAction.DELETE_CALENDAR
        | BackendAction.CREATE_OBJECT
        | BackendAction.DELETE_OBJECT
    )

    def __init__(self, name: str, config: dict[str, Any] | None = None):
        super().__init__(name, config)
        # user_id -> uri -> calendar
        self._calendars: dict[str, dict[str, CalendarRecord]] = {}
        # (user_id, calendar uri) -> object uri -> object
        self._objects: dict[tuple[str, str], dict[str, ObjectRecord]] = {}

    def _get(self, calendar_uri: str, user_id: str) -> CalendarRecord:
        calendar = self._calendars.get(user_id, {}).get(calendar_uri.lower())
        if calendar is None:
            raise NotFound(f"Calendar '{calendar_uri}' does not exist")
        return calendar

    async def should_cache_objects(self, calendar_uri: str, user_id: str) -> bool:
        self._get(calendar_uri, user_id)
        return bool(self._config.get("cache", False))

    async def find_calendar(self, calendar_uri: str, user_id: str) -> CalendarRecord:
        return dataclasses.replace(self._get(calendar_uri, user_id))

    async def find_calendars(
        self, user_id: str, limit: int | None = None, offset: int | None = None
    ) -> list[CalendarRecord]:
        calendars = list(self._calendars.get(user_id, {}).values())
        return [dataclasses.replace(c) for c in paginate(calendars, limit, offset)]

    async def find_object(self, calendar_uri: str, object_uri: str, user_id: str) -> ObjectRecord:
        self._get(calendar_uri, user_id)
        obj = self._objects.get((user_id, calendar_uri.lower()), {}).get(object_uri)
        if obj is None:
            raise NotFound(f"Object '{object_uri}' does not exist in calendar '{calendar_uri}'")
        return dataclasses.replace(obj)

    async def find_objects(
        self,
        calendar_uri: str,
        user_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[ObjectRecord]:
        self._get(calendar_uri, user_id)
        objects = list(self._objects.get((user_id, calendar_uri.lower()), {}).values())
        return [dataclasses.replace(o) for o in paginate(objects, limit, offset)]

    # -- mutations ---------------------------------------------------------

    async def create_calendar(self, calendar: CalendarRecord) -> CalendarRecord:
        uri = calendar.uri.lower()
        calendars = self._calendars.setdefault(calendar.user_id, {})
        if uri in calendars:
            raise AlreadyExists(f"Calendar '{uri}' already exists")

        defaults = CalendarRecord(
            backend_id=self.name,
            uri=uri,
            owner_id=calendar.user_id,
            display_name=uri,
            color=DEFAULT_COLOR,
            change_tag=0,
            sort_order=0,
            enabled=True,
            components=ObjectType.EVENT | ObjectType.TODO,
            permissions=Permissions.ALL,
        )
        stored = defaults.overlay(calendar)
        stored.backend_id = self.name
        stored.uri = uri
        calendars[uri] = stored
        logger.info("Local calendar created: %s for '%s'", stored.public_uri, stored.user_id)
        return dataclasses.replace(stored)

    async def update_calendar(self, calendar: CalendarRecord) -> CalendarRecord:
        current = self._get(calendar.uri, calendar.user_id)
        stored = dataclasses.replace(calendar, backend_id=self.name, uri=current.uri)
        self._calendars[calendar.user_id][current.uri] = stored
        return dataclasses.replace(stored)

    async def delete_calendar(self, calendar_uri: str, user_id: str) -> None:
        current = self._get(calendar_uri, user_id)
        del self._calendars[user_id][current.uri]
        self._objects.pop((user_id, current.uri), None)
        logger.info("Local calendar deleted: %s-%s for '%s'", self.name, current.uri, user_id)

    async def create_object(self, calendar_uri: str, obj: ObjectRecord, user_id: str) -> ObjectRecord:
        calendar = self._get(calendar_uri, user_id)
        objects = self._objects.setdefault((user_id, calendar.uri), {})
        if obj.uri in objects:
            raise AlreadyExists(f"Object '{obj.uri}' already exists in calendar '{calendar_uri}'")
        stored = dataclasses.replace(
            obj, backend_id=self.name, calendar_uri=calendar.uri, user_id=user_id
        )
        objects[obj.uri] = stored
        self._touch(calendar)
        return dataclasses.replace(stored)

    async def delete_object(self, calendar_uri: str, object_uri: str, user_id: str) -> None:
        calendar = self._get(calendar_uri, user_id)
        objects = self._objects.get((user_id, calendar.uri), {})
        if object_uri not in objects:
            raise NotFound(f"Object '{object_uri}' does not exist in calendar '{calendar_uri}'")
        del objects[object_uri]
        self._touch(calendar)

    @staticmethod
    def _touch(calendar: CalendarRecord) -> None:
        calendar.change_tag = (calendar.change_tag or 0) + 1
