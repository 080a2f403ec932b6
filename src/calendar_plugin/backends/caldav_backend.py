"""CalDAV backend (Nextcloud, ownCloud, Radicale, etc.). Read-only."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any
from urllib.parse import unquote

from ..errors import NotFound
from ..flags import ObjectType, Permissions
from .base import Backend, CalendarRecord, ObjectRecord, paginate

logger = logging.getLogger("calendar-plugin")

COMPONENT_NAMES = {
    "VEVENT": ObjectType.EVENT,
    "VJOURNAL": ObjectType.JOURNAL,
    "VTODO": ObjectType.TODO,
}


def _last_segment(url: Any) -> str:
    return unquote(str(url).rstrip("/").rsplit("/", 1)[-1])


class CalDAVBackend(Backend):
    """Calendar backend exposing the calendars of one CalDAV principal.

    If ``user_id`` is configured, only that user sees the calendars.
    """

    def __init__(self, name: str, config: dict[str, Any]):
        super().__init__(name, config)
        self._principal = None  # Lazy init

    def _get_principal(self):
        """Lazy-initialize CalDAV client and principal."""
        if self._principal is not None:
            return self._principal

        import caldav

        username = os.environ.get(self._config["username_env"], "")
        password = os.environ.get(self._config["password_env"], "")
        if not username or not password:
            raise ValueError(
                f"Backend '{self.name}': CalDAV credentials not set "
                f"({self._config['username_env']}, {self._config['password_env']})"
            )

        url = self._config["url"]
        client = caldav.DAVClient(url=url, username=username, password=password)
        self._principal = client.principal()

        logger.info("CalDAV connected: %s → %s", self.name, url)
        return self._principal

    def _visible_to(self, user_id: str) -> bool:
        owner = self._config.get("user_id")
        return owner is None or str(owner) == user_id

    def _find_remote_calendar(self, calendar_uri: str, user_id: str):
        if self._visible_to(user_id):
            for cal in self._get_principal().calendars():
                if _last_segment(cal.url).lower() == calendar_uri.lower():
                    return cal
        raise NotFound(f"Calendar '{calendar_uri}' does not exist")

    def _to_record(self, cal: Any, user_id: str) -> CalendarRecord:
        components = ObjectType(0)
        try:
            for name in cal.get_supported_components():
                components |= COMPONENT_NAMES.get(str(name).upper(), ObjectType(0))
        except Exception as e:
            # Servers without supported-calendar-component-set accept everything
            logger.debug("No component set for %s: %s", cal.url, e)
            components = ObjectType.ALL

        uri = _last_segment(cal.url)
        owner = self._config.get("user_id")
        return CalendarRecord(
            backend_id=self.name,
            uri=uri,
            user_id=user_id,
            owner_id=str(owner) if owner is not None else user_id,
            display_name=cal.name or uri,
            color=self._config.get("color"),
            change_tag=0,
            sort_order=0,
            enabled=True,
            components=components,
            permissions=Permissions.READ,
        )

    def _to_object(self, obj: Any, calendar_uri: str, user_id: str) -> ObjectRecord:
        data = obj.data or ""
        component = ObjectType.EVENT
        for name, flag in COMPONENT_NAMES.items():
            if f"BEGIN:{name}" in data:
                component = flag
                break
        return ObjectRecord(
            backend_id=self.name,
            calendar_uri=calendar_uri,
            uri=_last_segment(obj.url),
            user_id=user_id,
            etag=getattr(obj, "etag", None),
            component=component,
            data=data,
        )

    def _find_calendars_sync(self, user_id: str) -> list[CalendarRecord]:
        if not self._visible_to(user_id):
            return []
        return [self._to_record(cal, user_id) for cal in self._get_principal().calendars()]

    def _find_calendar_sync(self, calendar_uri: str, user_id: str) -> CalendarRecord:
        return self._to_record(self._find_remote_calendar(calendar_uri, user_id), user_id)

    def _find_objects_sync(self, calendar_uri: str, user_id: str) -> list[ObjectRecord]:
        cal = self._find_remote_calendar(calendar_uri, user_id)
        remote = list(cal.events()) + list(cal.todos()) + list(cal.journals())
        return [self._to_object(obj, calendar_uri, user_id) for obj in remote]

    def _find_object_sync(self, calendar_uri: str, object_uri: str, user_id: str) -> ObjectRecord:
        from caldav.lib.error import NotFoundError

        cal = self._find_remote_calendar(calendar_uri, user_id)
        try:
            obj = cal.object_by_uid(object_uri)
        except NotFoundError:
            raise NotFound(f"Object '{object_uri}' does not exist in calendar '{calendar_uri}'")
        return self._to_object(obj, calendar_uri, user_id)

    async def should_cache_objects(self, calendar_uri: str, user_id: str) -> bool:
        await self.find_calendar(calendar_uri, user_id)
        return bool(self._config.get("cache", False))

    async def find_calendar(self, calendar_uri: str, user_id: str) -> CalendarRecord:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._find_calendar_sync, calendar_uri, user_id)

    async def find_calendars(
        self, user_id: str, limit: int | None = None, offset: int | None = None
    ) -> list[CalendarRecord]:
        loop = asyncio.get_event_loop()
        calendars = await loop.run_in_executor(None, self._find_calendars_sync, user_id)
        return paginate(calendars, limit, offset)

    async def find_object(self, calendar_uri: str, object_uri: str, user_id: str) -> ObjectRecord:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            None, self._find_object_sync, calendar_uri, object_uri, user_id
        )

    async def find_objects(
        self,
        calendar_uri: str,
        user_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[ObjectRecord]:
        loop = asyncio.get_event_loop()
        objects = await loop.run_in_executor(None, self._find_objects_sync, calendar_uri, user_id)
        return paginate(objects, limit, offset)

    def can_be_enabled(self) -> bool:
        return bool(self._config.get("url"))
