"""Canonical JSON representation of calendars.

Example output::

    {
      "calendarURI": "local-work",
      "url": "https://cloud.example.com/calendars/local-work",
      "user": {"userid": "developer42", "displayname": "Developer 42"},
      "owner": {"userid": "developer42", "displayname": "Developer 42"},
      "displayname": "Work",
      "ctag": 0,
      "color": "#000000",
      "order": 0,
      "components": {"vevent": true, "vjournal": false, "vtodo": true},
      "timezone": null,
      "enabled": true,
      "cruds": {"code": 31, "create": true, "read": true, "update": true,
                "delete": true, "share": true}
    }
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .backends.base import CalendarRecord, Timezone
from .flags import components_to_json, permissions_to_json, to_int


@dataclass
class SerializationContext:
    """Per-request collaborators the serializer needs.

    ``url_for`` maps a public calendar uri to the absolute url of its read
    endpoint; ``display_name_for`` resolves a user id to a display name.
    """

    current_user_id: str
    url_for: Callable[[str], str]
    display_name_for: Callable[[str], str] = field(default=lambda user_id: user_id)

    @classmethod
    def for_base_url(
        cls, current_user_id: str, base_url: str, users: Mapping[str, str] | None = None
    ) -> SerializationContext:
        users = users or {}
        base = base_url.rstrip("/")
        return cls(
            current_user_id=current_user_id,
            url_for=lambda public_uri: f"{base}/calendars/{public_uri}",
            display_name_for=lambda user_id: users.get(user_id, user_id),
        )


def _user_info(user_id: str | None, context: SerializationContext) -> dict[str, str]:
    if user_id is None:
        user_id = context.current_user_id
    return {"userid": user_id, "displayname": context.display_name_for(user_id)}


def _timezone(timezone: Timezone | None) -> dict[str, Any] | None:
    if timezone is None:
        return None
    return {
        "stdOffset": timezone.std_offset,
        "dstOffset": timezone.dst_offset,
        "name": timezone.name,
    }


def serialize_calendar(record: CalendarRecord, context: SerializationContext) -> dict[str, Any]:
    """Convert a CalendarRecord to its JSON-friendly dict."""
    public_uri = record.public_uri
    return {
        "calendarURI": public_uri,
        "url": context.url_for(public_uri) if public_uri else None,
        "user": _user_info(record.user_id, context),
        "owner": _user_info(record.owner_id, context),
        "displayname": record.display_name,
        "ctag": to_int(record.change_tag),
        "color": record.color,
        "order": to_int(record.sort_order),
        "components": components_to_json(record.components),
        "timezone": _timezone(record.timezone),
        "enabled": bool(record.enabled),
        "cruds": permissions_to_json(record.permissions),
    }


def serialize_calendars(
    records: Iterable[CalendarRecord], context: SerializationContext
) -> list[dict[str, Any]]:
    return [serialize_calendar(record, context) for record in records]
