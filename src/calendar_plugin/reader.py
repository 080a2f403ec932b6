"""Read untrusted calendar JSON into a CalendarRecord."""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from .backends.base import CalendarRecord
from .errors import ParseError
from .flags import components_from_json, permissions_from_json, to_int
from .uri import split_uri

COLOR_RE = re.compile(r"#(?:[0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})")

FALSE_STRINGS = {"", "0", "false", "no", "off"}


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in FALSE_STRINGS
    return bool(value)


def is_valid_color(value: Any) -> bool:
    return isinstance(value, str) and COLOR_RE.fullmatch(value) is not None


def _load(data: Any) -> Mapping[str, Any]:
    if isinstance(data, Mapping):
        return data
    if data is None or data == "" or data == b"":
        raise ParseError("Given json string is empty!")
    try:
        decoded = json.loads(data)
    except (TypeError, ValueError):
        raise ParseError("Could not parse given json string!")
    if not isinstance(decoded, Mapping):
        raise ParseError("Given json string is not an object!")
    return decoded


# ---------------------------------------------------------------------------
# Field handlers: (record, value, backend_ids) -> None
# ---------------------------------------------------------------------------

def _display_name(record: CalendarRecord, value: Any, backend_ids: list[str]) -> None:
    record.display_name = "" if value is None else str(value)


def _calendar_uri(record: CalendarRecord, value: Any, backend_ids: list[str]) -> None:
    record.backend_id, record.uri = split_uri(value, backend_ids)


def _color(record: CalendarRecord, value: Any, backend_ids: list[str]) -> None:
    if is_valid_color(value):
        record.color = value


def _change_tag(record: CalendarRecord, value: Any, backend_ids: list[str]) -> None:
    record.change_tag = to_int(value)


def _order(record: CalendarRecord, value: Any, backend_ids: list[str]) -> None:
    record.sort_order = to_int(value)


def _enabled(record: CalendarRecord, value: Any, backend_ids: list[str]) -> None:
    record.enabled = to_bool(value)


def _components(record: CalendarRecord, value: Any, backend_ids: list[str]) -> None:
    record.components = components_from_json(value)


def _cruds(record: CalendarRecord, value: Any, backend_ids: list[str]) -> None:
    record.permissions = permissions_from_json(value)


def _ignore(record: CalendarRecord, value: Any, backend_ids: list[str]) -> None:
    pass


FIELD_HANDLERS: dict[str, Callable[[CalendarRecord, Any, list[str]], None]] = {
    "displayname": _display_name,
    "calendaruri": _calendar_uri,
    "color": _color,
    "ctag": _change_tag,
    "order": _order,
    "enabled": _enabled,
    # user and owner are derived server-side, never taken from the client
    "user": _ignore,
    "owner": _ignore,
    "components": _components,
    # TODO: parse {stdOffset, dstOffset, name} once backends can store client timezones
    "timezone": _ignore,
    "cruds": _cruds,
}


def parse_calendar(data: Any, backend_ids: Iterable[str]) -> CalendarRecord:
    """Parse a JSON object (mapping, str or bytes) into a CalendarRecord.

    Unknown keys are ignored and keys match case-insensitively. The first
    failing field aborts the parse with a ParseError.
    """
    values = _load(data)
    backend_ids = list(backend_ids)
    record = CalendarRecord()

    try:
        for key, value in values.items():
            handler = FIELD_HANDLERS.get(str(key).lower())
            if handler is not None:
                handler(record, value, backend_ids)
    except Exception as e:
        raise ParseError(f'Error: "{e}"') from e

    return record
