"""Calendar business layer: picks the backend by id and runs calendar CRUD."""

from __future__ import annotations

import logging
import re
import uuid

from .backends.base import BackendAction, CalendarBackend, CalendarRecord, Unsupported, paginate
from .config import AppConfig, BackendAccount
from .errors import BusinessLayerError, CalendarError
from .uri import split_uri

logger = logging.getLogger("calendar-plugin")


def _init_backend(account: BackendAccount) -> CalendarBackend:
    """Create backend instance for a backend account."""
    if account.type == "local":
        from .backends.local import LocalBackend
        return LocalBackend(account.name, account.config)
    elif account.type == "caldav":
        from .backends.caldav_backend import CalDAVBackend
        return CalDAVBackend(account.name, account.config)
    else:
        raise ValueError(f"Unknown backend type: {account.type}")


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or uuid.uuid4().hex


class CalendarBusinessLayer:
    """Calendar operations over all configured backends.

    Backend and codec failures are re-raised as BusinessLayerError.
    """

    def __init__(self, accounts: dict[str, BackendAccount], default_backend: str | None = None):
        self._accounts = accounts
        self._backends: dict[str, CalendarBackend] = {}
        self.default_backend = default_backend or next(iter(accounts), None)

    @classmethod
    def from_config(cls, config: AppConfig) -> CalendarBusinessLayer:
        return cls(config.backends, config.default_backend)

    def _get_backend(self, backend_id: str) -> CalendarBackend | None:
        """Get backend by id. Lazy-initializes on first access."""
        account = self._accounts.get(backend_id)
        if account is None or not account.enabled:
            return None
        if backend_id not in self._backends:
            self._backends[backend_id] = _init_backend(account)
        backend = self._backends[backend_id]
        return backend if backend.can_be_enabled() else None

    @property
    def backend_ids(self) -> list[str]:
        return [name for name, account in self._accounts.items() if account.enabled]

    def backend(self, backend_id: str) -> CalendarBackend:
        backend = self._get_backend(backend_id)
        if backend is None:
            raise BusinessLayerError(f"Backend '{backend_id}' is not available")
        return backend

    def _resolve(self, public_uri: str) -> tuple[CalendarBackend, str]:
        try:
            backend_id, uri = split_uri(public_uri, self.backend_ids)
        except CalendarError as e:
            raise BusinessLayerError(str(e)) from e
        return self.backend(backend_id), uri

    @staticmethod
    def _require(backend: CalendarBackend, action: BackendAction) -> None:
        if isinstance(backend.supports_actions(action), Unsupported):
            raise BusinessLayerError(f"Backend '{backend.name}' does not support {action.name}")

    async def find_all(
        self, user_id: str, limit: int | None = None, offset: int | None = None
    ) -> list[CalendarRecord]:
        """All calendars of ``user_id`` across backends, in config order.

        A failing backend is skipped so the others still answer.
        """
        calendars: list[CalendarRecord] = []
        for backend_id in self.backend_ids:
            backend = self._get_backend(backend_id)
            if backend is None:
                continue
            try:
                calendars.extend(await backend.find_calendars(user_id))
            except Exception as e:
                logger.warning("Failed to fetch calendars from '%s': %s", backend_id, e)
        return paginate(calendars, limit, offset)

    async def find(self, public_uri: str, user_id: str) -> CalendarRecord:
        backend, uri = self._resolve(public_uri)
        try:
            return await backend.find_calendar(uri, user_id)
        except Exception as e:
            raise BusinessLayerError(str(e)) from e

    async def create(self, calendar: CalendarRecord, user_id: str) -> CalendarRecord:
        backend_id = calendar.backend_id or self.default_backend
        if backend_id is None:
            raise BusinessLayerError("No backend configured")
        backend = self.backend(backend_id)
        self._require(backend, BackendAction.CREATE_CALENDAR)

        uri = calendar.uri or slugify(calendar.display_name or "")
        new = calendar.overlay(CalendarRecord(backend_id=backend_id, uri=uri, user_id=user_id))
        if new.owner_id is None:
            new.owner_id = user_id
        try:
            return await backend.create_calendar(new)
        except Exception as e:
            raise BusinessLayerError(str(e)) from e

    async def update(self, calendar: CalendarRecord, public_uri: str, user_id: str) -> CalendarRecord:
        """Apply the supplied fields of ``calendar`` to the stored calendar."""
        backend, uri = self._resolve(public_uri)
        if calendar.public_uri is not None and calendar.public_uri != public_uri.lower():
            raise BusinessLayerError(
                f"calendarURI '{calendar.public_uri}' does not match '{public_uri.lower()}'"
            )
        self._require(backend, BackendAction.UPDATE_CALENDAR)

        try:
            current = await backend.find_calendar(uri, user_id)
            updated = current.overlay(calendar)
            updated.backend_id, updated.uri, updated.user_id = current.backend_id, current.uri, user_id
            return await backend.update_calendar(updated)
        except Exception as e:
            raise BusinessLayerError(str(e)) from e

    async def delete(self, public_uri: str, user_id: str) -> None:
        backend, uri = self._resolve(public_uri)
        self._require(backend, BackendAction.DELETE_CALENDAR)
        try:
            await backend.delete_calendar(uri, user_id)
        except Exception as e:
            raise BusinessLayerError(str(e)) from e
        logger.info("Calendar deleted: %s (user '%s')", public_uri, user_id)
