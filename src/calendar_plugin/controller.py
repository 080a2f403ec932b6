"""
HTTP endpoints for calendar CRUD.

Uses Starlette for HTTP handling; all work is delegated to the business layer.
Every CalendarError becomes a 400 whose body carries the message only in
debug mode.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Awaitable, Callable, Optional

from starlette import status
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from .business import CalendarBusinessLayer
from .config import AppConfig
from .errors import BusinessLayerError, CalendarError
from .reader import parse_calendar
from .serializer import SerializationContext, serialize_calendar, serialize_calendars

logger = logging.getLogger("calendar-plugin")

LIMIT_HEADER = "X-OC-CAL-LIMIT"
OFFSET_HEADER = "X-OC-CAL-OFFSET"
USER_HEADER = "X-OC-CAL-USER"


# ============================================================================
# REQUEST UTILITIES
# ============================================================================


def _business(request: Request) -> CalendarBusinessLayer:
    return request.app.state.business


def _config(request: Request) -> AppConfig:
    return request.app.state.config


def get_user_id(request: Request) -> str:
    """
    Resolve the acting user.

    Host middleware may set request.state.user_id; otherwise the user header
    and finally the configured default user are used.
    """
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        user_id = request.headers.get(USER_HEADER) or _config(request).default_user
    if not user_id:
        raise BusinessLayerError("Missing user")
    return str(user_id)


def _header_int(request: Request, name: str) -> Optional[int]:
    value = request.headers.get(name)
    if value is None:
        return None
    try:
        number = int(value)
    except ValueError:
        return None
    return number if number >= 0 else None


def _context(request: Request, user_id: str) -> SerializationContext:
    users = _config(request).users
    return SerializationContext(
        current_user_id=user_id,
        url_for=lambda public_uri: str(request.url_for("calendar", calendarId=public_uri)),
        display_name_for=lambda uid: users.get(uid, uid),
    )


# ============================================================================
# ERROR HANDLING WRAPPER
# ============================================================================


def api_handler(
    handler: Callable[[Request], Awaitable[Response]]
) -> Callable[[Request], Awaitable[Response]]:
    """Turn CalendarError into a 400 response."""

    @wraps(handler)
    async def wrapper(request: Request) -> Response:
        try:
            return await handler(request)
        except CalendarError as e:
            logger.warning("%s %s failed: %s", request.method, request.url.path, e)
            body = {"message": str(e)} if _config(request).debug else {}
            return JSONResponse(body, status_code=status.HTTP_400_BAD_REQUEST)

    return wrapper


# ============================================================================
# HANDLERS
# ============================================================================


@api_handler
async def calendars_index(request: Request) -> Response:
    user_id = get_user_id(request)
    limit = _header_int(request, LIMIT_HEADER)
    offset = _header_int(request, OFFSET_HEADER)

    calendars = await _business(request).find_all(user_id, limit, offset)
    return JSONResponse(serialize_calendars(calendars, _context(request, user_id)))


@api_handler
async def calendars_show(request: Request) -> Response:
    user_id = get_user_id(request)
    calendar_id = request.path_params["calendarId"]

    calendar = await _business(request).find(calendar_id, user_id)
    return JSONResponse(serialize_calendar(calendar, _context(request, user_id)))


@api_handler
async def calendars_create(request: Request) -> Response:
    user_id = get_user_id(request)
    business = _business(request)

    calendar = parse_calendar(await request.body(), business.backend_ids)
    calendar.user_id = user_id
    calendar.owner_id = user_id

    created = await business.create(calendar, user_id)
    return JSONResponse(
        serialize_calendar(created, _context(request, user_id)),
        status_code=status.HTTP_201_CREATED,
    )


@api_handler
async def calendars_update(request: Request) -> Response:
    user_id = get_user_id(request)
    calendar_id = request.path_params["calendarId"]
    business = _business(request)

    calendar = parse_calendar(await request.body(), business.backend_ids)
    calendar.user_id = user_id

    updated = await business.update(calendar, calendar_id, user_id)
    # 201 rather than 200 is what existing clients expect
    return JSONResponse(
        serialize_calendar(updated, _context(request, user_id)),
        status_code=status.HTTP_201_CREATED,
    )


async def calendars_patch(request: Request) -> Response:
    return Response(status_code=status.HTTP_501_NOT_IMPLEMENTED)


@api_handler
async def calendars_destroy(request: Request) -> Response:
    user_id = get_user_id(request)
    calendar_id = request.path_params["calendarId"]

    await _business(request).delete(calendar_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def calendars_handler(request: Request) -> Response:
    """Dispatch handler for /calendars."""
    if request.method == "POST":
        return await calendars_create(request)
    return await calendars_index(request)


async def calendar_by_id_handler(request: Request) -> Response:
    """
    Dispatch handler for /calendars/{calendarId}
    Routes to appropriate handler based on HTTP method.
    """
    method = request.method
    if method == "PUT":
        return await calendars_update(request)
    elif method == "PATCH":
        return await calendars_patch(request)
    elif method == "DELETE":
        return await calendars_destroy(request)
    return await calendars_show(request)


routes = [
    Route("/calendars", calendars_handler, methods=["GET", "POST"], name="calendars"),
    Route(
        "/calendars/{calendarId}",
        calendar_by_id_handler,
        methods=["GET", "PUT", "PATCH", "DELETE"],
        name="calendar",
    ),
]


def create_app(business: CalendarBusinessLayer, config: AppConfig, debug: bool = False) -> Starlette:
    app = Starlette(debug=debug, routes=routes)
    app.state.business = business
    app.state.config = config
    return app
