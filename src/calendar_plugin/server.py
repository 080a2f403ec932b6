#!/usr/bin/env python3
"""
calendar-plugin: calendar management over pluggable backends.

Runs as an MCP stdio server (default) or as an HTTP API (--http).
Backends: in-memory local store, CalDAV.

Environment variables:
    CALENDAR_CONFIG: path to the YAML config (default: /config/calendar_plugin.yaml)
    CALENDAR_DEBUG: include error messages in HTTP error bodies
"""

import logging
import sys
from typing import Any

from mcp.server.fastmcp import FastMCP

from .business import CalendarBusinessLayer
from .config import AppConfig, load_config
from .errors import CalendarError
from .reader import parse_calendar
from .serializer import SerializationContext, serialize_calendar, serialize_calendars

# MCP stdio servers must NEVER write to stdout; log to stderr only.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("calendar-plugin")


# ---------------------------------------------------------------------------
# Module-level state
# ---------------------------------------------------------------------------

_config: AppConfig = AppConfig()
_business: CalendarBusinessLayer = CalendarBusinessLayer({})


def _configure(config: AppConfig) -> None:
    global _config, _business
    _config = config
    _business = CalendarBusinessLayer.from_config(config)


def _resolve_user(user_id: str) -> str | None:
    return user_id or _config.default_user


def _context(user_id: str) -> SerializationContext:
    return SerializationContext.for_base_url(user_id, _config.base_url, _config.users)


# ---------------------------------------------------------------------------
# MCP Server + Tools
# ---------------------------------------------------------------------------

mcp = FastMCP("calendar-plugin")


@mcp.tool()
async def list_backends() -> dict:
    """List all configured calendar backends.

    Returns name, type and enabled state for each backend.
    """
    if not _config.backends:
        return {"error": "No backends configured"}
    return {
        "backends": [
            {"name": a.name, "type": a.type, "enabled": a.enabled}
            for a in _config.backends.values()
        ]
    }


@mcp.tool()
async def list_calendars(user_id: str = "", limit: int = 0, offset: int = 0) -> dict:
    """List calendars of a user across all backends.

    Args:
        user_id: User whose calendars to list. Empty = configured default user.
        limit: Maximum number of calendars (0 = no limit).
        offset: Number of calendars to skip.
    """
    user = _resolve_user(user_id)
    if not user:
        return {"error": "No user given and no default_user configured"}

    calendars = await _business.find_all(user, limit or None, offset or None)
    return {
        "count": len(calendars),
        "calendars": serialize_calendars(calendars, _context(user)),
    }


@mcp.tool()
async def get_calendar(calendar_uri: str, user_id: str = "") -> dict:
    """Get a single calendar.

    Args:
        calendar_uri: Public calendar URI (e.g. "local-work")
        user_id: Acting user. Empty = configured default user.
    """
    user = _resolve_user(user_id)
    if not user:
        return {"error": "No user given and no default_user configured"}

    try:
        calendar = await _business.find(calendar_uri, user)
        return {"calendar": serialize_calendar(calendar, _context(user))}
    except CalendarError as e:
        return {"error": f"Failed to get calendar: {e}"}


@mcp.tool()
async def create_calendar(calendar: dict[str, Any], user_id: str = "") -> dict:
    """Create a new calendar.

    Args:
        calendar: Calendar JSON object, e.g. {"displayname": "Work", "color": "#ff0000"}
        user_id: Acting user; becomes user and owner of the calendar.
    """
    user = _resolve_user(user_id)
    if not user:
        return {"error": "No user given and no default_user configured"}

    try:
        record = parse_calendar(calendar, _business.backend_ids)
        record.user_id = user
        record.owner_id = user
        created = await _business.create(record, user)
        return {"success": True, "calendar": serialize_calendar(created, _context(user))}
    except CalendarError as e:
        return {"error": f"Failed to create calendar: {e}"}


@mcp.tool()
async def update_calendar(calendar_uri: str, calendar: dict[str, Any], user_id: str = "") -> dict:
    """Update a calendar. Only provided fields are changed.

    Args:
        calendar_uri: Public calendar URI
        calendar: Calendar JSON object with the fields to change
        user_id: Acting user. Empty = configured default user.
    """
    user = _resolve_user(user_id)
    if not user:
        return {"error": "No user given and no default_user configured"}

    try:
        record = parse_calendar(calendar, _business.backend_ids)
        record.user_id = user
        updated = await _business.update(record, calendar_uri, user)
        return {"success": True, "calendar": serialize_calendar(updated, _context(user))}
    except CalendarError as e:
        return {"error": f"Failed to update calendar: {e}"}


@mcp.tool()
async def delete_calendar(calendar_uri: str, user_id: str = "") -> dict:
    """Delete a calendar.

    Args:
        calendar_uri: Public calendar URI
        user_id: Acting user. Empty = configured default user.
    """
    user = _resolve_user(user_id)
    if not user:
        return {"error": "No user given and no default_user configured"}

    try:
        await _business.delete(calendar_uri, user)
        return {"success": True, "message": f"Calendar deleted: {calendar_uri}"}
    except CalendarError as e:
        return {"error": f"Failed to delete calendar: {e}"}


# ---------------------------------------------------------------------------
# HTTP mode
# ---------------------------------------------------------------------------

def _option(name: str, default: str) -> str:
    if name in sys.argv:
        idx = sys.argv.index(name)
        if idx + 1 < len(sys.argv):
            return sys.argv[idx + 1]
    return default


def _run_http() -> None:
    import uvicorn

    from .controller import create_app

    app = create_app(_business, _config, debug=_config.debug)
    host = _option("--host", "127.0.0.1")
    port = int(_option("--port", "8000"))
    logger.info("Serving calendar API on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Entry point for console script and python -m."""
    _configure(load_config())
    logger.info("Loaded %d backend(s): %s", len(_config.backends), list(_config.backends.keys()))

    if "--http" in sys.argv:
        _run_http()
        return

    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
