"""Exceptions raised by the calendar plugin."""


class CalendarError(Exception):
    """Base exception for calendar plugin errors."""


class ParseError(CalendarError):
    """Raised when calendar JSON cannot be parsed or validated."""


class InvalidIdentifier(ParseError):
    """Raised when a public calendar URI cannot be split into backend and uri."""


class NotFound(CalendarError):
    """Raised when a backend, calendar or object does not exist."""


class AlreadyExists(CalendarError):
    """Raised when creating a calendar whose uri is already taken."""


class BusinessLayerError(CalendarError):
    """Raised by the business layer; wraps backend and codec failures."""
