"""calendar-plugin: calendar CRUD over pluggable backends."""

__version__ = "0.1.0"
