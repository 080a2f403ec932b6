"""Public calendar URIs: ``<backend>-<uri>``, lower-cased."""

from __future__ import annotations

from collections.abc import Iterable

from .errors import InvalidIdentifier

SEPARATOR = "-"


def compose_uri(backend_id: str, uri: str) -> str:
    """Combine a backend id and a backend-local uri into a public uri."""
    return f"{backend_id}{SEPARATOR}{uri}".lower()


def split_uri(public_uri: str, backend_ids: Iterable[str]) -> tuple[str, str]:
    """Split a public uri back into ``(backend_id, uri)``.

    Both parts may contain the separator, so the known backend ids are tried
    longest first and the first prefix match wins.
    """
    if not isinstance(public_uri, str) or not public_uri:
        raise InvalidIdentifier(f"Invalid calendar URI: {public_uri!r}")

    lowered = public_uri.lower()
    for backend_id in sorted(backend_ids, key=len, reverse=True):
        prefix = f"{backend_id}{SEPARATOR}".lower()
        if lowered.startswith(prefix) and len(lowered) > len(prefix):
            return backend_id, public_uri[len(prefix):]

    raise InvalidIdentifier(f"No backend found for calendar URI '{public_uri}'")
