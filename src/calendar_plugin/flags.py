"""Bit flags for supported components and CRUD permissions.

Both sets are stored as plain integers by backends and exposed on the wire as
objects of booleans, e.g. ``{"vevent": true, "vjournal": false, "vtodo": true}``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from enum import IntFlag
from typing import Any, TypeVar

from .errors import ParseError

F = TypeVar("F", bound=IntFlag)


class ObjectType(IntFlag):
    """Calendar object kinds a calendar can hold."""

    EVENT = 1
    JOURNAL = 2
    TODO = 4
    ALL = 7


class Permissions(IntFlag):
    """CRUD permission bits of a calendar."""

    READ = 1
    UPDATE = 2
    CREATE = 4
    DELETE = 8
    SHARE = 16
    ALL = 31


COMPONENT_KEYS: dict[str, ObjectType] = {
    "vevent": ObjectType.EVENT,
    "vjournal": ObjectType.JOURNAL,
    "vtodo": ObjectType.TODO,
}

PERMISSION_KEYS: dict[str, Permissions] = {
    "create": Permissions.CREATE,
    "read": Permissions.READ,
    "update": Permissions.UPDATE,
    "delete": Permissions.DELETE,
    "share": Permissions.SHARE,
}

PERMISSION_CODE_MAX = int(Permissions.ALL)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def to_int(value: Any) -> int:
    """Coerce a loosely typed JSON value to int.

    Strings yield their leading integer (``"12px"`` -> 12) or 0, floats are
    truncated, ``None`` is 0. Containers are rejected.
    """
    if value is None:
        return 0
    if isinstance(value, (bool, int)):
        return int(value)
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else 0
    raise ValueError(f"Cannot convert {type(value).__name__} to integer")


def decode_flags(value: int, flag_type: type[F]) -> set[F]:
    """Return the single-bit members of ``flag_type`` set in ``value``.

    Bits without a member are ignored.
    """
    value = int(value or 0)
    return {
        member for member in flag_type.__members__.values()
        if _is_single_bit(member) and value & member
    }


def encode_flags(flags: Any, flag_type: type[F]) -> F:
    """OR the given flags together into a ``flag_type`` value."""
    result = flag_type(0)
    for flag in flags:
        result |= flag_type(flag)
    return result


def _is_single_bit(member: IntFlag) -> bool:
    value = int(member)
    return value != 0 and value & (value - 1) == 0


def _from_json(data: Any, keys: Mapping[str, F], flag_type: type[F], what: str) -> F:
    if not isinstance(data, Mapping):
        raise ParseError(f"{what} must be an object!")
    # Only literal true sets a flag; "true", 1 and friends do not.
    return encode_flags((flag for key, flag in keys.items() if data.get(key) is True), flag_type)


def components_to_json(value: int | None) -> dict[str, bool]:
    value = int(value or 0)
    return {key: bool(value & flag) for key, flag in COMPONENT_KEYS.items()}


def components_from_json(data: Any) -> ObjectType:
    return _from_json(data, COMPONENT_KEYS, ObjectType, "Components")


def permissions_to_json(value: int | None) -> dict[str, Any]:
    value = int(value or 0)
    result: dict[str, Any] = {"code": value}
    result.update({key: bool(value & flag) for key, flag in PERMISSION_KEYS.items()})
    return result


def permissions_from_json(data: Any) -> Permissions:
    """Build permissions from a ``cruds`` object.

    A ``code`` in ``[0, 31]`` wins outright over the individual flags; an out
    of range code is ignored and the flags are used instead.
    """
    if not isinstance(data, Mapping):
        raise ParseError("Cruds must be an object!")
    if "code" in data:
        code = to_int(data["code"])
        if 0 <= code <= PERMISSION_CODE_MAX:
            return Permissions(code)
    return _from_json(data, PERMISSION_KEYS, Permissions, "Cruds")
