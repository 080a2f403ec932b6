"""Tests for component and permission bit flags."""

from itertools import combinations

import pytest

from calendar_plugin.errors import ParseError
from calendar_plugin.flags import (
    ObjectType,
    Permissions,
    components_from_json,
    components_to_json,
    decode_flags,
    encode_flags,
    permissions_from_json,
    permissions_to_json,
    to_int,
)

COMPONENTS = [ObjectType.EVENT, ObjectType.JOURNAL, ObjectType.TODO]
PERMISSIONS = [
    Permissions.CREATE,
    Permissions.READ,
    Permissions.UPDATE,
    Permissions.DELETE,
    Permissions.SHARE,
]


def _subsets(items):
    for size in range(len(items) + 1):
        yield from (set(c) for c in combinations(items, size))


# ---------------------------------------------------------------------------
# decode / encode
# ---------------------------------------------------------------------------

class TestDecodeEncode:
    def test_component_subsets_survive(self):
        for subset in _subsets(COMPONENTS):
            assert decode_flags(encode_flags(subset, ObjectType), ObjectType) == subset

    def test_permission_subsets_survive(self):
        for subset in _subsets(PERMISSIONS):
            assert decode_flags(encode_flags(subset, Permissions), Permissions) == subset

    def test_unknown_bits_ignored(self):
        assert decode_flags(64 | 1, ObjectType) == {ObjectType.EVENT}

    def test_decode_none(self):
        assert decode_flags(None, Permissions) == set()

    def test_all_aliases_not_reported(self):
        assert decode_flags(Permissions.ALL, Permissions) == set(PERMISSIONS)


# ---------------------------------------------------------------------------
# Components JSON
# ---------------------------------------------------------------------------

class TestComponentsJson:
    def test_event_and_todo(self):
        value = components_from_json({"vevent": True, "vtodo": True})
        assert value == ObjectType.EVENT | ObjectType.TODO
        assert not value & ObjectType.JOURNAL

    def test_only_literal_true_counts(self):
        value = components_from_json({"vevent": "true", "vjournal": 1, "vtodo": True})
        assert value == ObjectType.TODO

    def test_missing_keys_default_false(self):
        assert components_from_json({}) == ObjectType(0)

    def test_not_a_mapping(self):
        with pytest.raises(ParseError, match="Components must be an object"):
            components_from_json(["vevent"])

    def test_to_json(self):
        assert components_to_json(ObjectType.EVENT | ObjectType.TODO) == {
            "vevent": True,
            "vjournal": False,
            "vtodo": True,
        }


# ---------------------------------------------------------------------------
# Permissions JSON
# ---------------------------------------------------------------------------

class TestPermissionsJson:
    def test_code_overrides_flags(self):
        value = permissions_from_json({"code": 31, "create": False, "share": False})
        assert value == Permissions.ALL

    def test_code_zero_is_honoured(self):
        assert permissions_from_json({"code": 0, "read": True}) == Permissions(0)

    def test_code_out_of_range_falls_back_to_flags(self):
        value = permissions_from_json({"code": 32, "read": True, "update": True})
        assert value == Permissions.READ | Permissions.UPDATE

    def test_negative_code_falls_back_to_flags(self):
        assert permissions_from_json({"code": -1, "share": True}) == Permissions.SHARE

    def test_string_code(self):
        assert permissions_from_json({"code": "5"}) == Permissions.READ | Permissions.CREATE

    def test_flags_only(self):
        value = permissions_from_json({"read": True, "delete": True, "create": "yes"})
        assert value == Permissions.READ | Permissions.DELETE

    def test_not_a_mapping(self):
        with pytest.raises(ParseError, match="Cruds must be an object"):
            permissions_from_json(31)

    def test_to_json(self):
        assert permissions_to_json(Permissions.READ | Permissions.SHARE) == {
            "code": 17,
            "create": False,
            "read": True,
            "update": False,
            "delete": False,
            "share": True,
        }


class TestToInt:
    def test_values(self):
        assert to_int("5") == 5
        assert to_int(" 12px") == 12
        assert to_int("abc") == 0
        assert to_int(3.9) == 3
        assert to_int(True) == 1
        assert to_int(None) == 0

    def test_container_rejected(self):
        with pytest.raises(ValueError):
            to_int([1])
