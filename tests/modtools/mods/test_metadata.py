import pytest
from pydantic import ValidationError

from modtools.mods.metadata import (
    BareDependency, Mod, VersionedDependency, camelKey, normalizeRawMetadata,
)


def _raw(**overrides):
    data = {
        "id": "Foo",
        "name": "Foo Mod",
        "author": ["Alice"],
        "description": "desc",
        "prefix": "foo",
        "main_file": "main.lua",
        "path": "/mods/foo/foo.json",
    }
    data.update(overrides)
    return data


@pytest.mark.parametrize(
    ("key", "expected"),
    [
        ("main_file", "mainFile"),
        ("badge-colour", "badgeColour"),
        ("DisplayName", "displayName"),
        ("MOD_ID", "modId"),
        ("badgeTextColour", "badgeTextColour"),
        ("min_version", "minVersion"),
    ],
)
def test_camel_key(key, expected):
    assert camelKey(key) == expected


def test_normalize_drops_empty_strings():
    assert normalizeRawMetadata({"main_file": "a.lua", "version": ""}) == {"mainFile": "a.lua"}


def test_mod_defaults():
    mod = Mod.model_validate(_raw())
    assert mod.displayName == "Foo Mod"
    assert mod.badgeColour == "666665"
    assert mod.badgeTextColour == "FFFFFF"
    assert mod.priority == 0
    assert mod.dumpLoc is False
    assert mod.conflicts == [] and mod.dependencies == [] and mod.provides == []
    assert mod.enabled is True
    assert str(mod.directory).replace("\\", "/") == "/mods/foo"


def test_explicit_display_name_is_kept():
    mod = Mod.model_validate(_raw(display_name="Shiny"))
    assert mod.displayName == "Shiny"


def test_empty_version_is_dropped_not_rejected():
    mod = Mod.model_validate(_raw(version=""))
    assert mod.version is None


@pytest.mark.parametrize("reserved", ["Steamodded", "Lovely", "Balatro"])
def test_reserved_ids_rejected(reserved):
    with pytest.raises(ValidationError):
        Mod.model_validate(_raw(id=reserved))


@pytest.mark.parametrize(
    "overrides",
    [
        {"author": []},
        {"author": [""]},
        {"main_file": "main.py"},
        {"badge_colour": "12345"},
        {"badge_colour": "GGGGGG"},
        {"priority": 1.5},
        {"priority": "3"},
        {"dump_loc": "yes"},
    ],
)
def test_invalid_fields_rejected(overrides):
    with pytest.raises(ValidationError):
        Mod.model_validate(_raw(**overrides))


def test_missing_required_field_rejected():
    data = _raw()
    del data["description"]
    with pytest.raises(ValidationError):
        Mod.model_validate(data)


def test_eight_digit_badge_colour_accepted():
    mod = Mod.model_validate(_raw(badge_colour="FF00FF80"))
    assert mod.badgeColour == "FF00FF80"


def test_dependencies_are_tagged():
    mod = Mod.model_validate(
        _raw(
            dependencies=["Steamodded", {"id": "Talisman", "min_version": "2.0.0"}],
            conflicts=[{"id": "Other", "maxVersion": "1.0"}],
        )
    )
    bare, versioned = mod.dependencies
    assert isinstance(bare, BareDependency) and bare.id == "Steamodded"
    assert isinstance(versioned, VersionedDependency)
    assert versioned.minVersion == "2.0.0" and versioned.maxVersion is None
    assert str(versioned) == "Talisman (>=2.0.0)"
    assert str(mod.conflicts[0]) == "Other (<=1.0)"


def test_versioned_dependency_rejects_unknown_keys():
    with pytest.raises(ValidationError):
        Mod.model_validate(_raw(dependencies=[{"id": "X", "when": "always"}]))


def test_unknown_top_level_keys_ignored():
    mod = Mod.model_validate(_raw(homepage="https://example.com"))
    assert not hasattr(mod, "homepage")
