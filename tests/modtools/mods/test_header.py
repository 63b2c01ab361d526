import pytest
from pydantic import ValidationError

from modtools.mods.header import HeaderError, hasModHeader, parseHeaderBlock, parseModHeader

HEADER = """--- STEAMODDED HEADER
--- MOD_ID: Foo
--- MOD_NAME: Foo Mod
--- MOD_DESCRIPTION: desc
--- MOD_AUTHOR: [Alice, Bob]

local x = 1
"""


def test_header_defaults_prefix_and_splits_authors():
    mod = parseModHeader(HEADER, "/mods/foo/foo.lua")
    assert mod.id == "Foo"
    assert mod.name == "Foo Mod"
    assert mod.displayName == "Foo Mod"
    assert mod.prefix == "foo"
    assert mod.author == ["Alice", "Bob"]
    assert mod.mainFile == "foo.lua"
    assert mod.priority == 0
    assert mod.path == "/mods/foo/foo.lua"


def test_header_with_crlf_and_aliases():
    content = (
        "--- STEAMODDED HEADER\r\n"
        "--- MOD_ID: LongModIdentifier\r\n"
        "--- MOD_NAME: Long\r\n"
        "--- MOD_DESCRIPTION: something\r\n"
        "--- MOD_AUTHOR: [Carol]\r\n"
        "--- BADGE_COLOR: FF0000\r\n"
        "--- BADGE_TEXT_COLOR: 00FF00AA\r\n"
        "--- DEPS: [Steamodded, Talisman]\r\n"
        "--- CONFLICTS: [Enemy]\r\n"
        "--- PRIORITY: -5\r\n"
        "--- PREFIX: lmi\r\n"
        "--- VERSION: 1.2.3\r\n"
        "\r\n"
        "return {}\r\n"
    )
    mod = parseModHeader(content, "/mods/long/main.lua")
    assert mod.badgeColour == "FF0000"
    assert mod.badgeTextColour == "00FF00AA"
    assert [dep.id for dep in mod.dependencies] == ["Steamodded", "Talisman"]
    assert [conflict.id for conflict in mod.conflicts] == ["Enemy"]
    assert mod.priority == -5
    assert mod.prefix == "lmi"
    assert mod.version == "1.2.3"


def test_canonical_key_wins_over_alias():
    content = HEADER.replace(
        "--- MOD_AUTHOR: [Alice, Bob]",
        "--- MOD_AUTHOR: [Alice, Bob]\n--- DEPENDENCIES: [Real]\n--- DEPENDS: [Alias]",
    )
    mod = parseModHeader(content, "/mods/foo/foo.lua")
    assert [dep.id for dep in mod.dependencies] == ["Real"]


def test_value_keeps_colons_after_the_first():
    fields = parseHeaderBlock(
        "--- STEAMODDED HEADER\n--- MOD_DESCRIPTION: see https://example.com: now\n\ncode"
    )
    assert fields["MOD_DESCRIPTION"] == "see https://example.com: now"


def test_empty_values_are_dropped():
    fields = parseHeaderBlock("--- STEAMODDED HEADER\n--- VERSION:\n--- MOD_ID: X\n\n")
    assert "VERSION" not in fields
    assert fields["MOD_ID"] == "X"


def test_invalid_priority_rejected():
    with pytest.raises(ValidationError):
        parseModHeader(HEADER.replace("--- MOD_AUTHOR", "--- PRIORITY: high\n--- MOD_AUTHOR"), "/m/foo.lua")


def test_missing_author_rejected():
    content = HEADER.replace("--- MOD_AUTHOR: [Alice, Bob]\n", "")
    with pytest.raises(ValidationError):
        parseModHeader(content, "/mods/foo/foo.lua")


def test_missing_id_raises_header_error():
    with pytest.raises(HeaderError):
        parseModHeader("--- STEAMODDED HEADER\n--- MOD_NAME: Nameless\n\n", "/m/x.lua")


def test_has_mod_header():
    assert hasModHeader(HEADER)
    assert not hasModHeader("-- just a script\n--- STEAMODDED HEADER\n")
