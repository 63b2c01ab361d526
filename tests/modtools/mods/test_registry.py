import json
from pathlib import Path

import pytest

from modtools.core.errors import ModRootNotFoundError
from modtools.mods.registry import findDuplicates, parseCandidate, scanMods

HEADER = """--- STEAMODDED HEADER
--- MOD_ID: Legacy
--- MOD_NAME: legacy mod
--- MOD_DESCRIPTION: old style
--- MOD_AUTHOR: [Dave]

return nil
"""


def test_scan_mixes_json_and_headers_sorted_case_insensitively(modsRoot, writeJsonMod):
    writeJsonMod("Zeta")
    writeJsonMod("alpha")
    legacyDir = modsRoot / "legacy"
    legacyDir.mkdir()
    (legacyDir / "legacy.lua").write_text(HEADER, encoding="utf-8")

    mods = scanMods(modsRoot)

    assert [mod.name for mod in mods] == ["alpha", "legacy mod", "Zeta"]
    legacy = mods[1]
    assert legacy.prefix == "lega"
    assert legacy.mainFile == "legacy.lua"
    assert legacy.path == str(legacyDir / "legacy.lua")


def test_header_saved_with_byte_order_mark_is_kept(modsRoot):
    modDir = modsRoot / "bom"
    modDir.mkdir()
    (modDir / "bom.lua").write_bytes(b"\xef\xbb\xbf" + HEADER.replace("\n", "\r\n").encode("utf-8"))

    mods = scanMods(modsRoot)

    assert [(mod.id, mod.name) for mod in mods] == [("Legacy", "legacy mod")]


def test_scan_derives_enabled_from_sentinel(modsRoot, writeJsonMod):
    writeJsonMod("On")
    writeJsonMod("Off", disabled=True)

    byName = {mod.name: mod for mod in scanMods(modsRoot)}

    assert byName["On"].enabled is True
    assert byName["Off"].enabled is False


def test_scan_skips_invalid_candidates_and_reports_them(modsRoot, writeJsonMod):
    writeJsonMod("Good")
    writeJsonMod("Bad", directory="bad", main_file="main.py")
    (modsRoot / "broken").mkdir()
    (modsRoot / "broken" / "meta.json").write_text("{not json", encoding="utf-8")
    (modsRoot / "plain").mkdir()
    (modsRoot / "plain" / "util.lua").write_text("return {}", encoding="utf-8")
    (modsRoot / "list").mkdir()
    (modsRoot / "list" / "data.json").write_text("[1, 2]", encoding="utf-8")

    skipped: list[Path] = []
    mods = scanMods(modsRoot, onSkip=lambda path, err: skipped.append(path))

    assert [mod.name for mod in mods] == ["Good"]
    assert sorted(path.parent.name for path in skipped) == ["bad", "broken", "list"]


def test_scan_walks_nested_directories(modsRoot, writeJsonMod):
    writeJsonMod("Deep", directory="pack/inner/deep")
    assert [mod.name for mod in scanMods(modsRoot)] == ["Deep"]


def test_json5_metadata_accepted(modsRoot):
    modDir = modsRoot / "j5"
    modDir.mkdir()
    (modDir / "j5.json").write_text(
        """{
            // comment
            id: "J5", name: "J5", author: ["Eve"], description: "d",
            prefix: "j5", main_file: "main.lua",
        }""",
        encoding="utf-8",
    )
    assert [mod.id for mod in scanMods(modsRoot)] == ["J5"]


def test_missing_root_is_fatal(tmp_path):
    with pytest.raises(ModRootNotFoundError) as excinfo:
        scanMods(tmp_path / "nope")
    assert excinfo.value.root == tmp_path / "nope"


def test_parse_candidate_never_raises_for_unreadable_file(tmp_path):
    assert parseCandidate(tmp_path / "missing.json") is None


def test_parse_candidate_injects_path(writeJsonMod):
    path = writeJsonMod("Pathy")
    data = json.loads(path.read_text(encoding="utf-8"))
    data["path"] = "/somewhere/else.json"
    path.write_text(json.dumps(data), encoding="utf-8")

    mod = parseCandidate(path)

    assert mod is not None
    assert mod.path == str(path)


def test_find_duplicates(modsRoot, writeJsonMod):
    writeJsonMod("One", id="Same", prefix="dup")
    writeJsonMod("Two", id="Same", prefix="two")
    writeJsonMod("Three", prefix="dup")

    dups = findDuplicates(scanMods(modsRoot))

    assert sorted(mod.name for mod in dups["id"]["Same"]) == ["One", "Two"]
    assert sorted(mod.name for mod in dups["prefix"]["dup"]) == ["One", "Three"]
    assert "two" not in dups["prefix"]
