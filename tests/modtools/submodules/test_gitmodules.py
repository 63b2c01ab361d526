import pytest

from modtools.core.errors import ModToolsError
from modtools.submodules.gitmodules import (
    SubmoduleRecord, loadSubmodules, naturalKey, parseGitConfig, readSubmoduleValues, sortGitmodules,
)

GITMODULES = """\
[submodule "Mods/mod10"]
\tpath = Mods/mod10
\turl = https://github.com/owner/mod10.git
[submodule "Mods/Mod2"]
\tpath = Mods/Mod2
\tURL = git@github.com:owner/Mod2.git
\tbranch = main
# comment stays with Mod2
[submodule "Mods/half"]
\tpath = Mods/half
"""


def test_parse_git_config_keeps_sections_and_lines():
    preamble, sections = parseGitConfig("; top\n" + GITMODULES)

    assert preamble == ["; top"]
    assert [section.name for section in sections] == ["Mods/mod10", "Mods/Mod2", "Mods/half"]
    assert {section.kind for section in sections} == {"submodule"}
    assert sections[1].lines[-1] == "# comment stays with Mod2"


def test_load_submodules_skips_incomplete_entries(tmp_path):
    (tmp_path / ".gitmodules").write_text(GITMODULES, encoding="utf-8")

    records = loadSubmodules(tmp_path)

    assert records == [
        SubmoduleRecord("Mods/mod10", "Mods/mod10", "https://github.com/owner/mod10.git"),
        SubmoduleRecord("Mods/Mod2", "Mods/Mod2", "git@github.com:owner/Mod2.git", "main"),
    ]


def test_values_are_read_the_way_git_reads_them(tmp_path):
    (tmp_path / ".gitmodules").write_text(
        '[submodule "Mods/Foo"]\n'
        "\tpath = Mods/Foo ; moved 2024\n"
        "\turl = https://github.com/a/foo.git # fork\n"
        '\tbranch = "dev"\n',
        encoding="utf-8",
    )

    assert readSubmoduleValues(tmp_path) == {
        "Mods/Foo": {"path": "Mods/Foo", "url": "https://github.com/a/foo.git", "branch": "dev"},
    }
    assert loadSubmodules(tmp_path) == [
        SubmoduleRecord("Mods/Foo", "Mods/Foo", "https://github.com/a/foo.git", "dev"),
    ]


def test_gitmodules_without_submodules(tmp_path):
    (tmp_path / ".gitmodules").write_text("# nothing yet\n", encoding="utf-8")
    assert loadSubmodules(tmp_path) == []


def test_natural_key_orders_numbers_numerically():
    names = ["mod10", "Mod2", "mod1", "alpha"]
    assert sorted(names, key=naturalKey) == ["alpha", "mod1", "Mod2", "mod10"]


def test_sort_gitmodules_rewrites_file(tmp_path):
    path = tmp_path / ".gitmodules"
    path.write_text(GITMODULES, encoding="utf-8")

    order = sortGitmodules(tmp_path)

    assert order == ["Mods/half", "Mods/Mod2", "Mods/mod10"]
    text = path.read_text(encoding="utf-8")
    assert text.index('[submodule "Mods/half"]') < text.index('[submodule "Mods/Mod2"]')
    assert text.index('[submodule "Mods/Mod2"]') < text.index("# comment stays with Mod2")
    assert text.index("# comment stays with Mod2") < text.index('[submodule "Mods/mod10"]')
    assert sorted(text.splitlines()) == sorted(GITMODULES.splitlines())


def test_missing_gitmodules(tmp_path):
    with pytest.raises(ModToolsError):
        loadSubmodules(tmp_path)
