import pytest

from modtools.core.errors import ModRootNotFoundError
from modtools.submodules.gitignore import (
    GITIGNORE_COMMENT, addSentinelToGitignore, findSubmoduleDirs, removeDuplicateSentinel,
)


def test_find_submodule_dirs(tmp_path):
    for name in ("beta", "Alpha", "plain"):
        (tmp_path / name).mkdir()
    (tmp_path / "beta" / ".git").write_text("gitdir: ../../.git/modules/beta", encoding="utf-8")
    (tmp_path / "Alpha" / ".git").mkdir()

    assert [entry.name for entry in findSubmoduleDirs(tmp_path)] == ["Alpha", "beta"]


def test_find_submodule_dirs_missing_root(tmp_path):
    with pytest.raises(ModRootNotFoundError):
        findSubmoduleDirs(tmp_path / "Mods")


def test_add_sentinel_creates_file(tmp_path):
    assert addSentinelToGitignore(tmp_path) == "created"
    assert (tmp_path / ".gitignore").read_text(encoding="utf-8") == ".lovelyignore\n"


def test_add_sentinel_appends_with_comment(tmp_path):
    (tmp_path / ".gitignore").write_text("*.log\n\n", encoding="utf-8")

    assert addSentinelToGitignore(tmp_path) == "added"
    assert (tmp_path / ".gitignore").read_text(encoding="utf-8") == f"*.log\n\n{GITIGNORE_COMMENT}\n.lovelyignore\n"
    assert addSentinelToGitignore(tmp_path) == "present"


def test_remove_duplicate_sentinel(tmp_path):
    gitignore = tmp_path / ".gitignore"
    gitignore.write_text(".lovelyignore\n*.log\n .lovelyignore\n.lovelyignore\n", encoding="utf-8")

    assert removeDuplicateSentinel(tmp_path) == 3
    assert gitignore.read_text(encoding="utf-8") == ".lovelyignore\n*.log\n"


def test_remove_duplicate_sentinel_leaves_clean_file(tmp_path):
    gitignore = tmp_path / ".gitignore"
    gitignore.write_text("*.log\n.lovelyignore\n", encoding="utf-8")

    assert removeDuplicateSentinel(tmp_path) == 1
    assert gitignore.read_text(encoding="utf-8") == "*.log\n.lovelyignore\n"
    assert removeDuplicateSentinel(tmp_path / "missing") is None
