import json
import sys
from pathlib import Path

import pytest
from git import GitCommandError



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")



class ScriptedGit:
    """
    Stands in for git.Git. Commands are answered by (working directory name,
    git arguments); anything unscripted fails with GitCommandError, as a
    non-zero git exit would.
    """
    def __init__(self):
        self.responses: dict[tuple[str | None, tuple[str, ...]], str] = {}
        self.calls: list[tuple[str | None, tuple[str, ...]]] = []

    @staticmethod
    def _where(workingDir) -> str | None:
        return Path(workingDir).name if workingDir else None

    def script(self, where, *args: str, output: str = "") -> None:
        self.responses[(self._where(where), args)] = output

    def ran(self, *args: str, where=None) -> bool:
        place = self._where(where)
        return any(call == args and (where is None or seenAt == place) for seenAt, call in self.calls)

    def __call__(self, workingDir=None) -> "_ScriptedCommand":
        return _ScriptedCommand(self, self._where(workingDir))



class _ScriptedCommand:
    def __init__(self, owner: ScriptedGit, where: str | None):
        self.owner = owner
        self.where = where

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)
        command = name.replace("_", "-")

        def run(*args):
            key = (self.where, (command, *map(str, args)))
            self.owner.calls.append(key)
            if key not in self.owner.responses:
                raise GitCommandError(["git", *key[1]], 1, "not scripted")
            return self.owner.responses[key]
        return run



@pytest.fixture()
def scriptedGit(monkeypatch):
    """Patch `Git` in the given modules with one shared ScriptedGit."""
    def install(*modules) -> ScriptedGit:
        fake = ScriptedGit()
        for module in modules:
            monkeypatch.setattr(module, "Git", fake)
        return fake
    return install



def _modPayload(name: str, **overrides) -> dict:
    payload = {
        "id": name.replace(" ", ""),
        "name": name,
        "author": ["Tester"],
        "description": f"{name} description",
        "prefix": name.replace(" ", "").lower()[:6],
        "main_file": "main.lua",
    }
    payload.update(overrides)
    return payload



@pytest.fixture()
def modsRoot(tmp_path: Path) -> Path:
    root = tmp_path / "Mods"
    root.mkdir()
    return root



@pytest.fixture()
def writeJsonMod(modsRoot: Path):
    """Create Mods/<dir>/<name>.json and return the metadata path."""
    def _write(name: str, *, directory: str | None = None, disabled: bool = False, **overrides) -> Path:
        modDir = modsRoot / (directory or name.replace(" ", "_"))
        modDir.mkdir(parents=True, exist_ok=True)
        path = modDir / "manifest.json"
        path.write_text(json.dumps(_modPayload(name, **overrides)), encoding="utf-8")
        if disabled:
            (modDir / ".lovelyignore").write_text("# Ignored by binary search", encoding="utf-8")
        return path
    return _write



@pytest.fixture()
def makeMods(modsRoot: Path, writeJsonMod):
    """Write one JSON mod per name and return them scanned, in name order."""
    from modtools.mods.registry import scanMods

    def _make(*names: str, disabled: tuple[str, ...] = ()):
        for name in names:
            writeJsonMod(name, disabled=name in disabled)
        return scanMods(modsRoot)
    return _make
