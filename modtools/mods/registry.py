# modtools/mods/registry.py
from __future__ import annotations
import logging
import os
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TypeAlias

import json5

from modtools.core.errors import ModRootNotFoundError
from modtools.mods.header import hasModHeader, parseModHeader
from modtools.mods.metadata import Mod
from modtools.mods.toggle import isModDisabled

logger = logging.getLogger(__name__)

__all__ = ["CANDIDATE_SUFFIXES", "SkipCallback", "parseModJson", "parseCandidate", "scanMods", "findDuplicates"]


CANDIDATE_SUFFIXES = (".json", ".lua")

SkipCallback: TypeAlias = Callable[[Path, BaseException], None]



def parseModJson(content: str, path: str) -> Mod:
    raw = json5.loads(content)
    if not isinstance(raw, dict):
        raise ValueError(f"Metadata must be an object, not '{type(raw).__name__}'")
    return Mod.model_validate({**raw, "path": path})



def parseCandidate(path: Path, onSkip: SkipCallback | None = None) -> Mod | None:
    """
    Parse one candidate file into a Mod, or return None.

    Never raises: unreadable files, non-mod scripts and invalid metadata are
    all excluded. `onSkip` receives the path and the error for every excluded
    candidate that looked like metadata.
    """
    try:
        content = path.read_text(encoding="utf-8-sig")
        if path.suffix == ".json":
            mod = parseModJson(content, str(path))
        elif path.suffix == ".lua":
            if not hasModHeader(content):
                return None
            mod = parseModHeader(content, str(path))
        else:
            return None
    except Exception as err:
        logger.debug("Skipping mod candidate '%s': %s", path, err)
        if onSkip is not None:
            onSkip(path, err)
        return None

    return mod.model_copy(update={"enabled": not isModDisabled(mod)})



def _iterCandidates(root: Path) -> Iterable[Path]:
    for dirPath, dirNames, fileNames in os.walk(root):
        dirNames.sort()
        for fileName in sorted(fileNames):
            if fileName.endswith(CANDIDATE_SUFFIXES):
                yield Path(dirPath) / fileName



def scanMods(root: str | Path, onSkip: SkipCallback | None = None) -> list[Mod]:
    """
    Walk `root` recursively and return every valid mod sorted by name
    (case-insensitive). A missing root is the only error raised.
    """
    rootPath = Path(root)
    if not rootPath.is_dir():
        raise ModRootNotFoundError(rootPath)

    mods: list[Mod] = []
    for candidate in _iterCandidates(rootPath):
        mod = parseCandidate(candidate, onSkip)
        if mod is not None:
            mods.append(mod)

    mods.sort(key=lambda mod: (mod.name.casefold(), mod.name))
    logger.debug("Found %d mod(s) under '%s'", len(mods), rootPath)
    return mods



def findDuplicates(mods: Iterable[Mod]) -> dict[str, dict[str, list[Mod]]]:
    """
    Group mods sharing an `id` or a `prefix`.

    Returns {"id": {value: [mods...]}, "prefix": {value: [mods...]}} holding
    only values used more than once.
    """
    byId: dict[str, list[Mod]] = {}
    byPrefix: dict[str, list[Mod]] = {}
    for mod in mods:
        byId.setdefault(mod.id, []).append(mod)
        byPrefix.setdefault(mod.prefix, []).append(mod)
    return {
        "id": {key: group for key, group in byId.items() if len(group) > 1},
        "prefix": {key: group for key, group in byPrefix.items() if len(group) > 1},
    }
