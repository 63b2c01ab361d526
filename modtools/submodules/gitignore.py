# modtools/submodules/gitignore.py
from __future__ import annotations
import logging
from pathlib import Path
from typing import Literal

from modtools.core.errors import ModRootNotFoundError
from modtools.mods.toggle import SENTINEL_NAME

logger = logging.getLogger(__name__)

__all__ = ["GITIGNORE_COMMENT", "findSubmoduleDirs", "addSentinelToGitignore", "removeDuplicateSentinel"]


GITIGNORE_NAME = ".gitignore"
GITIGNORE_COMMENT = "# Binary search temporary files"



def findSubmoduleDirs(modsRoot: str | Path) -> list[Path]:
    """Direct children of `modsRoot` that hold a `.git` file or directory."""
    root = Path(modsRoot)
    if not root.is_dir():
        raise ModRootNotFoundError(root)
    return sorted(
        (entry for entry in root.iterdir() if entry.is_dir() and (entry / ".git").exists()),
        key=lambda entry: entry.name.casefold(),
    )



def addSentinelToGitignore(directory: str | Path) -> Literal["present", "added", "created"]:
    """Make sure the submodule's .gitignore ignores the sentinel file."""
    gitignore = Path(directory) / GITIGNORE_NAME
    try:
        content = gitignore.read_text(encoding="utf-8")
    except FileNotFoundError:
        gitignore.write_text(f"{SENTINEL_NAME}\n", encoding="utf-8")
        logger.info("  Creating new .gitignore file")
        return "created"

    if any(line.strip() == SENTINEL_NAME for line in content.splitlines()):
        logger.info("  %s already in .gitignore", SENTINEL_NAME)
        return "present"

    gitignore.write_text(f"{content.strip()}\n\n{GITIGNORE_COMMENT}\n{SENTINEL_NAME}\n", encoding="utf-8")
    logger.info("  Adding %s to existing .gitignore", SENTINEL_NAME)
    return "added"



def removeDuplicateSentinel(directory: str | Path) -> int | None:
    """
    Keep only the first sentinel line in the submodule's .gitignore.

    Returns how many occurrences were found, or None without a .gitignore.
    """
    gitignore = Path(directory) / GITIGNORE_NAME
    try:
        lines = gitignore.read_text(encoding="utf-8").split("\n")
    except FileNotFoundError:
        logger.info("  No .gitignore file found")
        return None

    count = 0
    kept: list[str] = []
    for line in lines:
        if line.strip() == SENTINEL_NAME:
            count += 1
            if count > 1:
                continue
        kept.append(line)

    if count > 1:
        logger.info("  Found %d occurrences of %s - removing duplicates", count, SENTINEL_NAME)
        gitignore.write_text("\n".join(kept), encoding="utf-8")
    else:
        logger.info("  No duplicate entries found in .gitignore")
    return count
