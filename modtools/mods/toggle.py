# modtools/mods/toggle.py
from __future__ import annotations
import logging
from collections.abc import Collection, Iterable
from pathlib import Path

from modtools.mods.metadata import Mod

logger = logging.getLogger(__name__)

__all__ = [
    "SENTINEL_NAME", "SENTINEL_COMMENT",
    "sentinelPath", "isModDisabled", "disableMods", "enableMods", "applyPartition",
]


SENTINEL_NAME = ".lovelyignore"
SENTINEL_COMMENT = "# Ignored by binary search"



def sentinelPath(mod: Mod) -> Path:
    return mod.directory / SENTINEL_NAME



def isModDisabled(mod: Mod) -> bool:
    return sentinelPath(mod).exists()



def disableMods(mods: Iterable[Mod]) -> int:
    """Write the sentinel next to each mod's metadata. Returns how many succeeded."""
    done = 0
    for mod in mods:
        target = sentinelPath(mod)
        try:
            target.write_text(SENTINEL_COMMENT, encoding="utf-8")
        except OSError as err:
            logger.warning("Failed to disable '%s' (%s): %s", mod.name, target, err, extra={"mod": mod.name})
            continue
        done += 1
    return done



def enableMods(mods: Iterable[Mod]) -> int:
    """Remove each mod's sentinel; an already-missing sentinel counts as success."""
    done = 0
    for mod in mods:
        target = sentinelPath(mod)
        try:
            target.unlink()
        except FileNotFoundError:
            pass
        except OSError as err:
            logger.warning("Failed to enable '%s' (%s): %s", mod.name, target, err, extra={"mod": mod.name})
            continue
        done += 1
    return done



def applyPartition(mods: Iterable[Mod], enabledNames: Collection[str]) -> None:
    """Bring the on-disk state in line with `enabledNames`; every other mod is disabled."""
    toEnable: list[Mod] = []
    toDisable: list[Mod] = []
    for mod in mods:
        (toEnable if mod.name in enabledNames else toDisable).append(mod)
    enableMods(toEnable)
    disableMods(toDisable)
