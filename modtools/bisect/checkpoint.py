# modtools/bisect/checkpoint.py
from __future__ import annotations
import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

__all__ = ["loadFineMods", "saveFineMods"]



def loadFineMods(path: str | Path) -> list[str]:
    """
    Read the confirmed-fine checkpoint (flat JSON array of mod names).

    A missing file is an empty list. Unreadable or malformed files are logged
    and also read as empty; the search simply starts without them.
    """
    target = Path(path)
    try:
        data = json.loads(target.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return []
    except (OSError, ValueError) as err:
        logger.error("Error loading fine mods from '%s': %s", target, err)
        return []

    if not isinstance(data, list):
        logger.error("Error loading fine mods from '%s': expected a list, got %s", target, type(data).__name__)
        return []
    return [str(name) for name in data if isinstance(name, str) and name]



def saveFineMods(path: str | Path, names: Iterable[str]) -> bool:
    """Overwrite the checkpoint with `names` (sorted). Failures are logged, not raised."""
    target = Path(path)
    payload = json.dumps(sorted(set(names)), ensure_ascii=False)
    tmpPath = target.with_suffix(target.suffix + ".tmp")
    try:
        with open(tmpPath, "w", encoding="utf-8") as fl:
            fl.write(payload)
        os.replace(tmpPath, target)
    except OSError as err:
        logger.error("Error saving fine mods to '%s': %s", target, err)
        return False
    logger.debug("Saved checkpoint '%s'", target)
    return True
