# modtools/bisect/bench.py
from __future__ import annotations
import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from modtools.bisect.harness import GameHarness
from modtools.core.errors import ModToolsError
from modtools.mods.metadata import Mod
from modtools.mods.toggle import disableMods, enableMods, isModDisabled

logger = logging.getLogger(__name__)

__all__ = ["BenchResult", "loadBenchSubsets", "applySubset", "runBench"]



@dataclass(frozen=True)
class BenchResult:
    subset: tuple[str, ...]
    fps: float | None
    outcome: str

    def describe(self) -> str:
        value = f"{self.fps:g}" if self.fps is not None else "n/a"
        return f"{', '.join(self.subset)} - FPS: {value}"



def loadBenchSubsets(path: str | Path) -> list[list[str]]:
    """Read a JSON array of mod-name arrays."""
    target = Path(path)
    try:
        data = json.loads(target.read_text(encoding="utf-8"))
    except (OSError, ValueError) as err:
        raise ModToolsError(f"Failed to read bench file '{target}': {err}") from err
    if not isinstance(data, list) or not all(isinstance(entry, list) for entry in data):
        raise ModToolsError(f"Bench file '{target}' must be a list of lists of mod names")
    return [[str(name) for name in entry] for entry in data]



def applySubset(mods: Iterable[Mod], enabledNames: set[str]) -> tuple[int, int]:
    """
    Enable exactly `enabledNames`, touching only mods whose state changes.

    Returns (enabledCount, disabledCount) of the mods actually flipped.
    """
    toEnable: list[Mod] = []
    toDisable: list[Mod] = []
    for mod in mods:
        disabled = isModDisabled(mod)
        if mod.name in enabledNames and disabled:
            toEnable.append(mod)
        elif mod.name not in enabledNames and not disabled:
            toDisable.append(mod)
    return enableMods(toEnable), disableMods(toDisable)



def runBench(
    mods: Sequence[Mod],
    subsets: Iterable[Sequence[str]],
    harness: GameHarness,
    *,
    alwaysEnabled: Iterable[str] = (),
    limit: int | None = 10,
) -> list[BenchResult]:
    """Launch the game once per subset and collect the reported FPS."""
    pinned = set(alwaysEnabled)
    chosen = list(subsets)
    if limit is not None:
        chosen = chosen[:limit]

    results: list[BenchResult] = []
    for subset in chosen:
        enabledCount, disabledCount = applySubset(mods, set(subset) | pinned)
        logger.debug("Bench subset %s: enabled %d, disabled %d", list(subset), enabledCount, disabledCount)

        report = harness.runTrial(len(results) + 1)
        result = BenchResult(tuple(subset), report.fps, report.outcome)
        logger.info(result.describe())
        results.append(result)
    return results
