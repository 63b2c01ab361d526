# modtools/bisect/controller.py
from __future__ import annotations
import logging
import random
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Literal, TypeVar

from modtools.bisect.checkpoint import loadFineMods, saveFineMods
from modtools.bisect.models import BisectionResult, Oracle, TrialSnapshot, Verdict
from modtools.mods.metadata import Mod
from modtools.mods.toggle import applyPartition, disableMods, enableMods, isModDisabled

logger = logging.getLogger(__name__)

__all__ = ["SelectionPolicy", "selectHalf", "BisectionController"]


SelectionPolicy = Literal["random", "positional"]

T = TypeVar("T")



def selectHalf(items: Sequence[T], policy: SelectionPolicy = "random", rng: random.Random | None = None) -> list[T]:
    """
    Pick ceil(len(items) / 2) entries.

    "random" shuffles a copy and takes a prefix; "positional" takes the
    leading slice as given.
    """
    count = (len(items) + 1) // 2
    if policy == "positional":
        return list(items[:count])
    if policy != "random":
        raise ValueError(f"Unknown selection policy: {policy!r}")
    pool = list(items)
    (rng or random).shuffle(pool)
    return pool[:count]



class BisectionController:
    """
    Crash search over a fixed list of mods, keyed by mod name.

    Each iteration applies the enabled set to disk, stops when at most one
    unconfirmed mod is enabled and nothing untested is disabled, and otherwise
    asks the oracle and moves the partition:

      PASS  -> every enabled unconfirmed mod becomes fine, half of the
               disabled ones are enabled
      FAIL  -> half of the enabled unconfirmed mods are disabled
      RESET -> only pinned-fine mods stay enabled and fine

    Pinned-fine mods are always enabled and count as fine; pinned-faulty mods
    are always disabled and never tested. A name in both lists is faulty.

    With the positional policy, disabled mods are re-enabled longest-disabled
    first. A mod that just failed goes to the back of that queue, so a fault
    that sorts first cannot starve the rest of the disabled set.
    """

    def __init__(
        self,
        mods: Iterable[Mod],
        oracle: Oracle,
        *,
        pinnedFine: Iterable[str] = (),
        pinnedFaulty: Iterable[str] = (),
        checkpointPath: str | Path | None = None,
        selection: SelectionPolicy = "random",
        rng: random.Random | None = None,
        maxTrials: int | None = None,
    ):
        self.mods: list[Mod] = list(mods)
        self.oracle = oracle
        self.pinnedFaulty: set[str] = set(pinnedFaulty)
        self.pinnedFine: set[str] = set(pinnedFine) - self.pinnedFaulty
        self.checkpointPath = Path(checkpointPath) if checkpointPath is not None else None
        self.selection: SelectionPolicy = selection
        self.rng = rng or random.Random()
        self.maxTrials = maxTrials

        self.enabled: set[str] = set()
        self.fine: set[str] = set()
        self.trials = 0
        self._disabledSince: dict[str, int] = {}
        self._tick = 0
        self._started = False

    # ----- state -----

    def start(self) -> None:
        """Read the current on-disk state, merge the checkpoint and force the pins onto disk."""
        if self.checkpointPath is not None:
            restored = set(loadFineMods(self.checkpointPath)) - self.pinnedFaulty
            if restored:
                logger.info("Loaded %d fine mod(s) from '%s'", len(restored), self.checkpointPath)
            self.pinnedFine |= restored

        self.fine = set(self.pinnedFine)
        self.enabled = {
            mod.name for mod in self.mods
            if (mod.name in self.pinnedFine or not isModDisabled(mod)) and mod.name not in self.pinnedFaulty
        }
        self._enforcePins()

        enableMods(mod for mod in self.mods if mod.name in self.pinnedFine)
        disableMods(mod for mod in self.mods if mod.name in self.pinnedFaulty)

        self._disabledSince = {}
        self._markDisabled(mod.name for mod in self.mods if mod.name not in self.enabled)
        self._started = True

    def snapshot(self) -> TrialSnapshot:
        enabledUnconfirmed: list[str] = []
        disabled: list[str] = []
        fine: list[str] = []
        faulty: list[str] = []
        for mod in self.mods:
            name = mod.name
            if name in self.pinnedFaulty:
                faulty.append(name)
            elif name not in self.enabled:
                disabled.append(name)
            elif name in self.fine:
                fine.append(name)
            else:
                enabledUnconfirmed.append(name)
        return TrialSnapshot(
            number=self.trials + 1,
            enabledUnconfirmed=tuple(enabledUnconfirmed),
            disabled=tuple(disabled),
            fine=tuple(fine),
            pinnedFaulty=tuple(faulty),
        )

    def checkConverged(self, snapshot: TrialSnapshot) -> BisectionResult | None:
        if len(snapshot.enabledUnconfirmed) > 1 or snapshot.disabled:
            return None
        faulty = snapshot.enabledUnconfirmed[0] if snapshot.enabledUnconfirmed else None
        return BisectionResult(faultyMod=faulty, trials=self.trials, fineMods=tuple(sorted(self.fine)))

    # ----- transitions -----

    def onPass(self, snapshot: TrialSnapshot) -> None:
        self.fine.update(snapshot.enabledUnconfirmed)
        if self.checkpointPath is not None:
            saveFineMods(self.checkpointPath, self.fine)

        candidates = list(snapshot.disabled)
        if self.selection == "positional":
            order = {name: idx for idx, name in enumerate(candidates)}
            candidates.sort(key=lambda name: (self._disabledSince.get(name, 0), order[name]))
        picked = selectHalf(candidates, self.selection, self.rng)
        self.enabled.update(picked)
        for name in picked:
            self._disabledSince.pop(name, None)

    def onFail(self, snapshot: TrialSnapshot) -> None:
        candidates = [name for name in snapshot.enabledUnconfirmed if name not in self.pinnedFine]
        picked = selectHalf(candidates, self.selection, self.rng)
        self.enabled.difference_update(picked)
        self._markDisabled(picked)

    def onReset(self) -> None:
        logger.info("Resetting: disabling mods and clearing fine mods list (except pinned-fine mods)")
        self.fine = set(self.pinnedFine)
        self.enabled = set(self.pinnedFine)
        disableMods(mod for mod in self.mods if mod.name not in self.enabled)
        enableMods(mod for mod in self.mods if mod.name in self.enabled)
        self._disabledSince = {}
        self._markDisabled(mod.name for mod in self.mods if mod.name not in self.enabled)

    def transition(self, verdict: Verdict, snapshot: TrialSnapshot) -> None:
        if verdict is Verdict.PASS:
            self.onPass(snapshot)
        elif verdict is Verdict.FAIL:
            self.onFail(snapshot)
        elif verdict is Verdict.RESET:
            self.onReset()
        else:
            raise ValueError(f"Unknown verdict: {verdict!r}")
        self._enforcePins()

    # ----- loop -----

    def run(self) -> BisectionResult:
        if not self._started:
            self.start()
        logger.info("Starting binary search over %d mod(s)", len(self.mods))

        while True:
            applyPartition(self.mods, self.enabled)
            snapshot = self.snapshot()
            logger.debug(
                "Trial %d: %d unconfirmed enabled, %d disabled, %d fine",
                snapshot.number, len(snapshot.enabledUnconfirmed), len(snapshot.disabled), len(snapshot.fine),
                extra={"trial": snapshot.number},
            )

            result = self.checkConverged(snapshot)
            if result is not None:
                logger.info(result.describe())
                return result

            if self.maxTrials is not None and self.trials >= self.maxTrials:
                result = BisectionResult(
                    faultyMod=None, trials=self.trials, converged=False, fineMods=tuple(sorted(self.fine)),
                )
                logger.warning(result.describe())
                return result

            verdict = self.oracle.evaluate(snapshot)
            self.trials += 1
            logger.debug("Trial %d verdict: %s", snapshot.number, verdict.value, extra={"trial": snapshot.number})
            self.transition(verdict, snapshot)

    # ----- helpers -----

    def _enforcePins(self) -> None:
        self.enabled |= {name for name in self.pinnedFine if name not in self.pinnedFaulty}
        self.enabled -= self.pinnedFaulty

    def _markDisabled(self, names: Iterable[str]) -> None:
        self._tick += 1
        for name in names:
            self._disabledSince[name] = self._tick
