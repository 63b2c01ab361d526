# modtools/bisect/models.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

__all__ = ["Verdict", "TrialSnapshot", "BisectionResult", "Oracle"]



class Verdict(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    RESET = "reset"



@dataclass(frozen=True)
class TrialSnapshot:
    """
    The partition a trial runs against, already applied on disk.

    Names are in registry order. `disabled` excludes pinned-faulty mods, which
    are listed separately.
    """
    number: int
    enabledUnconfirmed: tuple[str, ...]
    disabled: tuple[str, ...]
    fine: tuple[str, ...]
    pinnedFaulty: tuple[str, ...] = ()

    @property
    def enabled(self) -> tuple[str, ...]:
        return self.fine + self.enabledUnconfirmed



@dataclass(frozen=True)
class BisectionResult:
    faultyMod: str | None
    trials: int
    converged: bool = True
    fineMods: tuple[str, ...] = field(default_factory=tuple)

    def describe(self) -> str:
        if not self.converged:
            return f"Stopped after {self.trials} trial(s) without isolating a mod."
        if self.faultyMod is not None:
            return f"FOUND PROBLEMATIC MOD: {self.faultyMod}"
        return "No problematic mods identified."



@runtime_checkable
class Oracle(Protocol):
    """Anything that can judge the configuration currently on disk."""
    def evaluate(self, trial: TrialSnapshot) -> Verdict: ...
