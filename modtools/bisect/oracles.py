# modtools/bisect/oracles.py
from __future__ import annotations
import logging
from collections.abc import Callable

from modtools.bisect.harness import GameHarness, TrialReport
from modtools.bisect.models import TrialSnapshot, Verdict

logger = logging.getLogger(__name__)

__all__ = ["PROMPT", "INVALID_RESPONSE", "parseResponse", "formatStatus", "InteractiveOracle", "AutomatedOracle"]


PROMPT = "Did the game run fine? (y/n/r - reset)"
INVALID_RESPONSE = "Invalid response. Please answer 'y', 'n', or 'r'."

_RESPONSES: dict[str, Verdict] = {
    "": Verdict.PASS,
    "y": Verdict.PASS,
    "yes": Verdict.PASS,
    "n": Verdict.FAIL,
    "no": Verdict.FAIL,
    "r": Verdict.RESET,
    "reset": Verdict.RESET,
}



def parseResponse(answer: str) -> Verdict | None:
    """Map an operator answer to a verdict; empty means yes, unknown input is None."""
    return _RESPONSES.get(answer.strip().lower())



def _joinOrNone(names: tuple[str, ...]) -> str:
    return ", ".join(names) or "None"



def formatStatus(trial: TrialSnapshot) -> list[str]:
    lines = [
        "TESTING STATUS:",
        f"- Fine mods (confirmed good): {_joinOrNone(trial.fine)}",
        f"- Enabled mods that need testing: {_joinOrNone(trial.enabledUnconfirmed)}",
        f"- Disabled mods: {_joinOrNone(trial.disabled)}",
    ]
    if trial.pinnedFaulty:
        lines.append(f"- Always disabled mods: {_joinOrNone(trial.pinnedFaulty)}")
    return lines



class InteractiveOracle:
    """Shows the partition and asks the operator until a valid answer arrives."""

    def __init__(
        self,
        askFn: Callable[[str], str] = input,
        outputFn: Callable[[str], None] = print,
    ):
        self.askFn = askFn
        self.outputFn = outputFn

    def evaluate(self, trial: TrialSnapshot) -> Verdict:
        for line in formatStatus(trial):
            self.outputFn(line)
        while True:
            answer = self.askFn(f"{PROMPT} [y]: ")
            verdict = parseResponse(answer)
            if verdict is not None:
                return verdict
            self.outputFn(INVALID_RESPONSE)



class AutomatedOracle:
    """
    Judges a configuration by running the game harness up to `rounds` times.

    Any crashed round fails the configuration; timeouts and inconclusive
    rounds count as passes. Never asks for a reset.
    """

    def __init__(self, harness: GameHarness, *, rounds: int = 3):
        if rounds < 1:
            raise ValueError("rounds must be >= 1")
        self.harness = harness
        self.rounds = rounds
        self.reports: list[TrialReport] = []

    def evaluate(self, trial: TrialSnapshot) -> Verdict:
        for line in formatStatus(trial):
            logger.info(line)
        logger.info("Running crash test rounds...")

        for roundNumber in range(1, self.rounds + 1):
            report = self.harness.runTrial(roundNumber)
            self.reports.append(report)
            if report.crashed:
                logger.info("Crash detected in round %d/%d", roundNumber, self.rounds)
                return Verdict.FAIL
            logger.info("Round %d/%d completed without crashes", roundNumber, self.rounds)

        logger.info("All %d rounds completed without crashes", self.rounds)
        return Verdict.PASS
