# modtools/bisect/__init__.py
from .models import Verdict, TrialSnapshot, BisectionResult, Oracle
from .controller import BisectionController, selectHalf
from .oracles import InteractiveOracle, AutomatedOracle
from .harness import GameHarness, TrialReport

__all__ = [
    "Verdict",
    "TrialSnapshot",
    "BisectionResult",
    "Oracle",
    "BisectionController",
    "selectHalf",
    "InteractiveOracle",
    "AutomatedOracle",
    "GameHarness",
    "TrialReport",
]
