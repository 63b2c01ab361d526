# modtools/cli.py
from __future__ import annotations
import argparse
import json
import logging
import random
from collections.abc import Callable
from pathlib import Path

from modtools import __version__
from modtools.app.settings import Settings, loadSettings
from modtools.bisect.bench import loadBenchSubsets, runBench
from modtools.bisect.controller import BisectionController
from modtools.bisect.harness import GameHarness
from modtools.bisect.models import Oracle
from modtools.bisect.oracles import AutomatedOracle, InteractiveOracle
from modtools.core.errors import ModToolsError, SettingsError
from modtools.core.logging import configureLogging
from modtools.mods.metadata import Mod
from modtools.mods.registry import findDuplicates, scanMods
from modtools.mods.toggle import disableMods, enableMods
from modtools.submodules.branches import listSubmoduleBranches, updateSubmoduleBranches
from modtools.submodules.gitignore import addSentinelToGitignore, findSubmoduleDirs, removeDuplicateSentinel
from modtools.submodules.gitmodules import sortGitmodules
from modtools.submodules.upstream import addUpstreamRemotes, listLatestUpstreamCommits, pullUpstreamUpdates

logger = logging.getLogger(__name__)

__all__ = ["buildParser", "main"]


Handler = Callable[[argparse.Namespace, Settings], int]



def _modsRoot(args: argparse.Namespace, settings: Settings) -> Path:
    return Path(getattr(args, "root", None) or settings.mods.root)



def _reportDuplicates(mods: list[Mod]) -> None:
    for field, groups in findDuplicates(mods).items():
        for value, group in groups.items():
            names = ", ".join(mod.name for mod in group)
            logger.warning("Duplicate %s %r used by: %s", field, value, names)



def _selectByName(mods: list[Mod], names: list[str]) -> tuple[list[Mod], list[str]]:
    wanted = set(names)
    selected = [mod for mod in mods if mod.name in wanted or mod.id in wanted]
    found = {mod.name for mod in selected} | {mod.id for mod in selected}
    return selected, [name for name in names if name not in found]



# ----- mods -----

def _cmdListMods(args: argparse.Namespace, settings: Settings) -> int:
    mods = scanMods(_modsRoot(args, settings))
    if args.json:
        print(json.dumps([mod.model_dump(mode="json") for mod in mods], indent=2, ensure_ascii=False))
    else:
        for mod in mods:
            print(f"{mod.name}{'' if mod.enabled else '  (disabled)'}" if args.status else mod.name)
    _reportDuplicates(mods)
    return 0



def _cmdToggle(args: argparse.Namespace, settings: Settings) -> int:
    if not args.all and not args.names:
        raise ModToolsError(f"Nothing to {args.cmd}: give mod names or --all")
    mods = scanMods(_modsRoot(args, settings))
    if args.all:
        selected, missing = mods, []
    else:
        selected, missing = _selectByName(mods, args.names)
    for name in missing:
        logger.warning("No mod named %r", name)

    if args.cmd == "enable":
        done = enableMods(selected)
        logger.info("Enabled %d mod(s)", done)
    else:
        done = disableMods(selected)
        logger.info("Disabled %d mod(s)", done)
    return 1 if missing or done < len(selected) else 0



# ----- bisection -----

def _buildController(args: argparse.Namespace, settings: Settings, oracle: Oracle) -> BisectionController:
    cfg = settings.bisect
    checkpoint = None if args.no_checkpoint or not cfg.persistFineMods else Path(cfg.fineModsFile)
    return BisectionController(
        scanMods(_modsRoot(args, settings)),
        oracle,
        pinnedFine=cfg.pinnedFine,
        pinnedFaulty=cfg.pinnedFaulty,
        checkpointPath=checkpoint,
        selection=args.selection or cfg.selection,
        rng=random.Random(args.seed) if args.seed is not None else None,
        maxTrials=args.max_trials if args.max_trials is not None else cfg.maxTrials,
    )



def _cmdBisect(args: argparse.Namespace, settings: Settings) -> int:
    controller = _buildController(args, settings, InteractiveOracle())
    result = controller.run()
    print(result.describe())
    return 0 if result.converged else 1



def _requireHarness(settings: Settings, *, withControl: bool) -> GameHarness:
    if not settings.harness.gameCommand:
        raise SettingsError("harness.gameCommand is not configured")
    return GameHarness.fromSettings(settings.harness, withControl=withControl)



def _cmdBisectAuto(args: argparse.Namespace, settings: Settings) -> int:
    harness = _requireHarness(settings, withControl=True)
    rounds = args.rounds or settings.harness.roundsPerConfig
    logger.info("=== AUTOMATED CRASH TESTING ===")
    logger.info("Testing %d rounds per configuration", rounds)
    logger.info("Maximum runtime per test: %g seconds", harness.timeoutSeconds)

    controller = _buildController(args, settings, AutomatedOracle(harness, rounds=rounds))
    result = controller.run()
    print(result.describe())
    return 0 if result.converged else 1



def _cmdBench(args: argparse.Namespace, settings: Settings) -> int:
    harness = _requireHarness(settings, withControl=False)
    subsets = loadBenchSubsets(args.file or settings.bench.file)
    limit = args.limit if args.limit is not None else settings.bench.limit
    results = runBench(
        scanMods(_modsRoot(args, settings)),
        subsets,
        harness,
        alwaysEnabled=settings.bench.alwaysEnabled,
        limit=limit,
    )
    for result in results:
        print(result.describe())
    return 0



# ----- submodules -----

def _cmdUpdateBranches(args: argparse.Namespace, settings: Settings) -> int:
    outcome = updateSubmoduleBranches(settings=settings.github, token=settings.githubToken())
    skipped = [name for name, branch in outcome.items() if branch is None]
    if skipped:
        logger.warning("Skipped %d submodule(s): %s", len(skipped), ", ".join(skipped))
    return 0



def _cmdListBranches(args: argparse.Namespace, settings: Settings) -> int:
    for name, branches in listSubmoduleBranches(_modsRoot(args, settings)).items():
        print(f"{name}:")
        for branch in branches:
            print(f"  {branch}")
    logger.info("=== Finished listing all submodule branches ===")
    return 0



def _cmdSortSubmodules(args: argparse.Namespace, settings: Settings) -> int:
    sortGitmodules()
    return 0



def _cmdAddUpstream(args: argparse.Namespace, settings: Settings) -> int:
    addUpstreamRemotes()
    return 0



def _cmdLatestCommits(args: argparse.Namespace, settings: Settings) -> int:
    commits = listLatestUpstreamCommits()
    logger.info("Submodule commit dates from oldest to latest:")
    for commit in commits:
        print(f"{commit.path}: {commit.date}")
    return 0



def _cmdPullUpstream(args: argparse.Namespace, settings: Settings) -> int:
    outcome = pullUpstreamUpdates()
    return 0 if all(outcome.values()) or not args.strict else 1



# ----- gitignore -----

def _submoduleDirsOrFail(args: argparse.Namespace, settings: Settings) -> list[Path]:
    root = _modsRoot(args, settings)
    logger.info("Searching for git repositories in: %s", root)
    logger.info("-------------------------------------------")
    dirs = findSubmoduleDirs(root)
    if not dirs:
        raise ModToolsError(
            f"No git repositories (submodules) found in '{root}'. "
            "Check if the submodules are initialized with 'git submodule status'"
        )
    logger.info("Found %d git repositories", len(dirs))
    logger.info("-------------------------------------------")
    return dirs



def _cmdAddSentinel(args: argparse.Namespace, settings: Settings) -> int:
    failed = 0
    for directory in _submoduleDirsOrFail(args, settings):
        logger.info("Processing submodule: %s", directory.name)
        try:
            addSentinelToGitignore(directory)
        except OSError as err:
            logger.error("  Error processing %s: %s", directory.name, err)
            failed += 1
    logger.info("Done! .lovelyignore has been added to .gitignore in all submodules.")
    return 1 if failed else 0



def _cmdDedupeSentinel(args: argparse.Namespace, settings: Settings) -> int:
    failed = 0
    for directory in _submoduleDirsOrFail(args, settings):
        logger.info("Processing submodule: %s", directory.name)
        try:
            removeDuplicateSentinel(directory)
        except OSError as err:
            logger.error("  Error processing %s: %s", directory.name, err)
            failed += 1
    logger.info("Done! Duplicate .lovelyignore entries have been removed from all .gitignore files.")
    return 1 if failed else 0



# ----- parser -----

def _addRoot(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--root", help="Mod directory (default: mods.root setting)")



def _addBisectOptions(parser: argparse.ArgumentParser) -> None:
    _addRoot(parser)
    parser.add_argument("--selection", choices=["random", "positional"], help="How half of a set is picked")
    parser.add_argument("--seed", type=int, help="Seed for random selection")
    parser.add_argument("--max-trials", type=int, help="Stop after this many trials")
    parser.add_argument("--no-checkpoint", action="store_true", help="Do not read or write the fine-mods file")



def buildParser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="modtools", description="Mod collection tooling")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Extra settings file (json5), applied last")
    parser.add_argument("--log-level", help="Console log level (default: logging.level setting)")
    sub = parser.add_subparsers(dest="cmd")

    listp = sub.add_parser("list-mods", help="List discovered mods by name")
    _addRoot(listp)
    listp.add_argument("--json", action="store_true", help="Dump full metadata as JSON")
    listp.add_argument("--status", action="store_true", help="Mark disabled mods")
    listp.set_defaults(handler=_cmdListMods)

    for name, verb in (("enable", "Enable"), ("disable", "Disable")):
        togglep = sub.add_parser(name, help=f"{verb} mods by name or id")
        _addRoot(togglep)
        togglep.add_argument("names", nargs="*", help="Mod names or ids")
        togglep.add_argument("--all", action="store_true", help=f"{verb} every mod")
        togglep.set_defaults(handler=_cmdToggle)

    bisectp = sub.add_parser("bisect", help="Interactive crash search")
    _addBisectOptions(bisectp)
    bisectp.set_defaults(handler=_cmdBisect)

    autop = sub.add_parser("bisect-auto", help="Crash search driven by the game harness")
    _addBisectOptions(autop)
    autop.add_argument("--rounds", type=int, help="Trials per configuration")
    autop.set_defaults(handler=_cmdBisectAuto)

    benchp = sub.add_parser("bench", help="Measure FPS for mod subsets")
    _addRoot(benchp)
    benchp.add_argument("--file", help="Subsets file (default: bench.file setting)")
    benchp.add_argument("--limit", type=int, help="Number of subsets to run")
    benchp.set_defaults(handler=_cmdBench)

    subm = sub.add_parser("submodules", help="Submodule upkeep")
    submSub = subm.add_subparsers(dest="subcmd", required=True)
    submSub.add_parser("update-branches", help="Detect and track default branches").set_defaults(handler=_cmdUpdateBranches)
    branchesp = submSub.add_parser("list-branches", help="List branches of each mod checkout")
    _addRoot(branchesp)
    branchesp.set_defaults(handler=_cmdListBranches)
    submSub.add_parser("sort", help="Sort .gitmodules by name").set_defaults(handler=_cmdSortSubmodules)
    submSub.add_parser("add-upstream", help="Add fork parents as 'upstream'").set_defaults(handler=_cmdAddUpstream)
    submSub.add_parser("latest-commits", help="Latest upstream commit per submodule").set_defaults(handler=_cmdLatestCommits)
    pullp = submSub.add_parser("pull-upstream", help="Interactively pull upstream changes")
    pullp.add_argument("--strict", action="store_true", help="Exit 1 when any pull was skipped or failed")
    pullp.set_defaults(handler=_cmdPullUpstream)

    ignp = sub.add_parser("gitignore", help="Sentinel entries in submodule .gitignore files")
    ignSub = ignp.add_subparsers(dest="subcmd", required=True)
    for name, handler, text in (
        ("add-sentinel", _cmdAddSentinel, "Add .lovelyignore to every submodule .gitignore"),
        ("dedupe-sentinel", _cmdDedupeSentinel, "Remove duplicate .lovelyignore lines"),
    ):
        cmdp = ignSub.add_parser(name, help=text)
        _addRoot(cmdp)
        cmdp.set_defaults(handler=handler)

    return parser



def main(argv: list[str] | None = None) -> int:
    parser = buildParser()
    args = parser.parse_args(argv)
    handler: Handler | None = getattr(args, "handler", None)

    try:
        settings = loadSettings(args.config)
    except SettingsError as err:
        configureLogging(args.log_level or "INFO")
        logger.error("%s", err)
        return 1

    configureLogging(
        args.log_level or settings.logging.level,
        logFile=settings.logging.file,
        jsonFile=settings.logging.json_,
    )

    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args, settings)
    except ModToolsError as err:
        logger.error("%s", err)
        return 1
    except EOFError:
        logger.error("Input closed before an answer was given")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
