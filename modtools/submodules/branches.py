# modtools/submodules/branches.py
from __future__ import annotations
import logging
import re
from pathlib import Path

from git import Git, GitCommandError

from modtools.app.settings import GitHubSettings
from modtools.core.errors import ModRootNotFoundError
from modtools.submodules.github import getGitHubDefaultBranch, parseGitHubOwnerRepo
from modtools.submodules.gitmodules import GITMODULES_NAME, SubmoduleRecord, loadSubmodules

logger = logging.getLogger(__name__)

__all__ = [
    "determineBranchLocally", "determineBranchWithLsRemote", "determineBranchFromGitHubAPI",
    "determineDefaultBranch", "updateSubmoduleConfig", "checkoutSubmoduleBranch",
    "updateSubmoduleBranches", "listSubmoduleBranches",
]


_HEAD_BRANCH_RE = re.compile(r"HEAD branch: (?P<branch>.+)")
_SYMREF_RE = re.compile(r"ref: refs/heads/(?P<branch>\S+)\s+HEAD")



def _describe(err: GitCommandError) -> str:
    return str(err.stderr).strip() or f"exit code {err.status}"



def determineBranchLocally(path: str | Path) -> str | None:
    """`git remote show origin` inside an existing checkout."""
    checkout = Path(path)
    if not (checkout / ".git").exists():
        return None
    try:
        output = Git(str(checkout)).remote("show", "origin")
    except GitCommandError:
        return None
    match = _HEAD_BRANCH_RE.search(output)
    if match is None:
        return None
    branch = match.group("branch").strip()
    if not branch or branch == "(unknown)":
        return None
    logger.info("Determined default branch using 'git remote show origin': %s", branch)
    return branch



def determineBranchWithLsRemote(url: str) -> str | None:
    try:
        output = Git().ls_remote("--symref", url, "HEAD")
    except GitCommandError:
        return None
    match = _SYMREF_RE.search(output)
    if match is None:
        return None
    branch = match.group("branch").strip()
    logger.info("Determined default branch using git ls-remote: %s", branch)
    return branch



def determineBranchFromGitHubAPI(
    url: str,
    *,
    settings: GitHubSettings | None = None,
    token: str | None = None,
) -> str | None:
    ownerRepo = parseGitHubOwnerRepo(url)
    if ownerRepo is None:
        return None
    branch = getGitHubDefaultBranch(*ownerRepo, settings=settings, token=token)
    if branch:
        logger.info("Determined default branch from GitHub API: %s", branch)
    return branch



def determineDefaultBranch(
    path: str | Path,
    url: str,
    *,
    settings: GitHubSettings | None = None,
    token: str | None = None,
) -> str | None:
    """Try the local checkout, then ls-remote, then the GitHub API."""
    return (
        determineBranchLocally(path)
        or determineBranchWithLsRemote(url)
        or determineBranchFromGitHubAPI(url, settings=settings, token=token)
    )



def updateSubmoduleConfig(root: Path, submodule: SubmoduleRecord, branch: str) -> None:
    """Record `branch` in .gitmodules, then sync and update the submodule."""
    git = Git(str(root))
    steps = (
        ("writing branch for", lambda: git.config("-f", GITMODULES_NAME, f"submodule.{submodule.name}.branch", branch)),
        ("syncing", lambda: git.submodule("sync", submodule.path)),
        ("updating", lambda: git.submodule("update", "--remote", submodule.path)),
    )
    for what, step in steps:
        try:
            step()
        except GitCommandError as err:
            logger.error("Error %s %s: %s", what, submodule.name, _describe(err), extra={"submodule": submodule.name})



def checkoutSubmoduleBranch(checkout: Path, branch: str, name: str) -> bool:
    """Check out `branch`, reusing a local branch or creating one that tracks origin."""
    git = Git(str(checkout))
    try:
        git.show_ref("--verify", "--quiet", f"refs/heads/{branch}")
        exists = True
    except GitCommandError:
        exists = False

    try:
        if exists:
            git.checkout(branch)
            git.branch("--set-upstream-to", f"origin/{branch}", branch)
        else:
            git.checkout("-b", branch, "--track", f"origin/{branch}")
    except GitCommandError as err:
        logger.error("Error checking out branch for %s: %s", name, _describe(err), extra={"submodule": name})
        return False
    return True



def updateSubmoduleBranches(
    root: str | Path | None = None,
    *,
    settings: GitHubSettings | None = None,
    token: str | None = None,
) -> dict[str, str | None]:
    """
    Make every submodule track a branch.

    Submodules without a configured branch get their default branch detected
    and written to .gitmodules. Returns {name: branch or None when skipped}.
    """
    base = Path(root or Path.cwd())
    outcome: dict[str, str | None] = {}
    logger.info("Processing submodules...")

    for submodule in loadSubmodules(base):
        context = {"submodule": submodule.name}
        logger.info("-----------------------------")
        logger.info("Submodule: %s", submodule.name, extra=context)
        logger.info("Path: %s", submodule.path, extra=context)
        logger.info("URL: %s", submodule.url, extra=context)

        checkout = base / submodule.path
        branch = submodule.branch
        if not branch:
            branch = determineDefaultBranch(checkout, submodule.url, settings=settings, token=token)
            if not branch:
                logger.info(
                    "Could not determine default branch for %s (URL: %s). Skipping...",
                    submodule.name, submodule.url, extra=context,
                )
                outcome[submodule.name] = None
                continue
            logger.info("Default branch for %s determined dynamically is: %s", submodule.name, branch, extra=context)
            updateSubmoduleConfig(base, submodule, branch)

        checkoutSubmoduleBranch(checkout, branch, submodule.name)
        outcome[submodule.name] = branch

    return outcome



def listSubmoduleBranches(modsRoot: str | Path) -> dict[str, list[str]]:
    """For each git checkout directly under `modsRoot`, its non-current, non-HEAD branches."""
    root = Path(modsRoot)
    if not root.is_dir():
        raise ModRootNotFoundError(root)

    listing: dict[str, list[str]] = {}
    for entry in sorted(root.iterdir(), key=lambda item: item.name.casefold()):
        if not entry.is_dir() or not (entry / ".git").exists():
            continue
        try:
            output = Git(str(entry)).branch("-a")
        except GitCommandError as err:
            logger.error("Error reading branches for %s: %s", entry.name, _describe(err), extra={"submodule": entry.name})
            continue
        branches = [
            line.strip() for line in output.splitlines()
            if line.strip() and not line.strip().startswith("*") and "HEAD" not in line
        ]
        if branches:
            listing[entry.name] = branches
    return listing
