# modtools/submodules/upstream.py
from __future__ import annotations
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from git import Git, GitCommandError

from modtools.core.process import runCommand
from modtools.submodules.gitmodules import SubmoduleRecord, loadSubmodules

logger = logging.getLogger(__name__)

__all__ = [
    "UPSTREAM_REMOTE", "UpstreamCommit", "buildUpstreamUrl", "getParentOwner",
    "addUpstreamRemotes", "listLatestUpstreamCommits", "pullUpstreamUpdates", "confirm",
]


UPSTREAM_REMOTE = "upstream"
COMMIT_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_OWNER_REPO_TAIL_RE = re.compile(r"(?P<sep>[/:])(?P<owner>[^/:]+)/(?P<repo>[^/]+)$")



@dataclass(frozen=True)
class UpstreamCommit:
    path: str
    date: str

    @property
    def timestamp(self) -> datetime:
        return datetime.strptime(self.date, COMMIT_DATE_FORMAT)



def confirm(prompt: str, *, askFn: Callable[[str], str] = input) -> bool:
    """Yes/no question defaulting to no."""
    return askFn(f"{prompt} (y/N) ").strip().lower() in ("y", "yes")



def buildUpstreamUrl(url: str, parentOwner: str) -> str:
    """
    Swap the owner segment of a fork URL for the parent's owner.

        https://github.com/me/repo.git + you -> https://github.com/you/repo.git
        git@github.com:me/repo.git + you     -> git@github.com:you/repo.git
    """
    match = _OWNER_REPO_TAIL_RE.search(url)
    if match is None:
        return url
    return f"{url[:match.start()]}{match.group('sep')}{parentOwner}/{match.group('repo')}"



def getParentOwner(url: str) -> str | None:
    result = runCommand(["gh", "repo", "view", url, "--json", "parent", "--jq", ".parent.owner.login"])
    if not result.success:
        logger.error("Failed to fetch original repo owner for %s: %s", url, result.stderr)
        return None
    owner = result.stdout.strip()
    return owner or None



def _describe(err: GitCommandError) -> str:
    return str(err.stderr).strip() or f"exit code {err.status}"



def _currentBranch(git: Git) -> str | None:
    try:
        branch = git.rev_parse("--abbrev-ref", "HEAD").strip()
    except GitCommandError:
        return None
    return branch if branch and branch != "HEAD" else None



def _fetchUpstream(git: Git, submodule: SubmoduleRecord) -> None:
    try:
        git.fetch(UPSTREAM_REMOTE)
    except GitCommandError as err:
        logger.warning(
            "Fetching %s failed for %s: %s", UPSTREAM_REMOTE, submodule.path, _describe(err),
            extra={"submodule": submodule.name},
        )



def addUpstreamRemotes(root: str | Path | None = None) -> dict[str, str | None]:
    """
    Add an `upstream` remote pointing at each fork's parent repository.

    Returns {submodule name: upstream url}, with None for skipped submodules.
    """
    base = Path(root or Path.cwd())
    added: dict[str, str | None] = {}
    for submodule in loadSubmodules(base):
        context = {"submodule": submodule.name}
        logger.info("Processing submodule: %s", submodule.name, extra=context)

        parentOwner = getParentOwner(submodule.url)
        if not parentOwner:
            logger.warning("Skipping %s as original owner could not be determined.", submodule.name, extra=context)
            added[submodule.name] = None
            continue

        upstreamUrl = buildUpstreamUrl(submodule.url, parentOwner)
        git = Git(str(base / submodule.path))
        try:
            remotes = git.remote().split()
            if UPSTREAM_REMOTE in remotes:
                logger.info("Upstream remote already exists for %s", submodule.name, extra=context)
            else:
                git.remote("add", UPSTREAM_REMOTE, upstreamUrl)
                logger.info("Added upstream remote for %s: %s", submodule.name, upstreamUrl, extra=context)
        except GitCommandError as err:
            logger.error("Failed to process submodule %s: %s", submodule.name, _describe(err), extra=context)
            added[submodule.name] = None
            continue
        added[submodule.name] = upstreamUrl

    logger.info("=== Finished adding upstream remotes ===")
    return added



def listLatestUpstreamCommits(root: str | Path | None = None) -> list[UpstreamCommit]:
    """Latest upstream commit date per submodule, oldest first."""
    base = Path(root or Path.cwd())
    logger.info("Fetching latest commit dates from upstream branches...")

    commits: list[UpstreamCommit] = []
    for submodule in loadSubmodules(base):
        context = {"submodule": submodule.name}
        git = Git(str(base / submodule.path))
        _fetchUpstream(git, submodule)
        branch = _currentBranch(git)
        if branch is None:
            logger.error("Failed to get current branch for %s", submodule.path, extra=context)
            continue
        try:
            date = git.log("-1", "--format=%cd", "--date=format:" + COMMIT_DATE_FORMAT, f"{UPSTREAM_REMOTE}/{branch}").strip()
        except GitCommandError as err:
            logger.error("Failed to get latest commit date for %s:\n%s", submodule.path, _describe(err), extra=context)
            continue
        if not date:
            logger.error("No upstream commits found for %s", submodule.path, extra=context)
            continue
        commits.append(UpstreamCommit(submodule.path, date))

    commits.sort(key=lambda commit: commit.timestamp)
    return commits



def pullUpstreamUpdates(
    root: str | Path | None = None,
    *,
    confirmFn: Callable[[str], bool] = confirm,
) -> dict[str, bool]:
    """
    Offer to pull upstream changes into each submodule that has any.

    Returns {submodule path: pulled} for submodules with pending upstream commits.
    """
    base = Path(root or Path.cwd())
    outcome: dict[str, bool] = {}
    submodules = loadSubmodules(base)
    if not submodules:
        logger.info("No submodules found in .gitmodules.")
        return outcome

    for submodule in submodules:
        context = {"submodule": submodule.name}
        git = Git(str(base / submodule.path))
        _fetchUpstream(git, submodule)
        branch = _currentBranch(git)
        if branch is None:
            continue

        try:
            pending = git.log("--oneline", f"HEAD..{UPSTREAM_REMOTE}/{branch}").strip()
        except GitCommandError:
            continue
        if not pending:
            continue

        logger.info("==== Processing submodule: %s ====", submodule.path, extra=context)
        try:
            repoUrl = git.config("--get", f"remote.{UPSTREAM_REMOTE}.url").strip()
        except GitCommandError:
            repoUrl = ""
        logger.info("Repo URL: %s", repoUrl, extra=context)
        logger.info("Updates available for %s:\n%s", submodule.path, pending, extra=context)

        if not confirmFn(f"Pull updates for {submodule.path}?"):
            logger.info("Skipping pull for %s.", submodule.path, extra=context)
            outcome[submodule.path] = False
            continue

        logger.info("Pulling from %s/%s into %s ...", UPSTREAM_REMOTE, branch, branch, extra=context)
        try:
            git.pull(UPSTREAM_REMOTE, branch, "--no-edit")
        except GitCommandError as err:
            logger.error("Failed to pull updates for %s:\n%s", submodule.path, _describe(err), extra=context)
            outcome[submodule.path] = False
            continue
        logger.info("Pull successful for %s.", submodule.path, extra=context)
        outcome[submodule.path] = True
    return outcome
