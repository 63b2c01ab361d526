# modtools/submodules/github.py
from __future__ import annotations
import logging
import re

from modtools.app.settings import GitHubSettings
from modtools.core.errors import HTTPError
from modtools.http.client import request

logger = logging.getLogger(__name__)

__all__ = ["parseGitHubOwnerRepo", "getGitHubDefaultBranch"]


_GITHUB_URL_RE = re.compile(r"github\.com[/:](?P<owner>[^/]+)/(?P<repo>[^./]+)(?:\.git)?$")



def parseGitHubOwnerRepo(url: str) -> tuple[str, str] | None:
    """
    Extract (owner, repo) from an https or ssh GitHub URL.

        https://github.com/owner/repo.git -> ("owner", "repo")
        git@github.com:owner/repo         -> ("owner", "repo")
    """
    match = _GITHUB_URL_RE.search(url.strip())
    if match is None:
        return None
    return match.group("owner"), match.group("repo")



def getGitHubDefaultBranch(
    owner: str,
    repo: str,
    *,
    settings: GitHubSettings | None = None,
    token: str | None = None,
) -> str | None:
    """Ask the REST API for a repository's default branch; None when unavailable."""
    cfg = settings or GitHubSettings()
    headers = {"Accept": "application/vnd.github+json"}
    if token:
        headers["Authorization"] = f"token {token}"

    logger.info("Querying GitHub API for default branch of %s/%s...", owner, repo)
    try:
        result = request(
            "GET",
            f"{cfg.apiUrl.rstrip('/')}/repos/{owner}/{repo}",
            headers=headers,
            timeoutMs=cfg.timeoutMs,
            retries=cfg.retries,
        )
    except HTTPError as err:
        logger.error("API request to GitHub for repository %s/%s failed: HTTP %d", owner, repo, err.status)
        return None
    except RuntimeError as err:
        logger.error("Error fetching GitHub API: %s", err)
        return None

    payload = result.get("json")
    if not isinstance(payload, dict):
        return None
    branch = payload.get("default_branch")
    return branch if isinstance(branch, str) and branch else None
