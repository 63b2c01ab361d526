# modtools/submodules/gitmodules.py
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from git import Git, GitCommandError

from modtools.core.errors import ModToolsError

logger = logging.getLogger(__name__)

__all__ = [
    "GITMODULES_NAME", "ConfigSection", "SubmoduleRecord",
    "parseGitConfig", "renderGitConfig", "naturalKey",
    "readSubmoduleValues", "loadSubmodules", "sortGitmodules",
]


GITMODULES_NAME = ".gitmodules"
SUBMODULE_KEYS_REGEXP = r"^submodule\..*\.(path|url|branch)$"

_SECTION_RE = re.compile(r'^\s*\[\s*(?P<kind>[A-Za-z0-9.-]+)(?:\s+"(?P<name>(?:[^"\\]|\\.)*)")?\s*\]')
_KEY_RE = re.compile(r"^submodule\.(?P<name>.+)\.(?P<var>path|url|branch)$")
_DIGITS_RE = re.compile(r"(\d+)")



@dataclass
class ConfigSection:
    """One `[kind "name"]` block of a git config file, kept as its original lines."""
    kind: str
    name: str | None
    lines: list[str] = field(default_factory=list)



@dataclass(frozen=True)
class SubmoduleRecord:
    name: str
    path: str
    url: str
    branch: str | None = None



def parseGitConfig(text: str) -> tuple[list[str], list[ConfigSection]]:
    """
    Split git config text into the lines before the first section and the
    sections themselves. Comments and blank lines stay attached to the section
    they follow, so sections can be reordered without losing anything.
    Values are not interpreted here; git reads them (see readSubmoduleValues).
    """
    preamble: list[str] = []
    sections: list[ConfigSection] = []
    current: ConfigSection | None = None

    for line in text.splitlines():
        header = _SECTION_RE.match(line)
        if header is not None:
            name = header.group("name")
            current = ConfigSection(
                kind=header.group("kind").lower(),
                name=name.replace('\\"', '"') if name is not None else None,
                lines=[line],
            )
            sections.append(current)
        elif current is None:
            preamble.append(line)
        else:
            current.lines.append(line)

    return preamble, sections



def renderGitConfig(preamble: list[str], sections: list[ConfigSection]) -> str:
    lines = list(preamble)
    for section in sections:
        lines.extend(section.lines)
    return "\n".join(lines) + "\n" if lines else ""



def naturalKey(value: str) -> tuple[tuple[int, int | str], ...]:
    """Numeric-aware, case-insensitive sort key ("mod2" < "mod10")."""
    parts: list[tuple[int, int | str]] = []
    for chunk in _DIGITS_RE.split(value):
        if not chunk:
            continue
        parts.append((0, int(chunk)) if chunk.isdigit() else (1, chunk.casefold()))
    return tuple(parts)



def _gitmodulesPath(root: str | Path | None) -> Path:
    path = Path(root or Path.cwd()) / GITMODULES_NAME
    if not path.is_file():
        raise ModToolsError(f"No {GITMODULES_NAME} file found at '{path}'")
    return path



def readSubmoduleValues(root: str | Path | None = None) -> dict[str, dict[str, str]]:
    """
    {submodule name: {"path"|"url"|"branch": value}} as git itself reads
    `.gitmodules` (`git config -f .gitmodules --get-regexp`), in file order.
    """
    path = _gitmodulesPath(root)
    try:
        output = Git(str(path.parent)).config("-f", path.name, "--get-regexp", SUBMODULE_KEYS_REGEXP)
    except GitCommandError as err:
        # git config exits 1 when no key matches
        if err.status == 1:
            return {}
        raise ModToolsError(f"Could not read '{path}': {str(err.stderr).strip() or err}") from err

    values: dict[str, dict[str, str]] = {}
    for line in output.splitlines():
        key, _, value = line.partition(" ")
        match = _KEY_RE.match(key)
        if match is None:
            continue
        values.setdefault(match.group("name"), {})[match.group("var")] = value.strip()
    return values



def loadSubmodules(root: str | Path | None = None) -> list[SubmoduleRecord]:
    """Submodules declared in `.gitmodules` whose name, path and url are all non-empty."""
    records: list[SubmoduleRecord] = []
    for name, values in readSubmoduleValues(root).items():
        path = values.get("path", "")
        url = values.get("url", "")
        if not (name and path and url):
            logger.debug("Ignoring incomplete submodule section %r", name, extra={"submodule": name})
            continue
        records.append(SubmoduleRecord(name, path, url, values.get("branch") or None))
    return records



def sortGitmodules(root: str | Path | None = None) -> list[str]:
    """Rewrite `.gitmodules` with its sections in natural name order. Returns the new order."""
    path = _gitmodulesPath(root)
    preamble, sections = parseGitConfig(path.read_text(encoding="utf-8"))
    ordered = sorted(sections, key=lambda section: naturalKey(section.name or ""))
    path.write_text(renderGitConfig(preamble, ordered), encoding="utf-8")
    logger.info("Sorted %d section(s) in '%s'", len(ordered), path)
    return [section.name or "" for section in ordered]
