# modtools/mods/header.py
from __future__ import annotations
import os
import re
from typing import Any

from modtools.mods.metadata import Mod

__all__ = ["HEADER_MARKER", "PREFIX_LENGTH", "HeaderError", "hasModHeader", "parseHeaderBlock", "parseModHeader"]


HEADER_MARKER = "--- STEAMODDED HEADER"
COMMENT_MARKER_LENGTH = 4
PREFIX_LENGTH = 4

# First "---" line up to (not including) the first line that is not a "--- " comment
_HEADER_BLOCK_RE = re.compile(r"^---.+?(?=^(?!--- ))", re.MULTILINE | re.DOTALL)

# alias -> canonical key; applied only when the canonical key is absent
_KEY_ALIASES: tuple[tuple[str, str], ...] = (
    ("BADGE_COLOR", "BADGE_COLOUR"),
    ("BADGE_TEXT_COLOR", "BADGE_TEXT_COLOUR"),
    ("DEPS", "DEPENDS"),
    ("DEPENDS", "DEPENDENCIES"),
)



class HeaderError(ValueError):
    """Raised when a script does not carry a usable header block."""



def hasModHeader(content: str) -> bool:
    return content.startswith(HEADER_MARKER)



def parseHeaderBlock(content: str) -> dict[str, str]:
    """
    Split the leading `--- KEY: value` comment block into a dict.

    Each line loses its 4-char marker and is split on the first colon only, so
    values such as URLs keep their colons. Lines without a colon and empty
    values are dropped.
    """
    match = _HEADER_BLOCK_RE.search(content.replace("\r\n", "\n"))
    if match is None:
        raise HeaderError("Invalid mod header")

    fields: dict[str, str] = {}
    for line in match.group(0).strip().split("\n"):
        body = line.strip()[COMMENT_MARKER_LENGTH:]
        key, sep, value = body.partition(":")
        if not sep:
            continue
        key = key.strip()
        value = value.strip()
        if key and value:
            fields[key] = value
    return fields



def _splitList(value: str | None) -> list[str]:
    if value is None:
        return []
    inner = value
    if inner.startswith("[") and inner.endswith("]"):
        inner = inner[1:-1]
    return [item.strip() for item in inner.split(",") if item.strip()]



def parseModHeader(content: str, path: str) -> Mod:
    """
    Build a Mod from a legacy script header.

    Raises HeaderError when the block is missing and pydantic's
    ValidationError when the resulting metadata is invalid.
    """
    fields = parseHeaderBlock(content)
    for alias, canonical in _KEY_ALIASES:
        if canonical not in fields and alias in fields:
            fields[canonical] = fields[alias]

    modId = fields.get("MOD_ID")
    if not modId:
        raise HeaderError("Header has no MOD_ID")

    priorityText = fields.get("PRIORITY", "0")
    try:
        priority: Any = int(priorityText)
    except ValueError:
        # Left as text so validation rejects it with a proper message
        priority = priorityText

    raw: dict[str, Any] = {
        "id": modId,
        "author": _splitList(fields.get("MOD_AUTHOR")),
        "badgeColour": fields.get("BADGE_COLOUR"),
        "badgeTextColour": fields.get("BADGE_TEXT_COLOUR"),
        "conflicts": _splitList(fields.get("CONFLICTS")),
        "dependencies": _splitList(fields.get("DEPENDENCIES")),
        "description": fields.get("MOD_DESCRIPTION"),
        "displayName": fields.get("DISPLAY_NAME"),
        "mainFile": os.path.basename(path),
        "name": fields.get("MOD_NAME"),
        "path": path,
        "prefix": fields.get("PREFIX") or modId[:PREFIX_LENGTH].lower(),
        "priority": priority,
        "version": fields.get("VERSION"),
    }
    return Mod.model_validate({key: value for key, value in raw.items() if value is not None})
