# modtools/mods/metadata.py
from __future__ import annotations
import re
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel, ConfigDict, Field, StrictBool, StrictInt, StringConstraints,
    field_validator, model_validator,
)

__all__ = [
    "RESERVED_IDS", "SCRIPT_EXTENSION", "DEFAULT_BADGE_COLOUR", "DEFAULT_BADGE_TEXT_COLOUR",
    "BareDependency", "VersionedDependency", "DependencySpec", "Mod",
    "camelKey", "normalizeRawMetadata",
]


RESERVED_IDS = frozenset({"Steamodded", "Lovely", "Balatro"})
SCRIPT_EXTENSION = ".lua"
DEFAULT_BADGE_COLOUR = "666665"
DEFAULT_BADGE_TEXT_COLOUR = "FFFFFF"

NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]
HexColour = Annotated[str, StringConstraints(pattern=r"^(?:[0-9A-Fa-f]{6}|[0-9A-Fa-f]{8})$")]

_WORD_RE = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|[0-9]+")



def camelKey(key: str) -> str:
    """
    Normalize a metadata key to camelCase.

        "main_file"    -> "mainFile"
        "badge-colour" -> "badgeColour"
        "DisplayName"  -> "displayName"
        "MOD_ID"       -> "modId"
    """
    words = _WORD_RE.findall(str(key))
    if not words:
        return str(key)
    head, *rest = (word.lower() for word in words)
    return head + "".join(word.capitalize() for word in rest)



def normalizeRawMetadata(raw: dict[str, Any]) -> dict[str, Any]:
    """camelCase every key and drop empty-string values."""
    return {camelKey(key): value for key, value in raw.items() if value != ""}



class BareDependency(BaseModel):
    """A dependency/conflict given as just a mod id."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["bare"] = "bare"
    id: NonEmptyStr

    def __str__(self) -> str:
        return self.id



class VersionedDependency(BaseModel):
    """A dependency/conflict with optional inclusive version bounds."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["versioned"] = "versioned"
    id: NonEmptyStr
    minVersion: NonEmptyStr | None = None
    maxVersion: NonEmptyStr | None = None

    def __str__(self) -> str:
        bounds = []
        if self.minVersion:
            bounds.append(f">={self.minVersion}")
        if self.maxVersion:
            bounds.append(f"<={self.maxVersion}")
        return f"{self.id} ({' '.join(bounds)})" if bounds else self.id



DependencySpec = Annotated[BareDependency | VersionedDependency, Field(discriminator="kind")]



def _tagDependencies(value: Any) -> Any:
    if not isinstance(value, list):
        return value
    out: list[Any] = []
    for entry in value:
        if isinstance(entry, str):
            out.append({"kind": "bare", "id": entry})
        elif isinstance(entry, dict):
            tagged = normalizeRawMetadata(entry)
            tagged.setdefault("kind", "versioned")
            out.append(tagged)
        else:
            out.append(entry)
    return out



class Mod(BaseModel):
    """
    One discovered mod, validated from JSON metadata or a script header.

    Unknown keys are ignored; `enabled` is not part of the metadata and is
    filled in by the registry from the sentinel file.
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: NonEmptyStr
    author: list[NonEmptyStr] = Field(min_length=1)
    badgeColour: HexColour = DEFAULT_BADGE_COLOUR
    badgeTextColour: HexColour = DEFAULT_BADGE_TEXT_COLOUR
    conflicts: list[DependencySpec] = Field(default_factory=list)
    dependencies: list[DependencySpec] = Field(default_factory=list)
    description: NonEmptyStr
    displayName: NonEmptyStr | None = None
    dumpLoc: StrictBool = False
    mainFile: NonEmptyStr
    name: NonEmptyStr
    path: NonEmptyStr
    prefix: NonEmptyStr
    priority: StrictInt = 0
    provides: list[NonEmptyStr] = Field(default_factory=list)
    version: NonEmptyStr | None = None
    enabled: bool = True

    @model_validator(mode="before")
    @classmethod
    def _normalizeKeys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        normalized = normalizeRawMetadata(data)
        if "displayName" not in normalized and "name" in normalized:
            normalized["displayName"] = normalized["name"]
        return normalized

    @field_validator("id")
    @classmethod
    def _rejectReservedIds(cls, value: str) -> str:
        if value in RESERVED_IDS:
            raise ValueError(f"Mod id {value!r} is reserved ({', '.join(sorted(RESERVED_IDS))} are disallowed)")
        return value

    @field_validator("mainFile")
    @classmethod
    def _requireScriptExtension(cls, value: str) -> str:
        if not value.endswith(SCRIPT_EXTENSION):
            raise ValueError(f"mainFile must end with {SCRIPT_EXTENSION!r}")
        return value

    @field_validator("conflicts", "dependencies", mode="before")
    @classmethod
    def _tagDependencyEntries(cls, value: Any) -> Any:
        return _tagDependencies(value)

    @property
    def directory(self) -> Path:
        """Directory holding the metadata source; the sentinel file lives here."""
        return Path(self.path).parent
