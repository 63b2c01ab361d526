# modtools/app/settings.py
from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Any, Literal, cast

import json5
from pydantic import BaseModel, ConfigDict, Field, JsonValue, ValidationError

from modtools.core.errors import SettingsError

logger = logging.getLogger(__name__)

__all__ = [
    "USER_SETTINGS_PATH", "PROJECT_SETTINGS_NAME", "DEFAULT_SETTINGS",
    "Settings", "ModsSettings", "BisectSettings", "HarnessSettings",
    "BenchSettings", "GitHubSettings", "LoggingSettings",
    "deepMerge", "loadSettingsFile", "loadSettings",
]


USER_SETTINGS_PATH = Path(os.path.expanduser("~/.modtools/modtools.json5"))
PROJECT_SETTINGS_NAME = "modtools.json5"

DEFAULT_SETTINGS: dict[str, JsonValue] = {
    "mods": {"root": "Mods"},
    "bisect": {
        "pinnedFine": [],
        "pinnedFaulty": [],
        "fineModsFile": "fine_mods.json",
        "persistFineMods": True,
        "selection": "random",
        "maxTrials": None,
    },
    "harness": {
        "gameCommand": [],
        "gameEnv": {},
        "controlCommand": [],
        "botConfigPath": None,
        "botConfig": None,
        "successPattern": r"BENCH:FPS:(?P<fps>\d+(?:\.\d+)?)",
        "crashExitCode": 42,
        "timeoutSeconds": 300.0,
        "roundsPerConfig": 3,
        "launchDelaySeconds": 10.0,
        "teardownDelaySeconds": 2.0,
    },
    "bench": {
        "file": "bench.json",
        "limit": 10,
        "alwaysEnabled": ["Balabench", "Balatest", "DebugPlus"],
    },
    "github": {
        "apiUrl": "https://api.github.com",
        "tokenEnv": "GITHUB_TOKEN",
        "timeoutMs": 15_000,
        "retries": 2,
    },
    "logging": {"level": "INFO", "file": None, "json": True},
}



class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")



class ModsSettings(_Section):
    root: str = "Mods"



class BisectSettings(_Section):
    """Pins are matched against mod names, the same key the checkpoint file stores."""
    pinnedFine: list[str] = Field(default_factory=list)
    pinnedFaulty: list[str] = Field(default_factory=list)
    fineModsFile: str = "fine_mods.json"
    persistFineMods: bool = True
    selection: Literal["random", "positional"] = "random"
    maxTrials: int | None = Field(default=None, ge=1)



class HarnessSettings(_Section):
    gameCommand: list[str] = Field(default_factory=list)
    gameEnv: dict[str, str] = Field(default_factory=dict)
    controlCommand: list[str] = Field(default_factory=list)
    botConfigPath: str | None = None
    botConfig: str | None = None
    successPattern: str = r"BENCH:FPS:(?P<fps>\d+(?:\.\d+)?)"
    crashExitCode: int = 42
    timeoutSeconds: float = Field(default=300.0, gt=0)
    roundsPerConfig: int = Field(default=3, ge=1)
    launchDelaySeconds: float = Field(default=10.0, ge=0)
    teardownDelaySeconds: float = Field(default=2.0, ge=0)



class BenchSettings(_Section):
    file: str = "bench.json"
    limit: int | None = Field(default=10, ge=0)
    alwaysEnabled: list[str] = Field(default_factory=list)



class GitHubSettings(_Section):
    apiUrl: str = "https://api.github.com"
    tokenEnv: str = "GITHUB_TOKEN"
    timeoutMs: int = 15_000
    retries: int = 2



class LoggingSettings(_Section):
    level: str = "INFO"
    file: str | None = None
    json_: bool = Field(default=True, alias="json")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)



class Settings(_Section):
    mods: ModsSettings = Field(default_factory=ModsSettings)
    bisect: BisectSettings = Field(default_factory=BisectSettings)
    harness: HarnessSettings = Field(default_factory=HarnessSettings)
    bench: BenchSettings = Field(default_factory=BenchSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def githubToken(self) -> str | None:
        token = os.environ.get(self.github.tokenEnv, "").strip()
        return token or None



def deepMerge(first: JsonValue, second: JsonValue) -> JsonValue:
    """
    Returns a new JsonValue where keys from `second` override/extend `first`.
    Only merges recursively when BOTH sides are JSON objects (dicts).
    For all other JSON types the right-hand value `second` replaces `first`.
    """
    if isinstance(first, dict) and isinstance(second, dict):
        out: dict[str, JsonValue] = dict(first)
        for key, value in second.items():
            if key in out:
                out[key] = deepMerge(out[key], cast(JsonValue, value))
            else:
                out[key] = cast(JsonValue, value)
        return cast(JsonValue, out)
    return cast(JsonValue, second)



def loadSettingsFile(path: Path) -> dict[str, Any]:
    try:
        parsed = json5.loads(path.read_text(encoding="utf-8"))
    except Exception as err:
        raise SettingsError(f"Failed to parse settings file '{path}': {err}") from err
    if not isinstance(parsed, dict):
        raise SettingsError(
            f"Settings file '{path}' must contain an object, not '{type(parsed).__name__}'"
        )
    return parsed



def loadSettings(
    explicitPath: str | Path | None = None,
    *,
    cwd: Path | None = None,
    userPath: Path | None = None,
) -> Settings:
    """
    Merge built-in defaults with the user file, the project file in `cwd`
    and an explicit file (highest precedence), then validate.

    Missing user/project files are skipped; a missing explicit file is an error.
    """
    merged: JsonValue = cast(JsonValue, DEFAULT_SETTINGS)
    layers: list[Path] = [
        userPath if userPath is not None else USER_SETTINGS_PATH,
        (cwd or Path.cwd()) / PROJECT_SETTINGS_NAME,
    ]
    for layer in layers:
        if layer.is_file():
            logger.debug("Loading settings layer '%s'", layer)
            merged = deepMerge(merged, cast(JsonValue, loadSettingsFile(layer)))

    if explicitPath is not None:
        explicit = Path(explicitPath)
        if not explicit.is_file():
            raise SettingsError(f"Settings file '{explicit}' not found")
        merged = deepMerge(merged, cast(JsonValue, loadSettingsFile(explicit)))

    try:
        return Settings.model_validate(merged)
    except ValidationError as err:
        raise SettingsError(f"Invalid settings: {err}") from err
