# modtools/core/errors.py
from __future__ import annotations

__all__ = [
    "ModToolsError", "ModRootNotFoundError", "SettingsError",
    "CommandError", "HTTPError",
]



class ModToolsError(Exception):
    """Base for every error the CLI reports instead of a traceback."""
    pass



class ModRootNotFoundError(ModToolsError):
    """Raised when the mod directory is missing. Nothing can be searched without it."""
    def __init__(self, root: object):
        super().__init__(f"Mod root directory does not exist: {root}")
        self.root = root



class SettingsError(ModToolsError):
    """Raised when a settings file cannot be parsed or fails validation."""
    pass



class CommandError(ModToolsError):
    """Raised when an external command (git, gh, the game) cannot be launched at all."""
    def __init__(self, args: list[str], reason: str):
        super().__init__(f"Failed to run {' '.join(args)!r}: {reason}")
        self.command = list(args)
        self.reason = reason



class HTTPError(ModToolsError):
    def __init__(self, status: int, body: str):
        super().__init__(f"HTTP {status}: {body[:200]}")
        self.status = status
        self.body = body
