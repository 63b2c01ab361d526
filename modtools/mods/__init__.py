# modtools/mods/__init__.py
from .metadata import Mod, BareDependency, VersionedDependency, DependencySpec
from .registry import parseCandidate, scanMods, findDuplicates
from .toggle import SENTINEL_NAME, isModDisabled, disableMods, enableMods, applyPartition

__all__ = [
    "Mod",
    "BareDependency",
    "VersionedDependency",
    "DependencySpec",
    "parseCandidate",
    "scanMods",
    "findDuplicates",
    "SENTINEL_NAME",
    "isModDisabled",
    "disableMods",
    "enableMods",
    "applyPartition",
]
