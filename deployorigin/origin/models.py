"""Structured cache derived from an origin document.

Document keys are collected here as well so the parser and the mutation
code agree on one schema.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# --- Document schema ---

ORIGIN = "origin"
PACKAGES = "packages"
OVERRIDES = "overrides"
RPMOSTREE = "rpmostree"

REFSPEC = "refspec"
BASEREFSPEC = "baserefspec"
OVERRIDE_COMMIT = "override-commit"
CUSTOM_URL = "custom-url"
CUSTOM_DESCRIPTION = "custom-description"
UNCONFIGURED_STATE = "unconfigured-state"
UNLOCKED = "unlocked"

REQUESTED = "requested"
REQUESTED_LOCAL = "requested-local"

REMOVE = "remove"
REPLACE_LOCAL = "replace-local"

REGENERATE_INITRAMFS = "regenerate-initramfs"
INITRAMFS_ARGS = "initramfs-args"
INITRAMFS_ETC = "initramfs-etc"
CLIWRAP = "ex-cliwrap"


class OverrideKind(Enum):
    """Kinds of base package overrides."""

    REMOVE = "remove"  # Drop a base package by name
    REPLACE_LOCAL = "replace-local"  # Swap in a local package by NEVRA


@dataclass(frozen=True)
class CustomOrigin:
    """Human-facing description of where a pinned commit came from."""

    url: str
    description: str

    def __post_init__(self) -> None:
        if not self.url or not self.description:
            raise ValueError("Custom origin requires both a URL and a description")


@dataclass
class PackageRequests:
    """Packages layered on top of the base image."""

    remote: set[str] = field(default_factory=set)  # Names or provides
    local: dict[str, str] = field(default_factory=dict)  # NEVRA -> sha256

    def copy(self) -> PackageRequests:
        return PackageRequests(remote=set(self.remote), local=dict(self.local))


@dataclass
class Overrides:
    """Changes to packages that are part of the base image."""

    remove: set[str] = field(default_factory=set)  # Bare package names
    replace_local: dict[str, str] = field(default_factory=dict)  # NEVRA -> sha256

    def copy(self) -> Overrides:
        return Overrides(remove=set(self.remove), replace_local=dict(self.replace_local))


@dataclass
class InitramfsConfig:
    """Client-side initramfs regeneration settings."""

    regenerate: bool = False
    args: list[str] = field(default_factory=list)  # Only used when regenerate is set
    etc_files: set[str] = field(default_factory=set)
