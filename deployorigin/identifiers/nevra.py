"""Package identifier decomposition.

A NEVRA is ``name-[epoch:]version-release.arch``. Local packages are
recorded in the origin as ``<sha256>:<NEVRA>`` so the exact package file can
be found again.
"""

from __future__ import annotations

from dataclasses import dataclass

from deployorigin.errors import InvalidPackageEncoding
from deployorigin.identifiers.refspec import is_checksum

SHA256_HEXLEN = 64


@dataclass(frozen=True)
class Nevra:
    """The components of a package NEVRA."""

    name: str
    epoch: int
    version: str
    release: str
    arch: str

    @property
    def evr(self) -> str:
        prefix = f"{self.epoch}:" if self.epoch else ""
        return f"{prefix}{self.version}-{self.release}"

    def __str__(self) -> str:
        return f"{self.name}-{self.evr}.{self.arch}"


def decompose_nevra(nevra: str) -> Nevra:
    """Split a NEVRA string, parsing from the right.

    Raises:
        InvalidPackageEncoding: if any component is missing.
    """
    rest, dot, arch = nevra.rpartition(".")
    if not dot or not rest or not arch:
        raise InvalidPackageEncoding(f"Failed to find arch in '{nevra}'")

    rest, dash, release = rest.rpartition("-")
    if not dash or not rest or not release:
        raise InvalidPackageEncoding(f"Failed to find release in '{nevra}'")

    name, dash, version = rest.rpartition("-")
    if not dash or not name or not version:
        raise InvalidPackageEncoding(f"Failed to find version in '{nevra}'")

    epoch = 0
    if ":" in version:
        epoch_str, _, version = version.partition(":")
        if not epoch_str.isdigit() or not version:
            raise InvalidPackageEncoding(f"Invalid epoch in '{nevra}'")
        epoch = int(epoch_str)

    return Nevra(name=name, epoch=epoch, version=version, release=release, arch=arch)


def decompose_sha256_nevra(value: str) -> tuple[str, str]:
    """Split ``<sha256>:<NEVRA>`` into ``(nevra, sha256)``.

    Raises:
        InvalidPackageEncoding: if the checksum prefix or the NEVRA is invalid.
    """
    sha256 = value[:SHA256_HEXLEN]
    nevra = value[SHA256_HEXLEN + 1:]
    if value[SHA256_HEXLEN:SHA256_HEXLEN + 1] != ":" or not nevra or not is_checksum(sha256):
        raise InvalidPackageEncoding(f"Invalid SHA-256 NEVRA string: {value}")

    try:
        decompose_nevra(nevra)
    except InvalidPackageEncoding as e:
        raise InvalidPackageEncoding(f"Invalid SHA-256 NEVRA string: {value}: {e}") from e

    return nevra, sha256


def package_name(identifier: str) -> str:
    """Bare package name of a NEVRA string."""
    return decompose_nevra(identifier).name
