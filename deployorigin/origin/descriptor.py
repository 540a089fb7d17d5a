"""Origin descriptor — structured cache plus mutation API over an origin document.

The KeyFile is the single source of truth. The descriptor parses it once
into a cache (refspec, package requests, overrides, initramfs settings) and
every mutation then updates the cache and writes the change back to the
document. After any change that can affect local assembly the refspec is
moved between origin/refspec and origin/baserefspec, so that tools which
only understand plain branch upgrades never try one on a customized system.

Mutations are all-or-nothing: batches are applied to a copy of the affected
collection and only committed once every item has been accepted. The one
exception is rebase(), which clears the override commit before the new
refspec is classified.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from deployorigin.errors import (
    DuplicateOverride,
    DuplicateRequest,
    KeyFileError,
    MissingRefspec,
    NotRequested,
)
from deployorigin.identifiers.nevra import decompose_sha256_nevra, package_name
from deployorigin.identifiers.refspec import RefspecDescriptor, RefspecKind, classify_refspec
from deployorigin.keyfile import KeyFile, dumps, loads
from deployorigin.origin.models import (
    BASEREFSPEC,
    CLIWRAP,
    CUSTOM_DESCRIPTION,
    CUSTOM_URL,
    INITRAMFS_ARGS,
    INITRAMFS_ETC,
    ORIGIN,
    OVERRIDE_COMMIT,
    OVERRIDES,
    PACKAGES,
    REFSPEC,
    REGENERATE_INITRAMFS,
    REMOVE,
    REPLACE_LOCAL,
    REQUESTED,
    REQUESTED_LOCAL,
    RPMOSTREE,
    UNCONFIGURED_STATE,
    CustomOrigin,
    InitramfsConfig,
    OverrideKind,
    Overrides,
    PackageRequests,
)
from deployorigin.origin.transient import strip_transient_state

logger = logging.getLogger(__name__)


class OriginDescriptor:
    """How a deployment was derived, kept in sync with its origin document.

    Construct with parse() (or from_text()); a document that cannot be parsed
    raises and yields no object. Use duplicate() to get an independent copy
    before mutating on behalf of a second writer.
    """

    def __init__(self, kf: KeyFile):
        self._kf = kf.copy()

        refspec = self._kf.get_string(ORIGIN, REFSPEC)
        if refspec is None:
            refspec = self._kf.get_string(ORIGIN, BASEREFSPEC)
            if refspec is None:
                raise MissingRefspec(
                    "No origin/refspec, or origin/baserefspec in current deployment origin"
                )
        self._refspec: RefspecDescriptor = classify_refspec(refspec)

        self._override_commit: str | None = self._kf.get_string(ORIGIN, OVERRIDE_COMMIT)
        self._unconfigured_state: str | None = self._kf.get_string(ORIGIN, UNCONFIGURED_STATE)
        self._custom_origin: CustomOrigin | None = self._read_custom_origin()

        self._packages = PackageRequests(
            remote=set(self._read_list(PACKAGES, REQUESTED)),
            local=self._read_sha256_list(PACKAGES, REQUESTED_LOCAL),
        )
        self._overrides = Overrides(
            remove=set(self._read_list(OVERRIDES, REMOVE)),
            replace_local=self._read_sha256_list(OVERRIDES, REPLACE_LOCAL),
        )
        self._initramfs = InitramfsConfig(
            regenerate=self._read_flag(RPMOSTREE, REGENERATE_INITRAMFS),
            args=self._read_list(RPMOSTREE, INITRAMFS_ARGS),
            etc_files=set(self._read_list(RPMOSTREE, INITRAMFS_ETC)),
        )
        self._cliwrap = self._read_flag(RPMOSTREE, CLIWRAP)

    # --- Lifecycle ---

    @classmethod
    def parse(cls, kf: KeyFile) -> OriginDescriptor:
        """Build a descriptor from a document. The document is copied, not shared."""
        return cls(kf)

    @classmethod
    def from_text(cls, text: str) -> OriginDescriptor:
        return cls(loads(text))

    def duplicate(self) -> OriginDescriptor:
        """Independent copy made by re-serializing and re-parsing the document."""
        return OriginDescriptor(self._kf)

    def to_keyfile(self) -> KeyFile:
        return self._kf.copy()

    def to_text(self) -> str:
        return dumps(self._kf)

    def __repr__(self) -> str:
        return (
            f"OriginDescriptor(refspec={self._refspec.target!r}, "
            f"kind={self._refspec.kind.value}, "
            f"local_assembly={self.requires_local_assembly})"
        )

    # --- Accessors ---

    @property
    def refspec(self) -> RefspecDescriptor:
        return self._refspec

    @property
    def refspec_kind(self) -> RefspecKind:
        return self._refspec.kind

    @property
    def refspec_target(self) -> str:
        return self._refspec.target

    @property
    def override_commit(self) -> str | None:
        return self._override_commit

    @property
    def custom_origin(self) -> CustomOrigin | None:
        return self._custom_origin

    @property
    def unconfigured_state(self) -> str | None:
        return self._unconfigured_state

    @property
    def requested_packages(self) -> frozenset[str]:
        return frozenset(self._packages.remote)

    @property
    def requested_local_packages(self) -> Mapping[str, str]:
        """NEVRA -> sha256 of locally supplied packages."""
        return MappingProxyType(dict(self._packages.local))

    @property
    def overrides_remove(self) -> frozenset[str]:
        return frozenset(self._overrides.remove)

    @property
    def overrides_local_replace(self) -> Mapping[str, str]:
        """NEVRA -> sha256 of local packages replacing base packages."""
        return MappingProxyType(dict(self._overrides.replace_local))

    @property
    def initramfs_etc_files(self) -> frozenset[str]:
        return frozenset(self._initramfs.etc_files)

    @property
    def regenerate_initramfs(self) -> bool:
        return self._initramfs.regenerate

    @property
    def initramfs_args(self) -> tuple[str, ...]:
        return tuple(self._initramfs.args)

    @property
    def cliwrap(self) -> bool:
        return self._cliwrap

    @property
    def requires_local_assembly(self) -> bool:
        """Whether the origin hints that a new image must be assembled locally.

        False means a plain upgrade of the base is enough. True means it may
        not be (requested packages can turn out to already be in the base).
        """
        return (
            self._cliwrap
            or self._initramfs.regenerate
            or bool(self._initramfs.etc_files)
            or bool(self._packages.remote)
            or bool(self._packages.local)
            or bool(self._overrides.replace_local)
            or bool(self._overrides.remove)
        )

    def get_string(self, section: str, key: str) -> str | None:
        """Raw string lookup for keys the cache does not model."""
        return self._kf.get_string(section, key)

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view of every accessor, for JSON/YAML output."""
        custom = self._custom_origin
        return {
            "refspec": {
                "kind": self._refspec.kind.value,
                "target": self._refspec.target,
            },
            "requires_local_assembly": self.requires_local_assembly,
            "override_commit": self._override_commit,
            "custom_origin": (
                {"url": custom.url, "description": custom.description} if custom else None
            ),
            "unconfigured_state": self._unconfigured_state,
            "packages": {
                "requested": sorted(self._packages.remote),
                "requested_local": dict(sorted(self._packages.local.items())),
            },
            "overrides": {
                "remove": sorted(self._overrides.remove),
                "replace_local": dict(sorted(self._overrides.replace_local.items())),
            },
            "initramfs": {
                "regenerate": self._initramfs.regenerate,
                "args": list(self._initramfs.args),
                "etc_files": sorted(self._initramfs.etc_files),
            },
            "cliwrap": self._cliwrap,
        }

    # --- Refspec ---

    def rebase(self, refspec: str, custom_origin: CustomOrigin | None = None) -> None:
        """Point the origin at a new refspec.

        Any override commit is dropped first, and stays dropped even if the
        new refspec turns out to be invalid.

        Raises:
            InvalidRefspec: if the refspec cannot be classified.
            ValueError: if a custom origin is given for a refspec that is
                not a pinned commit.
        """
        self.set_override_commit(None)

        descriptor = classify_refspec(refspec)
        if custom_origin is not None and descriptor.kind != RefspecKind.PINNED_COMMIT:
            raise ValueError(f"Custom origins must be pinned commits, not '{refspec}'")

        key = BASEREFSPEC if self._kf.has_key(ORIGIN, BASEREFSPEC) else REFSPEC
        self._refspec = descriptor
        self._kf.set_string(ORIGIN, key, descriptor.target)

        if custom_origin is None:
            self._kf.remove_key(ORIGIN, CUSTOM_URL)
            self._kf.remove_key(ORIGIN, CUSTOM_DESCRIPTION)
        else:
            self._kf.set_string(ORIGIN, CUSTOM_URL, custom_origin.url)
            self._kf.set_string(ORIGIN, CUSTOM_DESCRIPTION, custom_origin.description)
        self._custom_origin = custom_origin

        logger.debug("Rebased to %s (%s)", descriptor.target, descriptor.kind.value)
        self._sync_refspec_key()

    def set_override_commit(self, checksum: str | None, version: str | None = None) -> None:
        """Pin (or unpin, with None) the commit to deploy, independent of the refspec."""
        if checksum is not None:
            self._kf.set_string(ORIGIN, OVERRIDE_COMMIT, checksum)
            comment = f"Version {version} [{checksum[:10]}]" if version is not None else None
            self._kf.set_comment(ORIGIN, OVERRIDE_COMMIT, comment)
        else:
            self._kf.remove_key(ORIGIN, OVERRIDE_COMMIT)
        self._override_commit = checksum

    def remove_transient_state(self) -> None:
        """Drop deployment-specific state before using the origin for a new deployment."""
        strip_transient_state(self._kf)
        self.set_override_commit(None)

    # --- Package requests ---

    def add_packages(
        self,
        packages: Iterable[str],
        local: bool = False,
        allow_existing: bool = False,
    ) -> bool:
        """Request packages. Local packages are given as ``<sha256>:<NEVRA>``.

        Returns whether anything changed.

        Raises:
            InvalidPackageEncoding: if a local package string is malformed.
            DuplicateRequest: if the exact string is already requested (remote
                or local) and allow_existing is False.
        """
        requests = self._packages.copy()
        changed = False

        for pkg in packages:
            sha256 = ""
            if local:
                pkg, sha256 = decompose_sha256_nevra(pkg)

            # Requested-local packages are treated like requested ones, so the
            # string must be unique across both for uninstall to be unambiguous.
            requested = pkg in requests.remote
            requested_local = pkg in requests.local
            if requested or requested_local:
                if allow_existing:
                    continue
                if requested:
                    raise DuplicateRequest(f"Package/capability '{pkg}' is already requested")
                raise DuplicateRequest(f"Package '{pkg}' is already layered")

            if local:
                requests.local[pkg] = sha256
            else:
                requests.remote.add(pkg)
            changed = True

        if not changed:
            return False

        self._packages = requests
        if local:
            self._write_sha256_list(PACKAGES, REQUESTED_LOCAL, requests.local)
        else:
            self._write_list(PACKAGES, REQUESTED, requests.remote)
        self._sync_refspec_key()
        return True

    def remove_packages(self, packages: Iterable[str], allow_noent: bool = False) -> bool:
        """Drop package requests.

        Each item may be a local NEVRA, a remote request string, or the bare
        name of a local package. Returns whether anything changed.

        Raises:
            NotRequested: if an item matches nothing and allow_noent is False.
        """
        requests = self._packages.copy()
        name_to_nevra = _name_index(requests.local)
        changed = False
        local_changed = False

        for pkg in packages:
            if pkg in requests.local:
                del requests.local[pkg]
                local_changed = True
            elif pkg in requests.remote:
                requests.remote.remove(pkg)
                changed = True
            elif name_to_nevra.get(pkg) in requests.local:
                del requests.local[name_to_nevra[pkg]]
                local_changed = True
            elif not allow_noent:
                raise NotRequested(f"Package/capability '{pkg}' is not currently requested")

        self._packages = requests
        if changed:
            self._write_list(PACKAGES, REQUESTED, requests.remote)
        if local_changed:
            self._write_sha256_list(PACKAGES, REQUESTED_LOCAL, requests.local)
        self._sync_refspec_key()
        return changed or local_changed

    def remove_all_packages(self) -> bool:
        changed = bool(self._packages.remote)
        local_changed = bool(self._packages.local)
        self._packages = PackageRequests()

        if changed:
            self._write_list(PACKAGES, REQUESTED, self._packages.remote)
        if local_changed:
            self._write_sha256_list(PACKAGES, REQUESTED_LOCAL, self._packages.local)
        if changed or local_changed:
            self._sync_refspec_key()
        return changed or local_changed

    # --- Overrides ---

    def add_overrides(self, packages: Iterable[str], kind: OverrideKind) -> None:
        """Add base package overrides.

        REMOVE takes bare package names; REPLACE_LOCAL takes ``<sha256>:<NEVRA>``.
        Unlike add_packages there is no way to tolerate existing entries.

        Raises:
            InvalidPackageEncoding: if a replacement string is malformed.
            DuplicateOverride: if the package is already overridden either way.
        """
        overrides = self._overrides.copy()
        replaced_names = set(_name_index(overrides.replace_local))
        changed = False

        for pkg in packages:
            if kind == OverrideKind.REPLACE_LOCAL:
                nevra, sha256 = decompose_sha256_nevra(pkg)
                if (
                    nevra in overrides.replace_local
                    or nevra in overrides.remove
                    or package_name(nevra) in overrides.remove
                ):
                    raise DuplicateOverride(f"Override already exists for package '{nevra}'")
                overrides.replace_local[nevra] = sha256
            elif kind == OverrideKind.REMOVE:
                if (
                    pkg in overrides.remove
                    or pkg in overrides.replace_local
                    or pkg in replaced_names
                ):
                    raise DuplicateOverride(f"Override already exists for package '{pkg}'")
                overrides.remove.add(pkg)
            else:
                raise ValueError(f"Unknown override kind: {kind!r}")
            changed = True

        if not changed:
            return

        self._overrides = overrides
        self._write_overrides(kind)
        self._sync_refspec_key()

    def remove_override(self, package: str, kind: OverrideKind) -> bool:
        """Remove one override of the given kind. Returns False if it does not exist."""
        overrides = self._overrides.copy()
        if kind == OverrideKind.REPLACE_LOCAL:
            if overrides.replace_local.pop(package, None) is None:
                return False
        elif kind == OverrideKind.REMOVE:
            if package not in overrides.remove:
                return False
            overrides.remove.remove(package)
        else:
            raise ValueError(f"Unknown override kind: {kind!r}")

        self._overrides = overrides
        self._write_overrides(kind)
        self._sync_refspec_key()
        return True

    def remove_all_overrides(self) -> bool:
        remove_changed = bool(self._overrides.remove)
        replace_changed = bool(self._overrides.replace_local)
        self._overrides = Overrides()

        if remove_changed:
            self._write_overrides(OverrideKind.REMOVE)
        if replace_changed:
            self._write_overrides(OverrideKind.REPLACE_LOCAL)
        if remove_changed or replace_changed:
            self._sync_refspec_key()
        return remove_changed or replace_changed

    # --- Initramfs ---

    def track_etc_files(self, paths: Iterable[str]) -> bool:
        """Include /etc files in the initramfs. Returns whether anything changed."""
        added = set(paths) - self._initramfs.etc_files
        if not added:
            return False
        self._initramfs.etc_files |= added
        self._write_list(RPMOSTREE, INITRAMFS_ETC, self._initramfs.etc_files)
        self._sync_refspec_key()
        return True

    def untrack_etc_files(self, paths: Iterable[str]) -> bool:
        removed = set(paths) & self._initramfs.etc_files
        if not removed:
            return False
        self._initramfs.etc_files -= removed
        self._write_list(RPMOSTREE, INITRAMFS_ETC, self._initramfs.etc_files)
        self._sync_refspec_key()
        return True

    def untrack_all_etc_files(self) -> bool:
        if not self._initramfs.etc_files:
            return False
        self._initramfs.etc_files = set()
        self._write_list(RPMOSTREE, INITRAMFS_ETC, self._initramfs.etc_files)
        self._sync_refspec_key()
        return True

    def set_regenerate_initramfs(self, regenerate: bool, args: list[str] | None = None) -> None:
        """Enable (with optional extra dracut args) or disable client-side initramfs.

        The cached args are re-read from the document afterwards, so they
        always reflect what was persisted rather than what was passed in.
        """
        if regenerate:
            self._kf.set_boolean(RPMOSTREE, REGENERATE_INITRAMFS, True)
            if args:
                self._kf.set_string_list(RPMOSTREE, INITRAMFS_ARGS, list(args))
            else:
                self._kf.remove_key(RPMOSTREE, INITRAMFS_ARGS)
        else:
            self._kf.remove_key(RPMOSTREE, REGENERATE_INITRAMFS)
            self._kf.remove_key(RPMOSTREE, INITRAMFS_ARGS)

        self._initramfs.regenerate = regenerate
        self._initramfs.args = self._read_list(RPMOSTREE, INITRAMFS_ARGS)
        self._sync_refspec_key()

    def set_cliwrap(self, enabled: bool) -> None:
        if enabled:
            self._kf.set_boolean(RPMOSTREE, CLIWRAP, True)
        else:
            self._kf.remove_key(RPMOSTREE, CLIWRAP)
        self._cliwrap = enabled
        self._sync_refspec_key()

    # --- Document projection ---

    def _sync_refspec_key(self) -> None:
        """Store the refspec under baserefspec iff local assembly may be required."""
        if self.requires_local_assembly:
            key, stale = BASEREFSPEC, REFSPEC
        else:
            key, stale = REFSPEC, BASEREFSPEC
        self._kf.set_string(ORIGIN, key, self._refspec.target)
        if self._kf.remove_key(ORIGIN, stale):
            logger.debug("Moved refspec from origin/%s to origin/%s", stale, key)

    def _write_list(self, section: str, key: str, values: Iterable[str]) -> None:
        items = sorted(values)
        if items:
            self._kf.set_string_list(section, key, items)
        else:
            self._kf.remove_key(section, key)

    def _write_sha256_list(self, section: str, key: str, packages: Mapping[str, str]) -> None:
        self._write_list(section, key, [f"{sha256}:{nevra}" for nevra, sha256 in packages.items()])

    def _write_overrides(self, kind: OverrideKind) -> None:
        if kind == OverrideKind.REPLACE_LOCAL:
            self._write_sha256_list(OVERRIDES, REPLACE_LOCAL, self._overrides.replace_local)
        else:
            self._write_list(OVERRIDES, REMOVE, self._overrides.remove)

    # --- Document parsing ---

    def _read_list(self, section: str, key: str) -> list[str]:
        # Unlike flags, a malformed list is an error rather than empty.
        return self._kf.get_string_list(section, key) or []

    def _read_sha256_list(self, section: str, key: str) -> dict[str, str]:
        packages = {}
        for item in self._read_list(section, key):
            nevra, sha256 = decompose_sha256_nevra(item)
            packages[nevra] = sha256
        return packages

    def _read_flag(self, section: str, key: str) -> bool:
        try:
            return bool(self._kf.get_boolean(section, key))
        except KeyFileError as e:
            logger.warning("Treating %s/%s as false: %s", section, key, e)
            return False

    def _read_custom_origin(self) -> CustomOrigin | None:
        url = self._kf.get_string(ORIGIN, CUSTOM_URL)
        description = self._kf.get_string(ORIGIN, CUSTOM_DESCRIPTION)
        if not url or not description:
            return None
        return CustomOrigin(url=url, description=description)


def _name_index(nevras: Iterable[str]) -> dict[str, str]:
    """Map bare package name -> NEVRA."""
    return {package_name(nevra): nevra for nevra in nevras}
