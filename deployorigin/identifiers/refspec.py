"""Refspec classification.

A refspec names where a deployment's content comes from. Three kinds are
recognized:

- PINNED_COMMIT: a bare 64-character SHA-256 commit checksum
- CONTAINER: an ostree container image reference (``ostree-remote-image:...``)
- BRANCH: ``[remote:]ref``, optionally prefixed with ``ostree://``
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from deployorigin.errors import InvalidRefspec


class RefspecKind(Enum):
    """What a refspec points at."""

    BRANCH = "branch"  # Tracks a remote ref; upgrades follow it
    PINNED_COMMIT = "commit"  # Fixed commit checksum
    CONTAINER = "container"  # Container image reference


@dataclass(frozen=True)
class RefspecDescriptor:
    """A classified refspec with its canonical target string."""

    kind: RefspecKind
    target: str

    @property
    def is_pinned(self) -> bool:
        return self.kind == RefspecKind.PINNED_COMMIT


OSTREE_PREFIX = "ostree://"

CONTAINER_TRANSPORTS = (
    "ostree-remote-registry:",
    "ostree-remote-image:",
    "ostree-image-signed:",
    "ostree-unverified-image:",
    "ostree-unverified-registry:",
)

_CHECKSUM_RE = re.compile(r"^[0-9a-f]{64}$")

# Same character rules libostree applies to remote names and refs.
_REMOTE_RE = r"[\w\d][-._\w\d]*"
_REF_RE = r"[\w\d][-._\w\d]*(?:/[\w\d][-._\w\d]*)*"
_BRANCH_RE = re.compile(rf"^(?:(?P<remote>{_REMOTE_RE}):)?(?P<ref>{_REF_RE})$")


def is_checksum(value: str) -> bool:
    return bool(_CHECKSUM_RE.match(value))


def classify_refspec(refspec: str) -> RefspecDescriptor:
    """Classify a refspec string.

    Raises:
        InvalidRefspec: if the string is empty or not a valid branch refspec.
    """
    if any(refspec.startswith(t) for t in CONTAINER_TRANSPORTS):
        return RefspecDescriptor(kind=RefspecKind.CONTAINER, target=refspec)

    data = refspec[len(OSTREE_PREFIX):] if refspec.startswith(OSTREE_PREFIX) else refspec

    if is_checksum(data):
        return RefspecDescriptor(kind=RefspecKind.PINNED_COMMIT, target=data)

    if not _BRANCH_RE.match(data):
        raise InvalidRefspec(f"Invalid refspec '{refspec}'")

    return RefspecDescriptor(kind=RefspecKind.BRANCH, target=data)
