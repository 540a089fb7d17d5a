"""Error taxonomy for origin parsing and mutation.

Every failure is raised as an exception; none of them are transient, so
callers surface the message as-is rather than retrying.
"""

from __future__ import annotations


class KeyFileError(ValueError):
    """The origin document is malformed or a value has the wrong type."""


class OriginError(ValueError):
    """Base class for origin descriptor failures."""


class MissingRefspec(OriginError):
    """Neither origin/refspec nor origin/baserefspec is present."""


class InvalidRefspec(OriginError):
    """A refspec string could not be classified."""


class InvalidPackageEncoding(OriginError):
    """A package identifier is not a valid NEVRA or SHA-256 NEVRA string."""


class DuplicateRequest(OriginError):
    """A package or capability is already requested."""


class NotRequested(OriginError):
    """A package or capability to remove is not currently requested."""


class DuplicateOverride(OriginError):
    """An override already exists for the package."""
