"""Transient origin state.

Some keys describe one particular deployment rather than the system the user
asked for. They are dropped before an origin becomes the basis of a new
deployment.
"""

from __future__ import annotations

from deployorigin.keyfile import KeyFile
from deployorigin.origin.models import ORIGIN, OVERRIDE_COMMIT, UNLOCKED

TRANSIENT_KEYS = (
    (ORIGIN, OVERRIDE_COMMIT),
    (ORIGIN, UNLOCKED),
)


def strip_transient_state(kf: KeyFile) -> bool:
    """Remove deployment-specific keys in place. Returns True if any were present."""
    removed = False
    for section, key in TRANSIENT_KEYS:
        removed = kf.remove_key(section, key) or removed
    return removed
