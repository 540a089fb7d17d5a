"""Key file document — the persisted, sectioned key/value store behind an origin.

This package provides:
- KeyFile: typed access (string, string list, boolean) plus per-entry comments
- codec: the textual grammar used to load and dump a KeyFile
"""

from deployorigin.keyfile.codec import dumps, loads
from deployorigin.keyfile.document import KeyFile

__all__ = ["KeyFile", "dumps", "loads"]
