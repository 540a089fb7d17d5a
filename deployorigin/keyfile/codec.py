"""Text grammar for key files.

    # comment for the section
    [origin]
    # comment for the key
    refspec=fedora:fedora/36/x86_64/silverblue

Comment lines attach to the next section header or key. Values are stored
verbatim (escapes are resolved by the typed getters on KeyFile).
"""

from __future__ import annotations

import re

from deployorigin.errors import KeyFileError
from deployorigin.keyfile.document import KeyFile

# ---------------------------------------------------------------------------
# Line grammar
# ---------------------------------------------------------------------------

_GROUP_RE = re.compile(r"^\[(?P<name>[^\[\]]+)\]\s*$")

_KEY_VALUE_RE = re.compile(r"^(?P<key>[^=\s][^=]*?)\s*=[ \t]*(?P<value>.*)$")

_BLANKS = " \t"


def loads(text: str) -> KeyFile:
    """Parse key file text into a KeyFile.

    Raises:
        KeyFileError: if a line is neither a comment, a group header nor a
            key/value pair, or if a key appears before the first group.
    """
    kf = KeyFile()
    section: str | None = None
    pending: list[str] = []

    # Only "\n" ends a line; other Unicode line breaks are ordinary value characters.
    for lineno, line in enumerate(text.split("\n"), start=1):
        if line.endswith("\r"):
            line = line[:-1]
        stripped = line.strip(_BLANKS)

        if not stripped:
            continue

        if stripped.startswith("#"):
            pending.append(line.lstrip(_BLANKS)[1:])
            continue

        group = _GROUP_RE.match(stripped)
        if group:
            section = group.group("name")
            kf.add_section(section)
            if pending:
                kf.set_comment(section, None, "\n".join(pending))
                pending = []
            continue

        pair = _KEY_VALUE_RE.match(line.lstrip(_BLANKS))
        if pair is None:
            raise KeyFileError(
                f"Key file contains line {lineno} '{line}' which is not "
                "a key-value pair, group, or comment"
            )
        if section is None:
            raise KeyFileError("Key file does not start with a group")

        key = pair.group("key")
        kf.set_value(section, key, pair.group("value"))
        kf.set_comment(section, key, "\n".join(pending) if pending else None)
        pending = []

    return kf


def dumps(kf: KeyFile) -> str:
    """Serialize a KeyFile to text, one blank line between sections."""
    blocks = []
    for section in kf.sections():
        lines = _comment_lines(kf.get_comment(section))
        lines.append(f"[{section}]")
        for key in kf.keys(section):
            lines.extend(_comment_lines(kf.get_comment(section, key)))
            lines.append(f"{key}={kf.get_value(section, key)}")
        blocks.append("\n".join(lines) + "\n")
    return "\n".join(blocks)


def _comment_lines(comment: str | None) -> list[str]:
    if comment is None:
        return []
    return [f"#{line}" for line in comment.split("\n")]
