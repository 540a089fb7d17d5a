"""In-memory key file model.

Values are kept in their encoded (on-disk) form so that a load/dump cycle
preserves them byte for byte; the typed getters and setters do the escaping.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from deployorigin.errors import KeyFileError

_ESCAPES = {
    "s": " ",
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "\\": "\\",
    ";": ";",
}

_TRUE_VALUES = {"true", "1"}
_FALSE_VALUES = {"false", "0"}


@dataclass
class Entry:
    """A single key in a section."""

    value: str  # Encoded form, as written after the '='
    comment: str | None = None


@dataclass
class Section:
    """A named group of entries, in insertion order."""

    name: str
    entries: dict[str, Entry] = field(default_factory=dict)
    comment: str | None = None


class KeyFile:
    """An ordered collection of sections holding typed entries."""

    def __init__(self) -> None:
        self._sections: dict[str, Section] = {}

    # --- Structure ---

    def sections(self) -> list[str]:
        return list(self._sections)

    def keys(self, section: str) -> list[str]:
        group = self._sections.get(section)
        return list(group.entries) if group else []

    def has_section(self, section: str) -> bool:
        return section in self._sections

    def has_key(self, section: str, key: str) -> bool:
        group = self._sections.get(section)
        return group is not None and key in group.entries

    def add_section(self, section: str) -> None:
        if section not in self._sections:
            self._sections[section] = Section(name=section)

    def remove_key(self, section: str, key: str) -> bool:
        """Remove a key (and its comment). Returns False if it was absent."""
        group = self._sections.get(section)
        if group is None:
            return False
        return group.entries.pop(key, None) is not None

    # --- Raw values ---

    def get_value(self, section: str, key: str) -> str | None:
        entry = self._entry(section, key)
        return entry.value if entry else None

    def set_value(self, section: str, key: str, value: str) -> None:
        self.add_section(section)
        entries = self._sections[section].entries
        if key in entries:
            entries[key].value = value
        else:
            entries[key] = Entry(value=value)

    # --- Typed values ---

    def get_string(self, section: str, key: str) -> str | None:
        raw = self.get_value(section, key)
        if raw is None:
            return None
        return _unescape(raw, section, key)

    def set_string(self, section: str, key: str, value: str) -> None:
        self.set_value(section, key, _escape(value))

    def get_string_list(self, section: str, key: str) -> list[str] | None:
        raw = self.get_value(section, key)
        if raw is None:
            return None
        return _split_list(raw, section, key)

    def set_string_list(self, section: str, key: str, values: list[str]) -> None:
        self.set_value(
            section, key, "".join(_escape(v, in_list=True) + ";" for v in values)
        )

    def get_boolean(self, section: str, key: str) -> bool | None:
        raw = self.get_value(section, key)
        if raw is None:
            return None
        text = raw.strip()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise KeyFileError(
            f"Value '{raw}' for key '{key}' in group '{section}' is not a boolean"
        )

    def set_boolean(self, section: str, key: str, value: bool) -> None:
        self.set_value(section, key, "true" if value else "false")

    # --- Comments ---

    def get_comment(self, section: str, key: str | None = None) -> str | None:
        """Comment above a key, or above the section header when key is None."""
        if key is None:
            group = self._sections.get(section)
            return group.comment if group else None
        entry = self._entry(section, key)
        return entry.comment if entry else None

    def set_comment(self, section: str, key: str | None, comment: str | None) -> None:
        if key is None:
            self.add_section(section)
            self._sections[section].comment = comment
            return
        entry = self._entry(section, key)
        if entry is None:
            raise KeyFileError(f"Key file does not have key '{key}' in group '{section}'")
        entry.comment = comment

    # --- Copying ---

    def copy(self) -> KeyFile:
        """Independent copy, made by dumping and re-loading the text form."""
        from deployorigin.keyfile.codec import dumps, loads

        return loads(dumps(self))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyFile):
            return NotImplemented
        return self._sections == other._sections

    def _entry(self, section: str, key: str) -> Entry | None:
        group = self._sections.get(section)
        return group.entries.get(key) if group else None


def _escape(value: str, in_list: bool = False) -> str:
    out = []
    for i, ch in enumerate(value):
        if ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\t":
            out.append("\\t")
        elif ch == "\r":
            out.append("\\r")
        elif ch == " " and i == 0:
            out.append("\\s")
        elif ch == ";" and in_list:
            out.append("\\;")
        else:
            out.append(ch)
    return "".join(out)


def _unescape(raw: str, section: str, key: str) -> str:
    out = []
    chars = iter(raw)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt is None or nxt not in _ESCAPES:
            raise KeyFileError(
                f"Key file contains invalid escape sequence in key '{key}' of group '{section}'"
            )
        out.append(_ESCAPES[nxt])
    return "".join(out)


def _split_list(raw: str, section: str, key: str) -> list[str]:
    items: list[str] = []
    current: list[str] = []
    chars = iter(raw)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, None)
            if nxt is None or nxt not in _ESCAPES:
                raise KeyFileError(
                    f"Key file contains invalid escape sequence in key '{key}' of group '{section}'"
                )
            current.append(_ESCAPES[nxt])
        elif ch == ";":
            items.append("".join(current))
            current = []
        else:
            current.append(ch)
    if current:
        items.append("".join(current))
    return items
