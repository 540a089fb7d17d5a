"""Tests for the key file document model and its text codec."""

import pytest

from deployorigin.errors import KeyFileError
from deployorigin.keyfile import KeyFile, dumps, loads

SAMPLE = """\
# Installed by the installer
[origin]
refspec=fedora:fedora/36/x86_64/silverblue
#Version 36.20220501 [abcdef0123]
override-commit=abcdef

[packages]
requested=vim-enhanced;tmux;
"""


# --- Parsing ---


def test_loads_sections_and_values():
    kf = loads(SAMPLE)
    assert kf.sections() == ["origin", "packages"]
    assert kf.keys("origin") == ["refspec", "override-commit"]
    assert kf.get_string("origin", "refspec") == "fedora:fedora/36/x86_64/silverblue"
    assert kf.get_string_list("packages", "requested") == ["vim-enhanced", "tmux"]


def test_loads_attaches_comments():
    kf = loads(SAMPLE)
    assert kf.get_comment("origin") == " Installed by the installer"
    assert kf.get_comment("origin", "override-commit") == "Version 36.20220501 [abcdef0123]"
    assert kf.get_comment("origin", "refspec") is None


def test_dumps_roundtrip_is_stable():
    assert dumps(loads(SAMPLE)) == SAMPLE


def test_whitespace_around_equals():
    kf = loads("[a]\nkey = value\n")
    assert kf.get_string("a", "key") == "value"


def test_key_before_group_fails():
    with pytest.raises(KeyFileError):
        loads("key=value\n")


def test_garbage_line_fails():
    with pytest.raises(KeyFileError):
        loads("[a]\nthis is not a pair\n")


def test_missing_values_are_none():
    kf = loads(SAMPLE)
    assert kf.get_string("origin", "nope") is None
    assert kf.get_string_list("nope", "nope") is None
    assert kf.get_boolean("origin", "nope") is None


# --- Typed values ---


def test_string_escapes():
    kf = KeyFile()
    kf.set_string("a", "k", " leading space\nand\ttab\\")
    assert kf.get_value("a", "k") == "\\sleading space\\nand\\ttab\\\\"
    assert kf.get_string("a", "k") == " leading space\nand\ttab\\"


def test_string_list_escapes_separator():
    kf = KeyFile()
    kf.set_string_list("a", "k", ["x;y", "z"])
    assert kf.get_value("a", "k") == "x\\;y;z;"
    assert kf.get_string_list("a", "k") == ["x;y", "z"]


def test_string_list_without_trailing_separator():
    kf = loads("[a]\nk=x;y\n")
    assert kf.get_string_list("a", "k") == ["x", "y"]


def test_empty_string_list():
    kf = KeyFile()
    kf.set_string_list("a", "k", [])
    assert kf.get_string_list("a", "k") == []


def test_booleans():
    kf = loads("[a]\nyes=true\nno=false\none=1\nbad=maybe\n")
    assert kf.get_boolean("a", "yes") is True
    assert kf.get_boolean("a", "no") is False
    assert kf.get_boolean("a", "one") is True
    with pytest.raises(KeyFileError):
        kf.get_boolean("a", "bad")

    kf.set_boolean("a", "new", True)
    assert kf.get_value("a", "new") == "true"


def test_invalid_escape_fails():
    kf = loads("[a]\nk=bad\\q\n")
    with pytest.raises(KeyFileError):
        kf.get_string("a", "k")


# --- Mutation ---


def test_remove_key_drops_comment():
    kf = loads(SAMPLE)
    assert kf.remove_key("origin", "override-commit") is True
    assert kf.remove_key("origin", "override-commit") is False
    kf.set_string("origin", "override-commit", "x")
    assert kf.get_comment("origin", "override-commit") is None


def test_set_comment_on_missing_key_fails():
    kf = KeyFile()
    with pytest.raises(KeyFileError):
        kf.set_comment("a", "missing", "hello")


def test_set_value_keeps_position():
    kf = loads(SAMPLE)
    kf.set_string("origin", "refspec", "other")
    assert kf.keys("origin") == ["refspec", "override-commit"]


def test_copy_is_independent():
    kf = loads(SAMPLE)
    dup = kf.copy()
    assert dup == kf

    dup.set_string("origin", "refspec", "changed")
    assert kf.get_string("origin", "refspec") == "fedora:fedora/36/x86_64/silverblue"
    assert dup != kf


# --- Line breaks ---


def test_unicode_line_breaks_survive_copy():
    kf = KeyFile()
    kf.set_string("a", "k", "one\x85two\u2028three\u2029four\x0bfive\x0csix\x1cseven")
    kf.set_string_list("a", "list", ["x\x85y=z", "p\u2028q"])
    kf.set_comment("a", "k", "Version 1\u20282 [abc]")

    dup = kf.copy()
    assert dup.keys("a") == ["k", "list"]
    assert dup.get_string("a", "k") == "one\x85two\u2028three\u2029four\x0bfive\x0csix\x1cseven"
    assert dup.get_string_list("a", "list") == ["x\x85y=z", "p\u2028q"]
    assert dup.get_comment("a", "k") == "Version 1\u20282 [abc]"
    assert dup == kf


def test_crlf_line_endings():
    kf = loads("[a]\r\n#note\r\nk=v\r\n")
    assert kf.get_string("a", "k") == "v"
    assert kf.get_comment("a", "k") == "note"
