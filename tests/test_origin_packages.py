"""Tests for package requests and base package overrides."""

import pytest

from deployorigin.errors import (
    DuplicateOverride,
    DuplicateRequest,
    InvalidPackageEncoding,
    NotRequested,
)
from deployorigin.keyfile import loads
from deployorigin.origin import OriginDescriptor, OverrideKind

BRANCH = "fedora/36/x86_64/silverblue"
SHA_A = "a" * 64
SHA_B = "b" * 64

VIM_LOCAL = "vim-enhanced-2-1.x86_64"
FOO_LOCAL = "foo-1-1.x86_64"


def _plain() -> OriginDescriptor:
    return OriginDescriptor.parse(loads(f"[origin]\nrefspec={BRANCH}\n"))


# --- Add ---


def test_add_remote_packages():
    origin = _plain()
    assert origin.add_packages(["vim-enhanced", "tmux"]) is True
    assert origin.requested_packages == {"vim-enhanced", "tmux"}
    assert origin.to_keyfile().get_string_list("packages", "requested") == ["tmux", "vim-enhanced"]


def test_add_local_packages():
    origin = _plain()
    assert origin.add_packages([f"{SHA_A}:{VIM_LOCAL}"], local=True) is True
    assert origin.requested_local_packages == {VIM_LOCAL: SHA_A}
    assert origin.to_keyfile().get_string_list("packages", "requested-local") == [
        f"{SHA_A}:{VIM_LOCAL}"
    ]


def test_add_idempotent():
    origin = _plain()
    assert origin.add_packages(["p"], allow_existing=True) is True
    assert origin.add_packages(["p"], allow_existing=True) is False
    assert origin.requested_packages == {"p"}
    assert origin.to_keyfile().get_string_list("packages", "requested") == ["p"]


def test_add_duplicate_fails():
    origin = _plain()
    origin.add_packages(["p"])
    with pytest.raises(DuplicateRequest, match="already requested"):
        origin.add_packages(["p"])


def test_add_duplicate_within_batch_fails():
    origin = _plain()
    with pytest.raises(DuplicateRequest):
        origin.add_packages(["p", "p"])
    assert origin.requested_packages == frozenset()


def test_add_conflicts_across_remote_and_local():
    origin = _plain()
    origin.add_packages([f"{SHA_A}:{FOO_LOCAL}"], local=True)
    with pytest.raises(DuplicateRequest, match="already layered"):
        origin.add_packages([FOO_LOCAL])

    origin.add_packages(["tmux-3-1.x86_64"])
    with pytest.raises(DuplicateRequest, match="already requested"):
        origin.add_packages([f"{SHA_B}:tmux-3-1.x86_64"], local=True)


def test_add_conflict_skipped_with_allow_existing():
    origin = _plain()
    origin.add_packages([f"{SHA_A}:{FOO_LOCAL}"], local=True)
    assert origin.add_packages([FOO_LOCAL, "tmux"], allow_existing=True) is True
    assert origin.requested_packages == {"tmux"}


def test_add_invalid_local_leaves_state_untouched():
    origin = _plain()
    before = origin.to_text()
    with pytest.raises(InvalidPackageEncoding):
        origin.add_packages([f"{SHA_A}:{FOO_LOCAL}", "not-a-sha256-nevra"], local=True)
    assert origin.requested_local_packages == {}
    assert origin.requires_local_assembly is False
    assert origin.to_text() == before


# --- Remove ---


def test_remove_remote_package():
    origin = _plain()
    origin.add_packages(["vim-enhanced", "tmux"])
    assert origin.remove_packages(["tmux"]) is True
    assert origin.requested_packages == {"vim-enhanced"}
    assert origin.to_keyfile().get_string_list("packages", "requested") == ["vim-enhanced"]


def test_remove_local_by_nevra():
    origin = _plain()
    origin.add_packages([f"{SHA_A}:{VIM_LOCAL}"], local=True)
    assert origin.remove_packages([VIM_LOCAL]) is True
    assert origin.requested_local_packages == {}
    assert not origin.to_keyfile().has_key("packages", "requested-local")


def test_remove_local_by_name_fallback():
    origin = _plain()
    origin.add_packages([f"{SHA_A}:{VIM_LOCAL}", f"{SHA_B}:{FOO_LOCAL}"], local=True)
    assert origin.remove_packages(["vim-enhanced"]) is True
    assert origin.requested_local_packages == {FOO_LOCAL: SHA_B}


def test_remove_not_requested_fails():
    origin = _plain()
    origin.add_packages(["tmux"])
    with pytest.raises(NotRequested):
        origin.remove_packages(["tmux", "vim-enhanced"])
    assert origin.requested_packages == {"tmux"}


def test_remove_allow_noent():
    origin = _plain()
    origin.add_packages(["tmux"])
    assert origin.remove_packages(["vim-enhanced"], allow_noent=True) is False
    assert origin.remove_packages(["tmux", "vim-enhanced"], allow_noent=True) is True
    assert origin.requested_packages == frozenset()


def test_remove_name_fallback_only_once_per_name():
    origin = _plain()
    origin.add_packages([f"{SHA_A}:{VIM_LOCAL}"], local=True)
    with pytest.raises(NotRequested):
        origin.remove_packages(["vim-enhanced", "vim-enhanced"])
    assert origin.requested_local_packages == {VIM_LOCAL: SHA_A}


def test_remove_all_packages():
    origin = _plain()
    assert origin.remove_all_packages() is False

    origin.add_packages(["tmux"])
    origin.add_packages([f"{SHA_A}:{FOO_LOCAL}"], local=True)
    assert origin.remove_all_packages() is True

    kf = origin.to_keyfile()
    assert origin.requested_packages == frozenset()
    assert origin.requested_local_packages == {}
    assert not kf.has_key("packages", "requested")
    assert not kf.has_key("packages", "requested-local")
    assert kf.get_string("origin", "refspec") == BRANCH


# --- Overrides ---


def test_add_remove_override():
    origin = _plain()
    origin.add_overrides(["firefox", "nano"], OverrideKind.REMOVE)
    assert origin.overrides_remove == {"firefox", "nano"}
    assert origin.to_keyfile().get_string_list("overrides", "remove") == ["firefox", "nano"]


def test_add_replace_local_override():
    origin = _plain()
    origin.add_overrides([f"{SHA_A}:{FOO_LOCAL}"], OverrideKind.REPLACE_LOCAL)
    assert origin.overrides_local_replace == {FOO_LOCAL: SHA_A}
    assert origin.to_keyfile().get_string_list("overrides", "replace-local") == [
        f"{SHA_A}:{FOO_LOCAL}"
    ]


def test_duplicate_override_same_kind():
    origin = _plain()
    origin.add_overrides(["firefox"], OverrideKind.REMOVE)
    with pytest.raises(DuplicateOverride):
        origin.add_overrides(["firefox"], OverrideKind.REMOVE)


def test_duplicate_override_across_kinds():
    origin = _plain()
    origin.add_overrides(["foo"], OverrideKind.REMOVE)
    with pytest.raises(DuplicateOverride):
        origin.add_overrides([f"{SHA_A}:{FOO_LOCAL}"], OverrideKind.REPLACE_LOCAL)
    assert origin.overrides_local_replace == {}


def test_duplicate_override_remove_after_replace():
    origin = _plain()
    origin.add_overrides([f"{SHA_A}:{FOO_LOCAL}"], OverrideKind.REPLACE_LOCAL)
    with pytest.raises(DuplicateOverride):
        origin.add_overrides(["foo"], OverrideKind.REMOVE)
    assert origin.overrides_remove == frozenset()


def test_failed_override_batch_leaves_state_untouched():
    origin = _plain()
    origin.add_overrides(["firefox"], OverrideKind.REMOVE)
    before = origin.to_text()
    with pytest.raises(DuplicateOverride):
        origin.add_overrides(["nano", "firefox"], OverrideKind.REMOVE)
    assert origin.overrides_remove == {"firefox"}
    assert origin.to_text() == before


def test_remove_override():
    origin = _plain()
    origin.add_overrides(["firefox"], OverrideKind.REMOVE)
    origin.add_overrides([f"{SHA_A}:{FOO_LOCAL}"], OverrideKind.REPLACE_LOCAL)

    assert origin.remove_override("firefox", OverrideKind.REPLACE_LOCAL) is False
    assert origin.remove_override("firefox", OverrideKind.REMOVE) is True
    assert origin.remove_override(FOO_LOCAL, OverrideKind.REPLACE_LOCAL) is True
    assert origin.requires_local_assembly is False

    kf = origin.to_keyfile()
    assert not kf.has_key("overrides", "remove")
    assert not kf.has_key("overrides", "replace-local")
    assert kf.get_string("origin", "refspec") == BRANCH


def test_remove_all_overrides():
    origin = _plain()
    assert origin.remove_all_overrides() is False

    origin.add_overrides(["firefox"], OverrideKind.REMOVE)
    assert origin.remove_all_overrides() is True
    assert origin.overrides_remove == frozenset()
    assert origin.requires_local_assembly is False
