"""Tests for mountpoint derivation."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from glustervol.addressing import derive_mountpoint


def _sha(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


def test_layout_is_three_nested_digests():
    path = derive_mountpoint("/mnt/volumes", "v1", "gv0", "a")
    assert path == f"/mnt/volumes/{_sha('v1')}/{_sha('gv0')}/{_sha('a')}"


def test_deterministic():
    assert derive_mountpoint("/r", "v1", "gv0", "a") == derive_mountpoint("/r", "v1", "gv0", "a")


def test_accepts_path_root():
    assert derive_mountpoint(Path("/r"), "v1", "gv0", "a") == derive_mountpoint(
        "/r", "v1", "gv0", "a"
    )


@pytest.mark.parametrize(
    "other",
    [
        ("v2", "gv0", "a"),
        ("v1", "gv1", "a"),
        ("v1", "gv0", "b"),
    ],
)
def test_changing_any_field_changes_path(other):
    assert derive_mountpoint("/r", "v1", "gv0", "a") != derive_mountpoint("/r", *other)


def test_fields_are_not_concatenated():
    """Moving characters between fields must not collide."""
    assert derive_mountpoint("/r", "ab", "c", "d") != derive_mountpoint("/r", "a", "bc", "d")


def test_empty_subdir_still_gets_a_segment():
    path = derive_mountpoint("/r", "v1", "gv0", "")
    assert path.endswith(_sha(""))
