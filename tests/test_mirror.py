"""
Tests for mirroring package trees and merging them into a prefix.
"""

import os
from pathlib import Path

import pytest

from conftest import make_package
from shelfpad.core.errors import FilesystemError
from shelfpad.core.services.install.merge import merge_into_root, unmerge_package
from shelfpad.core.services.install.mirror import mirror_tree


class TestMirrorTree:
    def test_files_are_hard_linked_or_copied(self, store: Path, tmp_path: Path):
        src = make_package(store, "example.com", "1.0.0")
        dst = tmp_path / "prefix" / "pkgs" / "example.com" / "v1.0.0"

        result = mirror_tree(src, dst)

        assert result.ok
        mirrored = dst / "bin" / "tool"
        assert mirrored.read_text() == (src / "bin" / "tool").read_text()
        assert result.linked + result.copied == 2
        if result.linked:
            assert os.stat(mirrored).st_ino == os.stat(src / "bin" / "tool").st_ino

    def test_symlinks_recreated_verbatim(self, store: Path, tmp_path: Path):
        src = make_package(store, "example.com", "1.0.0")
        dst = tmp_path / "out"

        result = mirror_tree(src, dst)

        assert result.symlinks == 1
        assert os.readlink(dst / "lib" / "libexample.so") == "libexample.so.1"

    def test_missing_source_raises(self, tmp_path: Path):
        with pytest.raises(FilesystemError):
            mirror_tree(tmp_path / "missing", tmp_path / "out")

    def test_existing_files_replaced(self, store: Path, tmp_path: Path):
        src = make_package(store, "example.com", "1.0.0")
        dst = tmp_path / "out"
        (dst / "bin").mkdir(parents=True)
        (dst / "bin" / "tool").write_text("stale")

        mirror_tree(src, dst)

        assert "stale" not in (dst / "bin" / "tool").read_text()


class TestMerge:
    def test_merge_and_unmerge(self, store: Path, tmp_path: Path):
        src = make_package(store, "example.com", "1.0.0", bins=("tool", "helper"))
        root = tmp_path / "prefix"
        pkg = root / "pkgs" / "example.com" / "v1.0.0"
        mirror_tree(src, pkg)

        assert merge_into_root(pkg, root) == []
        assert (root / "bin" / "tool").is_symlink()
        assert os.readlink(root / "bin" / "tool") == str(pkg / "bin" / "tool")
        assert (root / "lib" / "libexample.so.1").is_symlink()

        removed = unmerge_package(pkg, root)
        assert removed == 4
        assert not (root / "bin" / "tool").exists()

    def test_unmerge_leaves_other_packages(self, store: Path, tmp_path: Path):
        root = tmp_path / "prefix"
        a = root / "pkgs" / "a.org" / "v1.0.0"
        b = root / "pkgs" / "b.org" / "v1.0.0"
        mirror_tree(make_package(store, "a.org", "1.0.0", bins=("a",)), a)
        mirror_tree(make_package(store, "b.org", "1.0.0", bins=("b",)), b)
        merge_into_root(a, root)
        merge_into_root(b, root)

        unmerge_package(a, root)

        assert not (root / "bin" / "a").is_symlink()
        assert (root / "bin" / "b").is_symlink()
