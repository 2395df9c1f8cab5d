"""Tests for the npm scanner (package.json + yarn.lock)."""

import json

import pytest

from registry.npm.lockfile_parser import PackageNotFoundInLockfileError
from registry.npm.scan import (
    declared_names,
    filter_local_dependencies,
    resolve_dependencies,
    scan_source,
)
from versioning.models import Group, Technology


def _write_project(tmp_path, package_json, yarn_lock=None):
    (tmp_path / "package.json").write_text(json.dumps(package_json, indent=2))
    if yarn_lock is not None:
        (tmp_path / "yarn.lock").write_text(yarn_lock)


class TestLocalDependencies:
    """Path-like declarations never reach the resolver."""

    def test_filter_local_dependencies(self):
        deps = {
            "a": "file:../a",
            "b": "link:./b",
            "c": "./c",
            "d": "../d",
            "e": "git+file:../e",
            "f": "^1.0.0",
        }
        assert filter_local_dependencies(deps) == {"f": "^1.0.0"}

    def test_local_dependency_not_looked_up(self):
        """A local package absent from yarn.lock does not abort resolution."""
        lock = 'left-pad@^1.3.0:\n  version "1.3.0"\n'
        deps = resolve_dependencies({"left-pad": "^1.3.0", "mine": "file:./mine"}, {}, {}, lock)
        assert [d.name for d in deps] == ["left-pad"]


class TestScanSource:
    """End-to-end resolution through the files on disk."""

    def test_lodash_pinned_version(self, tmp_path):
        _write_project(
            tmp_path,
            {"name": "app", "dependencies": {"lodash": "4.17.0"}},
            'lodash@4.17.0:\n  version "4.17.0"\n',
        )
        deps = scan_source(str(tmp_path))
        assert len(deps) == 1
        dep = deps[0]
        assert dep.name == "lodash"
        assert dep.resolved_version == "4.17.0"
        assert dep.technology == Technology.NODE
        assert Group.DEFAULT in dep.groups

    def test_dev_only_dependency_is_development(self, tmp_path):
        _write_project(
            tmp_path,
            {"devDependencies": {"jest": "^29.0.0"}},
            'jest@^29.0.0:\n  version "29.7.0"\n',
        )
        deps = scan_source(str(tmp_path))
        assert deps[0].groups == {Group.DEVELOPMENT}

    def test_resolution_override(self, tmp_path):
        lock = (
            'react@^17.0.0:\n  version "17.0.0"\n\n'
            'react@17.0.2:\n  version "17.0.2"\n'
        )
        _write_project(
            tmp_path,
            {"dependencies": {"react": "^17.0.0"}, "resolutions": {"react": "17.0.2"}},
            lock,
        )
        deps = scan_source(str(tmp_path))
        assert deps[0].resolved_version == "17.0.2"
        assert deps[0].declared_range == "17.0.2"

    def test_missing_yarn_lock_returns_empty(self, tmp_path):
        _write_project(tmp_path, {"dependencies": {"lodash": "4.17.0"}})
        assert scan_source(str(tmp_path)) == []

    def test_missing_package_json_exits(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            scan_source(str(tmp_path))
        assert excinfo.value.code == 1

    def test_undeclared_lock_entry_is_fatal(self, tmp_path):
        _write_project(
            tmp_path,
            {"dependencies": {"lodash": "4.17.0", "ghost": "^1.0.0"}},
            'lodash@4.17.0:\n  version "4.17.0"\n',
        )
        with pytest.raises(PackageNotFoundInLockfileError):
            scan_source(str(tmp_path))


class TestDeclaredNames:
    def test_declared_names_include_dev(self, tmp_path):
        _write_project(tmp_path, {"dependencies": {"a": "1"}, "devDependencies": {"b": "2"}})
        assert declared_names(str(tmp_path)) == {"a", "b"}

    def test_declared_names_without_manifest(self, tmp_path):
        assert declared_names(str(tmp_path)) == set()
