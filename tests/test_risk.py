"""Tests for risk classification and duplicate merging."""

from datetime import date

from analysis.risk import classify, is_stale, merge_duplicates, risky
from versioning.models import Dependency, Group, RiskFlags, Technology, VulnerabilityRecord


def _dep(name="lodash", version="4.17.0", technology=Technology.NODE, **kwargs):
    return Dependency(name=name, resolved_version=version, technology=technology, **kwargs)


TODAY = date(2025, 1, 1)


class TestClassify:
    """Flags derived from registry metadata and the vulnerability lookup."""

    def test_outdated_when_latest_is_newer(self):
        dep = _dep(latest_version="4.17.21", latest_version_date="2024-06-01")
        classify([dep], today=TODAY)
        assert dep.outdated
        assert not dep.deprecated
        assert not dep.vulnerable

    def test_prerelease_is_older_than_release(self):
        dep = _dep(version="2.0.0-rc.1", latest_version="2.0.0", latest_version_date="2024-06-01")
        classify([dep], today=TODAY)
        assert dep.outdated

    def test_ruby_versions_compare_parsed(self):
        dep = _dep(name="rails", version="7.0", technology=Technology.RUBY,
                   latest_version="7.0.0", latest_version_date="2024-06-01")
        classify([dep], today=TODAY)
        assert not dep.outdated

    def test_prerelease_ahead_of_latest_is_outdated(self):
        """Any difference from the latest tag counts, not only lagging behind it."""
        dep = _dep(version="4.0.0-beta.0", latest_version="3.9.0", latest_version_date="2024-06-01")
        classify([dep], today=TODAY)
        assert dep.outdated

    def test_no_metadata_means_no_flags(self):
        dep = _dep()
        classify([dep], today=TODAY)
        assert dep.flags == RiskFlags()

    def test_registry_deprecation_marker(self):
        dep = _dep(version="4.17.21", latest_version="4.17.21",
                   latest_version_date="2024-06-01", registry_deprecated=True)
        classify([dep], today=TODAY)
        assert dep.deprecated

    def test_stale_latest_release_is_deprecated(self):
        assert is_stale("2020-01-01", TODAY)
        assert not is_stale("2024-01-01", TODAY)
        assert not is_stale(None, TODAY)

    def test_vulnerability_lookup(self):
        record = VulnerabilityRecord(id="GHSA-xxxx", severity="HIGH")
        calls = []

        def lookup(name, version, technology):
            calls.append((name, version, technology))
            return [record]

        dep = _dep()
        classify([dep], lookup, today=TODAY)
        assert dep.vulnerable
        assert dep.vulnerabilities == [record]
        assert calls == [("lodash", "4.17.0", Technology.NODE)]

    def test_risky_keeps_flagged_only(self):
        clean = _dep(name="a")
        flagged = _dep(name="b", flags=RiskFlags(outdated=True))
        assert risky([clean, flagged]) == [flagged]


class TestMergeDuplicates:
    """One record per (name, technology)."""

    def test_groups_and_flags_are_united(self):
        first = _dep(groups={Group.DEFAULT}, flags=RiskFlags(outdated=True))
        second = _dep(groups={Group.DEVELOPMENT}, flags=RiskFlags(vulnerable=True))
        merged = merge_duplicates([first, second])
        assert len(merged) == 1
        assert merged[0].groups == {Group.DEFAULT, Group.DEVELOPMENT}
        assert merged[0].flags == RiskFlags(outdated=True, vulnerable=True)

    def test_same_name_different_technology_kept_apart(self):
        merged = merge_duplicates([_dep(name="json"), _dep(name="json", technology=Technology.RUBY)])
        assert len(merged) == 2

    def test_record_with_metadata_wins_version_conflict(self):
        bare = _dep(version="1.0.0")
        enriched = _dep(version="1.1.0", latest_version="1.2.0")
        merged = merge_duplicates([bare, enriched])
        assert merged[0].resolved_version == "1.1.0"

    def test_first_seen_wins_tie(self):
        merged = merge_duplicates([_dep(version="1.0.0"), _dep(version="1.1.0")])
        assert merged[0].resolved_version == "1.0.0"

    def test_vulnerabilities_deduplicated(self):
        record = VulnerabilityRecord(id="OSV-1")
        merged = merge_duplicates([_dep(vulnerabilities=[record]), _dep(vulnerabilities=[record])])
        assert merged[0].vulnerabilities == [record]

    def test_merge_is_idempotent(self):
        deps = [
            _dep(name="a", groups={Group.DEFAULT}),
            _dep(name="b", groups={Group.DEVELOPMENT}, flags=RiskFlags(deprecated=True)),
            _dep(name="a", groups={Group.DEVELOPMENT}, flags=RiskFlags(outdated=True)),
        ]
        once = merge_duplicates(deps)
        twice = merge_duplicates(once)
        assert [d.to_dict() for d in once] == [d.to_dict() for d in twice]
        assert [d.name for d in once] == ["a", "b"]
