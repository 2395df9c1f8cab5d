"""Tests for the RubyGems registry client."""

from unittest.mock import patch

import pytest

from registry.errors import PackageNotFoundError, RegistryUnavailableError
from registry.rubygems.client import fetch_package_metadata, parse_versions, versions_url
from versioning.models import Dependency, Technology

VERSIONS = [
    {"number": "8.0.0.beta1", "prerelease": True, "created_at": "2024-09-26T20:00:00.000Z"},
    {"number": "7.1.0", "prerelease": False, "created_at": "2023-10-05T08:00:00.000Z"},
    {"number": "7.0.8", "prerelease": False, "created_at": "2023-09-09T19:00:00.000Z"},
]


def _dep(version="7.0.8"):
    return Dependency(name="rails", resolved_version=version, technology=Technology.RUBY)


class TestRubygemsClient:
    """Versions API parsing and HTTP status handling."""

    def test_versions_url(self):
        assert versions_url("rails", "https://rubygems.org") == \
            "https://rubygems.org/api/v1/versions/rails.json"

    def test_prereleases_never_latest(self):
        meta = parse_versions(VERSIONS, "7.0.8")
        assert meta.latest_version == "7.1.0"
        assert meta.version_date == "2023-09-09"
        assert meta.latest_version_date == "2023-10-05"

    def test_only_prereleases(self):
        assert parse_versions(VERSIONS[:1], "8.0.0.beta1") is None

    @patch("registry.rubygems.get_json")
    def test_fetch_success(self, mock_get_json):
        mock_get_json.return_value = (200, {}, VERSIONS)
        assert fetch_package_metadata(_dep()).latest_version == "7.1.0"

    @patch("registry.rubygems.get_json")
    def test_fetch_not_found(self, mock_get_json):
        mock_get_json.return_value = (404, {}, None)
        with pytest.raises(PackageNotFoundError):
            fetch_package_metadata(_dep())

    @patch("registry.rubygems.get_json")
    def test_fetch_unavailable(self, mock_get_json):
        mock_get_json.return_value = (0, {}, "timeout")
        with pytest.raises(RegistryUnavailableError):
            fetch_package_metadata(_dep())
