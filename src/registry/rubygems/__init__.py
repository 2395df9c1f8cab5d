"""RubyGems registry package.

This package provides Ruby (Gemfile + Gemfile.lock) support:
- scan.py: the ManifestResolver seam and its Gemfile.lock implementation
- client.py: registry metadata from the rubygems versions API
"""

# Patch points exposed for tests (e.g., monkeypatch in tests)
from common.http_client import get_json  # noqa: F401

# Public API re-exports
from .scan import (  # noqa: F401
    GemfileLockResolver,
    ManifestResolver,
    ResolvedSpec,
    scan_source,
)
from .client import fetch_package_metadata, is_fetchable  # noqa: F401


def declared_names(dir_name: str) -> set:
    """Gem names declared in the Gemfile, or an empty set."""
    return GemfileLockResolver().declared_names(dir_name)


__all__ = [
    "GemfileLockResolver",
    "ManifestResolver",
    "ResolvedSpec",
    "declared_names",
    "scan_source",
    "fetch_package_metadata",
    "is_fetchable",
    # Patch points for tests
    "get_json",
]
