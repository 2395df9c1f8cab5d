"""NPM registry package.

This package provides Node (package.json + yarn.lock) support:
- lockfile_parser.py: yarn.lock index and version extraction strategies
- scan.py: resolution of declared dependencies against the lock file
- client.py: registry metadata (latest version, publish dates, deprecation)
"""

# Patch points exposed for tests (e.g., monkeypatch in tests)
from common.http_client import get_json  # noqa: F401

# Public API re-exports
from .lockfile_parser import (  # noqa: F401
    LockFileIndex,
    LockfileResolutionError,
    PackageNotFoundInLockfileError,
    VersionNotFoundInLockfileError,
    extract_version,
)
from .scan import declared_names, resolve_dependencies, scan_source  # noqa: F401
from .client import fetch_package_metadata, is_fetchable  # noqa: F401

__all__ = [
    # Lock file
    "LockFileIndex",
    "LockfileResolutionError",
    "PackageNotFoundInLockfileError",
    "VersionNotFoundInLockfileError",
    "extract_version",
    # Scan/client
    "declared_names",
    "resolve_dependencies",
    "scan_source",
    "fetch_package_metadata",
    "is_fetchable",
    # Patch points for tests
    "get_json",
]
