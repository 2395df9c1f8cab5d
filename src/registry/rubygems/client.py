"""RubyGems client: latest release and publish dates from the versions API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from versioning.models import Dependency, PackageMetadata
from registry.errors import PackageNotFoundError, RegistryError, RegistryUnavailableError
from registry.metadata import build_metadata

import registry.rubygems as rubygems_pkg

logger = logging.getLogger(__name__)


def is_fetchable(dep: Dependency) -> bool:
    """Git and path gems are dropped by the resolver; a custom one may still pass them."""
    return bool(dep.name) and not str(dep.resolved_version).startswith("file:")


def versions_url(name: str, base_url: Optional[str] = None) -> str:
    base = base_url or Constants.REGISTRY_URL_RUBYGEMS
    if not base.endswith("/"):
        base += "/"
    return f"{base}api/v1/versions/{name}.json"


def parse_versions(versions: List[Dict[str, Any]], version: str) -> Optional[PackageMetadata]:
    """Pick the newest stable release and the publish dates of interest.

    The API lists releases newest first; prereleases never count as latest.
    """
    stable = [v for v in versions if isinstance(v, dict) and not v.get("prerelease")]
    if not stable:
        return None
    latest = stable[0]
    current = next((v for v in versions if isinstance(v, dict) and v.get("number") == version), {})
    return build_metadata(
        latest.get("number"),
        current.get("created_at"),
        latest.get("created_at"),
    )


def fetch_package_metadata(dep: Dependency, base_url: Optional[str] = None) -> Optional[PackageMetadata]:
    """Get the metadata of a gem from rubygems.org.

    Raises:
        PackageNotFoundError: HTTP 404.
        RegistryUnavailableError: no response after retries.
        RegistryError: any other unusable answer.
    """
    url = versions_url(dep.name, base_url)
    status_code, _, data = rubygems_pkg.get_json(url)

    if status_code == 0:
        raise RegistryUnavailableError(f"{dep.name}: {data}")
    if status_code == 404:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP 404 received; gem not in registry",
                extra=extra_context(
                    event="http_response",
                    outcome="not_found",
                    status_code=404,
                    target=safe_url(url),
                    package_manager="rubygems"
                )
            )
        raise PackageNotFoundError(dep.name)
    if status_code != 200:
        raise RegistryError(f"{dep.name}: unexpected status code {status_code}")
    if not isinstance(data, list):
        raise RegistryError(f"{dep.name}: couldn't decode JSON")

    return parse_versions(data, dep.resolved_version)
