"""NPM registry client: latest version, publish dates and deprecation."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from versioning.models import Dependency, PackageMetadata
from registry.errors import PackageNotFoundError, RegistryError, RegistryUnavailableError
from registry.metadata import build_metadata

import registry.npm as npm_pkg

logger = logging.getLogger(__name__)

# Full packument; the abbreviated install format has no per-version "time" map.
PACKAGE_HEADERS = {"Accept": "application/json"}


def is_fetchable(dep: Dependency) -> bool:
    """We can't get NPM metadata for packages hosted outside of NPM."""
    name = dep.name
    version = str(dep.resolved_version)
    if "file:" in name or "git:" in name:
        return False
    if version.startswith(("file:", "git:")):
        return False
    return not any(name.startswith(f"{scope.rstrip('/')}/") for scope in Constants.NPM_EXCLUDED_SCOPES)


def package_url(name: str, base_url: Optional[str] = None) -> str:
    base = base_url or Constants.REGISTRY_URL_NPM
    if not base.endswith("/"):
        base += "/"
    return base + name.replace("/", "%2F")


def parse_packument(packument: Dict[str, Any], version: str) -> Optional[PackageMetadata]:
    """Extract latest tag, publish dates and deprecation from a packument."""
    latest = (packument.get("dist-tags") or {}).get("latest")
    if not latest:
        return None
    times = packument.get("time") or {}
    latest_info = (packument.get("versions") or {}).get(latest) or {}
    deprecated = bool(latest_info.get("deprecated"))
    return build_metadata(latest, times.get(version), times.get(latest), deprecated)


def fetch_package_metadata(dep: Dependency, base_url: Optional[str] = None) -> Optional[PackageMetadata]:
    """Get the metadata of a package from the NPM registry.

    Raises:
        PackageNotFoundError: HTTP 404.
        RegistryUnavailableError: no response after retries.
        RegistryError: any other unusable answer.
    """
    url = package_url(dep.name, base_url)
    status_code, _, data = npm_pkg.get_json(url, headers=PACKAGE_HEADERS)

    if status_code == 0:
        raise RegistryUnavailableError(f"{dep.name}: {data}")
    if status_code == 404:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP 404 received; package not in registry",
                extra=extra_context(
                    event="http_response",
                    outcome="not_found",
                    status_code=404,
                    target=safe_url(url),
                    package_manager="npm"
                )
            )
        raise PackageNotFoundError(dep.name)
    if status_code != 200:
        raise RegistryError(f"{dep.name}: unexpected status code {status_code}")
    if not isinstance(data, dict):
        raise RegistryError(f"{dep.name}: couldn't decode JSON")

    return parse_packument(data, dep.resolved_version)
