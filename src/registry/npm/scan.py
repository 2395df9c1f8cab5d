"""NPM source scanner: resolve package.json declarations against yarn.lock."""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Dict, List, Mapping, Optional, Set, Tuple, Union

from constants import ExitCodes, Constants
from common.logging_utils import extra_context, is_debug_enabled, Timer
from versioning.models import Dependency, Group, Technology
from versioning.parser import is_local_dependency

from registry.npm.lockfile_parser import LockFileIndex, effective_range, extract_version

logger = logging.getLogger(__name__)


def filter_local_dependencies(dependencies: Mapping[str, str]) -> Dict[str, str]:
    """Drop path, link, portal and workspace declarations; they are not audited."""
    return {name: rng for name, rng in dependencies.items() if not is_local_dependency(rng)}


def _parse_package_json(package_json_path: str) -> Tuple[Dict[str, str], Dict[str, str], Dict[str, str]]:
    """Return (dependencies, devDependencies, resolutions) from package.json.

    Local declarations are already filtered out of both dependency maps.
    """
    with open(package_json_path, "r", encoding="utf-8") as file:
        data = json.load(file)
    default_deps = data.get("dependencies") or {}
    dev_deps = data.get("devDependencies") or {}
    resolutions = data.get("resolutions") or {}
    return (
        filter_local_dependencies(default_deps),
        filter_local_dependencies(dev_deps),
        {str(k): str(v) for k, v in resolutions.items()},
    )


def declared_names(dir_name: str) -> Set[str]:
    """Names declared in package.json (regular + dev), or an empty set."""
    package_json_path = os.path.join(dir_name, Constants.PACKAGE_JSON_FILE)
    try:
        with open(package_json_path, "r", encoding="utf-8") as file:
            data = json.load(file)
    except (OSError, json.JSONDecodeError):
        return set()
    return set(data.get("dependencies") or {}) | set(data.get("devDependencies") or {})


def _override_for(name: str, resolutions: Mapping[str, str]) -> Optional[str]:
    """Resolution entry for ``name``; yarn's ``**/name`` form is accepted too."""
    return resolutions.get(name) or resolutions.get(f"**/{name}")


def _groups_for(name: str, default_deps: Mapping[str, str], dev_deps: Mapping[str, str]) -> Set[Group]:
    if name in dev_deps and name not in default_deps:
        return {Group.DEVELOPMENT}
    return {Group.DEFAULT, Group.DEVELOPMENT}


def resolve_dependencies(
    default_deps: Mapping[str, str],
    dev_deps: Mapping[str, str],
    resolutions: Mapping[str, str],
    lock: Union[str, LockFileIndex],
) -> List[Dependency]:
    """Resolve every declared dependency to the exact version in the lock file.

    Raises:
        LockfileResolutionError: for the first dependency that cannot be resolved.
    """
    index = lock if isinstance(lock, LockFileIndex) else LockFileIndex(lock)
    default_deps = filter_local_dependencies(default_deps)
    dev_deps = filter_local_dependencies(dev_deps)
    declared = dict(default_deps)
    declared.update(dev_deps)

    dependencies: List[Dependency] = []
    with Timer() as t:
        for name, declared_range in declared.items():
            override = _override_for(name, resolutions)
            version = extract_version(index, name, declared_range, override)
            dependencies.append(
                Dependency(
                    name=name,
                    resolved_version=version,
                    technology=Technology.NODE,
                    declared_range=effective_range(declared_range, override),
                    groups=_groups_for(name, default_deps, dev_deps),
                )
            )

    if is_debug_enabled(logger):
        logger.debug(
            "Lock file resolution finished",
            extra=extra_context(
                event="function_exit",
                component="scan",
                action="resolve_dependencies",
                outcome="success",
                count=len(dependencies),
                duration_ms=t.duration_ms(),
                package_manager="npm"
            )
        )
    return dependencies


def scan_source(dir_name: str) -> List[Dependency]:
    """Scan a directory holding package.json and yarn.lock.

    Returns an empty list when there is no yarn.lock. Resolution failures
    propagate as ``LockfileResolutionError``.
    """
    logger.info("npm scanner engaged.")
    package_json_path = os.path.join(dir_name, Constants.PACKAGE_JSON_FILE)
    yarn_lock_path = os.path.join(dir_name, Constants.YARN_LOCK_FILE)

    if not os.path.isfile(package_json_path):
        logger.error("package.json not found, unable to continue.")
        sys.exit(ExitCodes.FILE_ERROR.value)

    try:
        default_deps, dev_deps, resolutions = _parse_package_json(package_json_path)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Couldn't read %s: %s", package_json_path, e)
        sys.exit(ExitCodes.FILE_ERROR.value)

    if not os.path.isfile(yarn_lock_path):
        logger.warning("%s not found in %s; skipping node packages.", Constants.YARN_LOCK_FILE, dir_name)
        return []

    try:
        index = LockFileIndex.from_file(yarn_lock_path)
    except OSError as e:
        logger.error("Couldn't read %s: %s", yarn_lock_path, e)
        sys.exit(ExitCodes.FILE_ERROR.value)

    return resolve_dependencies(default_deps, dev_deps, resolutions, index)
