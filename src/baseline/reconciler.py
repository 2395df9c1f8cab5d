"""Ignore-file reconciliation.

The ignore file maps ``technology -> name -> {version, <kind>: false}``. An
entry silences the listed risk kinds for exactly one version of a package;
once the project moves to another version the entry is stale and removed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

import yaml

from versioning.models import Dependency

logger = logging.getLogger(__name__)

TECHNOLOGY_KEY = "technology"
VERSION_KEY = "version"

REASON_VERSION_CHANGED = "version changed from {old} to {new}"
REASON_UNRESOLVED = "package version has changed"
REASON_GONE = "package no longer exists"


@dataclass(frozen=True)
class RemovedEntry:
    """A stale ignore entry and why it was dropped."""
    technology: str
    name: str
    version: Optional[str]
    reason: str

    def describe(self) -> str:
        return f"{self.name}@{self.version} ({self.technology}): {self.reason}"


@dataclass
class ReconcileResult:
    cleaned: Dict[str, Any]
    removed: List[RemovedEntry] = field(default_factory=list)
    changed: bool = False


def dump(config: Optional[Mapping[str, Any]]) -> str:
    """YAML rendering used both for writing and for change detection."""
    return yaml.safe_dump(config or {}, sort_keys=False, default_flow_style=False)


def sort_entry(entry: Mapping[str, Any]) -> Dict[str, Any]:
    """``version`` first, remaining keys alphabetically."""
    ordered: Dict[str, Any] = {}
    if VERSION_KEY in entry:
        ordered[VERSION_KEY] = entry[VERSION_KEY]
    for key in sorted(k for k in entry if k != VERSION_KEY):
        ordered[key] = entry[key]
    return ordered


def _current_versions(deps: Iterable[Dependency]) -> Dict[str, Dict[str, str]]:
    versions: Dict[str, Dict[str, str]] = {}
    for dep in deps:
        versions.setdefault(dep.technology.value, {}).setdefault(dep.name, dep.resolved_version)
    return versions


def _reason(name: str, version: Any, current: Mapping[str, str], declared: Set[str]) -> str:
    if name in current:
        return REASON_VERSION_CHANGED.format(old=version, new=current[name])
    if name in declared:
        return REASON_UNRESOLVED
    return REASON_GONE


def _clean_section(
    technology: str,
    packages: Any,
    current: Mapping[str, str],
    declared: Set[str],
) -> Tuple[Dict[str, Any], List[RemovedEntry]]:
    if not isinstance(packages, dict):
        logger.debug("Dropping malformed %s section of the ignore file", technology)
        return {}, []
    kept: Dict[str, Any] = {}
    removed: List[RemovedEntry] = []
    for name in sorted(packages, key=str):
        entry = packages[name]
        if not isinstance(entry, dict) or VERSION_KEY not in entry:
            logger.debug("Dropping malformed ignore entry %s (%s)", name, technology)
            continue
        version = entry[VERSION_KEY]
        if name in current and str(version) == current[name]:
            kept[name] = sort_entry(entry)
        else:
            removed.append(RemovedEntry(technology, str(name), str(version), _reason(name, version, current, declared)))
    return kept, removed


def reconcile(
    config: Optional[Mapping[str, Any]],
    current_deps: Iterable[Dependency],
    declared_names: Optional[Mapping[str, Set[str]]] = None,
    technologies: Optional[Iterable[str]] = None,
) -> ReconcileResult:
    """Drop ignore entries that no longer match a resolved dependency.

    Args:
        config: Parsed ignore file (may be None or malformed).
        current_deps: Every resolved dependency of the run, before filtering.
        declared_names: Manifest names per technology value; tells a package
            whose version is in flux apart from one that was removed.
        technologies: Technology values audited in this run. Sections of
            other technologies are kept (sorted) without reconciliation.
            Defaults to every technology found in the config.
    """
    declared_names = declared_names or {}
    if not isinstance(config, dict):
        return ReconcileResult(cleaned={}, changed=config is not None)

    current = _current_versions(current_deps)
    audited = set(technologies) if technologies is not None else None
    cleaned: Dict[str, Any] = {}
    removed: List[RemovedEntry] = []

    sections = config.get(TECHNOLOGY_KEY)
    if isinstance(sections, dict):
        cleaned_sections: Dict[str, Any] = {}
        for technology in sorted(sections, key=str):
            packages = sections[technology]
            if audited is not None and technology not in audited:
                if isinstance(packages, dict) and packages:
                    cleaned_sections[technology] = {
                        name: sort_entry(entry) if isinstance(entry, dict) else entry
                        for name, entry in sorted(packages.items(), key=lambda item: str(item[0]))
                    }
                continue
            kept, dropped = _clean_section(
                technology, packages, current.get(technology, {}), set(declared_names.get(technology, ()))
            )
            removed.extend(dropped)
            if kept:
                cleaned_sections[technology] = kept
        if cleaned_sections:
            cleaned[TECHNOLOGY_KEY] = cleaned_sections

    removed.sort(key=lambda r: (r.technology, r.name))
    return ReconcileResult(cleaned=cleaned, removed=removed, changed=dump(cleaned) != dump(config))


def _is_ignored(dep: Dependency, entry: Any) -> bool:
    if not isinstance(entry, dict) or str(entry.get(VERSION_KEY)) != dep.resolved_version:
        return False
    raised = dep.flags.kinds()
    return bool(raised) and all(entry.get(kind) is False for kind in raised)


def split_ignored(
    deps: Iterable[Dependency],
    config: Optional[Mapping[str, Any]],
) -> Tuple[List[Dependency], List[Dependency]]:
    """Partition ``deps`` into (active, ignored) according to the ignore file.

    A package is ignored when an entry for its exact version sets every one of
    its raised risk kinds to ``false``.
    """
    sections = (config or {}).get(TECHNOLOGY_KEY) if isinstance(config, dict) else None
    if not isinstance(sections, dict):
        return list(deps), []
    active: List[Dependency] = []
    ignored: List[Dependency] = []
    for dep in deps:
        packages = sections.get(dep.technology.value)
        entry = packages.get(dep.name) if isinstance(packages, dict) else None
        (ignored if _is_ignored(dep, entry) else active).append(dep)
    return active, ignored
