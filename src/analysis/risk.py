"""Risk classification and duplicate merging."""

from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, Timer
from versioning.models import Dependency, PackageKey, RiskFlags, VulnerabilityRecord
from versioning.parser import is_outdated

from analysis.vulnerabilities import NullVulnerabilityLookup, VulnerabilityLookup

logger = logging.getLogger(__name__)


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value, Constants.DATE_FORMAT).date()
    except ValueError:
        return None


def is_stale(latest_version_date: Optional[str], today: date) -> bool:
    """True when the newest release is older than the deprecation age."""
    released = _parse_date(latest_version_date)
    if released is None:
        return False
    return today - released > timedelta(days=Constants.DEPRECATED_AFTER_DAYS)


def classify(
    deps: List[Dependency],
    vulnerability_lookup: Optional[VulnerabilityLookup] = None,
    *,
    today: Optional[date] = None,
) -> List[Dependency]:
    """Compute the risk flags of every dependency.

    Flags are stored on the dependencies, which are returned in input order.
    """
    lookup = vulnerability_lookup or NullVulnerabilityLookup()
    today = today or date.today()

    with Timer() as t:
        for dep in deps:
            vulnerabilities = list(lookup(dep.name, dep.resolved_version, dep.technology))
            dep.vulnerabilities = vulnerabilities
            dep.flags = RiskFlags(
                deprecated=dep.registry_deprecated or is_stale(dep.latest_version_date, today),
                outdated=is_outdated(dep.resolved_version, dep.latest_version, dep.technology),
                vulnerable=bool(vulnerabilities),
            )

    if is_debug_enabled(logger):
        logger.debug(
            "Classification finished",
            extra=extra_context(
                event="function_exit",
                component="risk",
                action="classify",
                outcome="success",
                count=len(deps),
                duration_ms=t.duration_ms()
            )
        )
    return deps


def risky(deps: List[Dependency]) -> List[Dependency]:
    """Dependencies with at least one risk flag."""
    return [dep for dep in deps if dep.has_risk()]


def _merge_vulnerabilities(*lists: List[VulnerabilityRecord]) -> List[VulnerabilityRecord]:
    seen = set()
    merged = []
    for records in lists:
        for record in records:
            if record.id in seen:
                continue
            seen.add(record.id)
            merged.append(record)
    return merged


def _merge_pair(kept: Dependency, other: Dependency) -> Dependency:
    if kept.resolved_version != other.resolved_version:
        logger.debug(
            "%s resolved to both %s and %s", kept.name, kept.resolved_version, other.resolved_version
        )
    winner, loser = kept, other
    if not kept.has_metadata() and other.has_metadata():
        winner, loser = other, kept
    return dataclasses.replace(
        winner,
        groups=set(winner.groups) | set(loser.groups),
        flags=winner.flags.union(loser.flags),
        vulnerabilities=_merge_vulnerabilities(kept.vulnerabilities, other.vulnerabilities),
    )


def merge_duplicates(deps: List[Dependency]) -> List[Dependency]:
    """Collapse records sharing ``(name, technology)`` into one.

    Groups are united and flags OR-ed. When resolved versions differ, the
    record that carries registry metadata is kept; otherwise the first seen.
    Order follows the first occurrence of each key.
    """
    merged: Dict[PackageKey, Dependency] = {}
    for dep in deps:
        current = merged.get(dep.key)
        merged[dep.key] = dataclasses.replace(dep, groups=set(dep.groups)) if current is None \
            else _merge_pair(current, dep)
    return list(merged.values())
