"""Vulnerability lookup collaborators.

The classifier only needs ``(name, version, technology) -> records``; where the
records come from is pluggable. ``OsvVulnerabilityLookup`` asks the OSV.dev
database, ``NullVulnerabilityLookup`` disables the check.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

from constants import Constants
from common.http_client import post_json
from common.logging_utils import extra_context, is_debug_enabled
from versioning.models import Technology, VulnerabilityRecord

logger = logging.getLogger(__name__)

OSV_ECOSYSTEMS = {
    Technology.NODE: "npm",
    Technology.RUBY: "RubyGems",
}


class VulnerabilityLookup(Protocol):
    """Anything that can list the advisories affecting one package version."""

    def __call__(self, name: str, version: str, technology: Technology) -> List[VulnerabilityRecord]:
        ...


class NullVulnerabilityLookup:
    """Reports nothing; used when the vulnerability check is disabled."""

    def __call__(self, name: str, version: str, technology: Technology) -> List[VulnerabilityRecord]:
        return []


def _severity(vuln: Dict[str, Any]) -> str:
    for item in vuln.get("severity") or []:
        if item.get("type") != "CVSS_V3":
            continue
        try:
            score = float(str(item.get("score", "0")).split("/")[0])
        except ValueError:
            # Vector strings ("CVSS:3.1/AV:N/...") carry no numeric score.
            break
        if score >= 9.0:
            return "CRITICAL"
        if score >= 7.0:
            return "HIGH"
        if score >= 4.0:
            return "MEDIUM"
        return "LOW"
    db_specific = vuln.get("database_specific") or {}
    if isinstance(db_specific.get("severity"), str):
        return db_specific["severity"].upper()
    return "UNKNOWN"


def _advisory_url(vuln: Dict[str, Any]) -> str:
    for ref in vuln.get("references") or []:
        if ref.get("type") == "ADVISORY" and ref.get("url"):
            return ref["url"]
    return f"https://osv.dev/vulnerability/{vuln.get('id', '')}"


def parse_osv_response(data: Any) -> List[VulnerabilityRecord]:
    """Turn an OSV ``/v1/query`` answer into records."""
    if not isinstance(data, dict):
        return []
    records = []
    for vuln in data.get("vulns") or []:
        if not isinstance(vuln, dict) or not vuln.get("id"):
            continue
        records.append(
            VulnerabilityRecord(
                id=vuln["id"],
                summary=vuln.get("summary") or "",
                severity=_severity(vuln),
                url=_advisory_url(vuln),
            )
        )
    return records


class OsvVulnerabilityLookup:
    """Queries the OSV.dev database; failures degrade to "no advisories"."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or Constants.OSV_QUERY_URL
        self.failures = 0

    def __call__(self, name: str, version: str, technology: Technology) -> List[VulnerabilityRecord]:
        ecosystem = OSV_ECOSYSTEMS.get(technology)
        if ecosystem is None:
            return []
        query = {"package": {"name": name, "ecosystem": ecosystem}, "version": version}
        status_code, _, data = post_json(self.url, query)
        if status_code != 200 or not isinstance(data, dict):
            self.failures += 1
            logger.warning("Vulnerability lookup for %s@%s failed (status %s).", name, version, status_code)
            return []
        records = parse_osv_response(data)
        if is_debug_enabled(logger):
            logger.debug(
                "OSV lookup finished",
                extra=extra_context(
                    event="function_exit",
                    component="vulnerabilities",
                    action="osv_query",
                    outcome="vulnerable" if records else "clean",
                    target=f"{name}@{version}",
                    count=len(records)
                )
            )
        return records
