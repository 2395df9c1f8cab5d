"""Reduce raw registry answers to ``PackageMetadata``.

Shared by the npm and rubygems clients so both apply the same date rules.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional

from constants import Constants
from versioning.models import PackageMetadata

logger = logging.getLogger(__name__)

_DATE_PREFIX_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")


def format_date(value: Optional[str]) -> Optional[str]:
    """Format an ISO 8601 timestamp as YYYY-MM-DD; None when unparseable."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).strftime(Constants.DATE_FORMAT)
    except ValueError:
        # Older interpreters reject some fractional-second widths.
        match = _DATE_PREFIX_RE.match(value.strip())
        if match:
            return match.group(1)
        logger.debug("Couldn't parse timestamp %r", value)
        return None


def build_metadata(
    latest_version: Optional[str],
    version_time: Optional[str],
    latest_time: Optional[str],
    deprecated: bool = False,
) -> Optional[PackageMetadata]:
    """Combine the latest tag and both publish dates.

    A missing date is substituted by the other one. Without a latest version
    or without any date, no metadata is returned.
    """
    if not latest_version:
        return None
    version_date = format_date(version_time)
    latest_date = format_date(latest_time)
    if version_date is None and latest_date is None:
        return None
    return PackageMetadata(
        latest_version=latest_version,
        version_date=version_date or latest_date,
        latest_version_date=latest_date or version_date,
        deprecated=deprecated,
    )
