"""CLI configuration overrides for runtime tunables.

Extracted from pkgaudit.py to keep the entrypoint slim. CLI values take
precedence over the YAML settings file, which takes precedence over defaults.
"""

from __future__ import annotations

import logging

from constants import Constants

logger = logging.getLogger(__name__)


def apply_cli_overrides(args) -> None:
    """Apply CLI overrides for registry URLs and fetch tunables."""
    if getattr(args, "REGISTRY_NPM", None):
        Constants.REGISTRY_URL_NPM = args.REGISTRY_NPM
    if getattr(args, "REGISTRY_RUBYGEMS", None):
        Constants.REGISTRY_URL_RUBYGEMS = args.REGISTRY_RUBYGEMS
    if getattr(args, "BATCH_SIZE", None) is not None:
        if args.BATCH_SIZE < 1:
            logger.warning("Ignoring --batch-size %s; it must be at least 1.", args.BATCH_SIZE)
        else:
            Constants.FETCH_BATCH_SIZE = args.BATCH_SIZE
    if getattr(args, "TIMEOUT", None) is not None:
        if args.TIMEOUT <= 0:
            logger.warning("Ignoring --timeout %s; it must be positive.", args.TIMEOUT)
        else:
            Constants.HTTP_READ_TIMEOUT = args.TIMEOUT
    if getattr(args, "NO_VULNERABILITY_CHECK", False):
        Constants.VULNERABILITY_CHECK_ENABLED = False
