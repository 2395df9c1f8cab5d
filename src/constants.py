"""Constants used in the project."""

import logging
import os
from enum import Enum
from typing import Any, Dict, Optional

from versioning.models import Technology


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    EXIT_WARNINGS = 3


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_NPM = "https://registry.npmjs.org/"
    REGISTRY_URL_RUBYGEMS = "https://rubygems.org/"
    OSV_QUERY_URL = "https://api.osv.dev/v1/query"
    SUPPORTED_TECHNOLOGIES = [t.value for t in Technology]
    SUPPORTED_GROUPS = ["default", "development"]
    RISK_KINDS = ["deprecated", "outdated", "vulnerable"]

    PACKAGE_JSON_FILE = "package.json"
    YARN_LOCK_FILE = "yarn.lock"
    GEMFILE_FILE = "Gemfile"
    GEMFILE_LOCK_FILE = "Gemfile.lock"
    CONFIG_FILE = ".package-audit.yml"
    SETTINGS_FILE = "pkgaudit.yml"
    ENV_SETTINGS = "PKGAUDIT_SETTINGS"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    DATE_FORMAT = "%Y-%m-%d"

    # HTTP
    HTTP_CONNECT_TIMEOUT = 5
    HTTP_READ_TIMEOUT = 10
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_RETRY_STATUSES = (429, 500, 502, 503, 504)
    USER_AGENT = "pkgaudit"

    # Metadata fetcher
    FETCH_BATCH_SIZE = 10
    FETCH_MAX_WORKERS = 10
    FETCH_BATCH_PAUSE_SEC = 0.1
    NPM_EXCLUDED_SCOPES: list = []

    # Risk classification
    DEPRECATED_AFTER_DAYS = 730
    VULNERABILITY_CHECK_ENABLED = True


# Keys accepted in the YAML settings file, mapped onto Constants attributes.
_SETTINGS_MAP = {
    ("registry", "npm"): "REGISTRY_URL_NPM",
    ("registry", "rubygems"): "REGISTRY_URL_RUBYGEMS",
    ("registry", "exclude_scopes"): "NPM_EXCLUDED_SCOPES",
    ("http", "connect_timeout"): "HTTP_CONNECT_TIMEOUT",
    ("http", "read_timeout"): "HTTP_READ_TIMEOUT",
    ("http", "retries"): "HTTP_RETRY_MAX",
    ("http", "retry_base_delay"): "HTTP_RETRY_BASE_DELAY_SEC",
    ("fetch", "batch_size"): "FETCH_BATCH_SIZE",
    ("fetch", "max_workers"): "FETCH_MAX_WORKERS",
    ("fetch", "batch_pause"): "FETCH_BATCH_PAUSE_SEC",
    ("risk", "deprecated_after_days"): "DEPRECATED_AFTER_DAYS",
    ("vulnerabilities", "enabled"): "VULNERABILITY_CHECK_ENABLED",
    ("vulnerabilities", "osv_url"): "OSV_QUERY_URL",
}


def _settings_candidates() -> list:
    """Return settings file locations in precedence order."""
    candidates = []
    env_path = os.environ.get(Constants.ENV_SETTINGS)
    if env_path:
        candidates.append(env_path)
    candidates.append(os.path.join(os.getcwd(), Constants.SETTINGS_FILE))
    candidates.append(
        os.path.join(os.path.expanduser("~"), ".config", "pkgaudit", Constants.SETTINGS_FILE)
    )
    return candidates


def _load_yaml_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the first readable YAML settings file.

    Returns an empty dict when no file exists or the file cannot be parsed.
    """
    import yaml  # pylint: disable=import-outside-toplevel

    paths = [path] if path else _settings_candidates()
    for candidate in paths:
        if not candidate or not os.path.isfile(candidate):
            continue
        try:
            with open(candidate, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except (OSError, yaml.YAMLError) as exc:
            logging.warning("Unable to read settings file %s: %s", candidate, exc)
            return {}
        if isinstance(data, dict):
            return data
        logging.warning("Ignoring settings file %s: expected a mapping", candidate)
        return {}
    return {}


def apply_settings(settings: Dict[str, Any]) -> None:
    """Copy recognised settings onto Constants, keeping the current type."""
    for (section, key), attr in _SETTINGS_MAP.items():
        block = settings.get(section)
        if not isinstance(block, dict) or key not in block:
            continue
        value = block[key]
        current = getattr(Constants, attr)
        try:
            if isinstance(current, bool):
                value = bool(value)
            elif isinstance(current, int):
                value = int(value)
            elif isinstance(current, float):
                value = float(value)
            elif isinstance(current, list):
                value = list(value or [])
            elif isinstance(current, str):
                value = str(value)
        except (TypeError, ValueError):
            logging.warning("Ignoring invalid setting %s.%s: %r", section, key, value)
            continue
        setattr(Constants, attr, value)
