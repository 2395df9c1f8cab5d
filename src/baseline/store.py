"""Reading and writing the ignore file."""

from __future__ import annotations

import logging
import os
import tempfile
from typing import Any, Dict, Optional

import yaml

from constants import Constants

from baseline.reconciler import ReconcileResult, dump

logger = logging.getLogger(__name__)


class IgnoreFileError(Exception):
    """The ignore file could not be read or parsed."""


class _IgnoreFileLoader(yaml.SafeLoader):  # pylint: disable=too-many-ancestors
    """SafeLoader that keeps numbers as strings, so ``version: 1.10`` stays ``"1.10"``."""


_IgnoreFileLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers
            if tag not in ("tag:yaml.org,2002:int", "tag:yaml.org,2002:float")]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def config_path(dir_name: str, explicit: Optional[str] = None) -> str:
    return explicit or os.path.join(dir_name, Constants.CONFIG_FILE)


def load_config(path: str, explicit: bool = False) -> Optional[Dict[str, Any]]:
    """Load the ignore file at ``path``.

    Returns None when the default file is absent.

    Raises:
        IgnoreFileError: an explicitly requested file is missing, or the file
            cannot be read or is not valid YAML.
    """
    if not os.path.isfile(path):
        if explicit:
            raise IgnoreFileError(f"Configuration file not found: {path}")
        return None
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.load(fh, Loader=_IgnoreFileLoader)
    except (OSError, yaml.YAMLError) as e:
        raise IgnoreFileError(f"Couldn't load {path}: {e}") from e
    logger.debug("Loaded ignore file %s", path)
    return data


def write_atomic(path: str, text: str) -> None:
    """Replace ``path`` with ``text`` via a temporary file in the same directory."""
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(prefix=".pkgaudit-", suffix=".yml", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def apply_reconciliation(path: str, result: ReconcileResult) -> bool:
    """Persist a reconciliation; returns True when the file was touched.

    An empty cleaned config deletes the file rather than writing it empty.
    """
    if not result.changed or not os.path.exists(path):
        return False
    if not result.cleaned:
        os.remove(path)
        logger.debug("Removed empty ignore file %s", path)
        return True
    write_atomic(path, dump(result.cleaned))
    return True
