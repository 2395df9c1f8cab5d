"""pkgaudit - report deprecated, outdated or vulnerable packages of a project.

    Returns:
        int: Exit code
"""
import json
import logging
import os
import sys

from constants import ExitCodes, Constants, apply_settings, _load_yaml_config
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from args import parse_args
from cli_config import apply_cli_overrides

from versioning.models import Group, Technology
from registry.fetcher import fetch_metadata
from registry.npm.lockfile_parser import LockfileResolutionError
from analysis.filters import RiskFilter, filter_groups, filter_packages
from analysis.risk import classify, merge_duplicates, risky
from analysis.vulnerabilities import NullVulnerabilityLookup, OsvVulnerabilityLookup
from baseline.reconciler import reconcile, split_ignored
from baseline.store import IgnoreFileError, apply_reconciliation, config_path, load_config

logger = logging.getLogger(__name__)

_MANIFESTS = (
    (Technology.NODE, Constants.PACKAGE_JSON_FILE),
    (Technology.RUBY, Constants.GEMFILE_FILE),
)


def detect_technologies(dir_name):
    """Technologies whose manifest exists in ``dir_name``."""
    return [tech for tech, manifest in _MANIFESTS if os.path.isfile(os.path.join(dir_name, manifest))]


def scan_source(technology, dir_name):
    """Scans the source directory for resolved dependencies.

    Args:
        technology (Technology): Ecosystem to scan.
        dir_name (str): Directory path to scan.

    Returns:
        list: Dependency records with exact versions.
    """
    if technology == Technology.NODE:
        from registry import npm as _npm  # pylint: disable=import-outside-toplevel
        return _npm.scan_source(dir_name)
    if technology == Technology.RUBY:
        from registry import rubygems as _rubygems  # pylint: disable=import-outside-toplevel
        return _rubygems.scan_source(dir_name)
    logging.error("Selected technology doesn't support import scan.")
    sys.exit(ExitCodes.FILE_ERROR.value)


def declared_names(technology, dir_name):
    """Names declared in the manifest of ``technology``."""
    if technology == Technology.NODE:
        from registry import npm as _npm  # pylint: disable=import-outside-toplevel
        return _npm.declared_names(dir_name)
    from registry import rubygems as _rubygems  # pylint: disable=import-outside-toplevel
    return _rubygems.declared_names(dir_name)


def build_risk_filter(args):
    """Translate the --KIND / --skip-KIND toggles into a RiskFilter."""
    include, exclude = [], []
    for kind in Constants.RISK_KINDS:
        value = getattr(args, kind.upper(), None)
        if value is True:
            include.append(kind)
        elif value is False:
            exclude.append(kind)
    return RiskFilter.from_kinds(include, exclude)


def audit_technology(technology, dir_name, ignore_config, lookup, args, risk_filter):
    """Run the pipeline for one technology.

    Returns:
        tuple: (all resolved dependencies, reported dependencies, ignored dependencies)
    """
    deps = scan_source(technology, dir_name)
    report = fetch_metadata(deps)
    merged = merge_duplicates(classify(report.dependencies, lookup))
    flagged = risky(merged)

    active, ignored = split_ignored(flagged, ignore_config)
    if getattr(args, "INCLUDE_IGNORED", False):
        active, ignored = flagged, []
    groups = [Group(g) for g in (getattr(args, "GROUPS", None) or [])]
    active = filter_packages(filter_groups(active, groups), risk_filter)

    if is_debug_enabled(logger):
        logger.debug(
            "Technology audited",
            extra=extra_context(
                event="function_exit",
                component="cli",
                action="audit_technology",
                target=technology.value,
                outcome="risky" if active else "clean",
                count=len(active)
            )
        )
    return merged, active, ignored


def print_results(technology, active, ignored):
    """Log one line per reported package followed by a total."""
    for dep in active:
        latest = f"{dep.latest_version} ({dep.latest_version_date})" if dep.latest_version else "unknown"
        logging.info(
            "%s@%s (%s): %s; latest %s; groups %s",
            dep.name,
            dep.resolved_version,
            technology.value,
            ", ".join(dep.flags.kinds()),
            latest,
            ", ".join(sorted(g.value for g in dep.groups)),
        )
        for vuln in dep.vulnerabilities:
            logging.info("    %s [%s] %s %s", vuln.id, vuln.severity, vuln.summary, vuln.url)
    logging.info(
        "Found %d risky %s package(s) (%d ignored).", len(active), technology.value, len(ignored)
    )


def export_json(deps, path):
    """Exports the reported packages to a JSON file.

    Args:
        deps (list): Reported dependencies.
        path (str): File path to export the JSON.
    """
    data = [dep.to_dict() for dep in deps]
    try:
        with open(path, 'w', encoding='utf-8') as file:
            json.dump(data, file, ensure_ascii=False, indent=4)
        logging.info("JSON file has been successfully exported at: %s", path)
    except OSError as e:
        logging.error("JSON file couldn't be written to disk: %s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)


def reconcile_ignore_file(path, ignore_config, all_deps, technologies, dir_name):
    """Drop stale ignore entries and log what was removed."""
    if ignore_config is None:
        return
    declared = {tech.value: declared_names(tech, dir_name) for tech in technologies}
    result = reconcile(ignore_config, all_deps, declared, [tech.value for tech in technologies])
    try:
        apply_reconciliation(path, result)
    except OSError as e:
        logging.error("Couldn't update %s: %s", path, e)
        sys.exit(ExitCodes.FILE_ERROR.value)
    if result.removed:
        logging.info("Cleaned up %d package(s) from %s:", len(result.removed), os.path.basename(path))
        for entry in result.removed:
            logging.info("  - %s", entry.describe())


def main():
    """Main function of the program."""
    args = parse_args()
    configure_logging(args.LOG_LEVEL, getattr(args, "LOG_FILE", None))

    apply_settings(_load_yaml_config())
    apply_cli_overrides(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    dir_name = args.DIR
    if not os.path.isdir(dir_name):
        logging.error("Directory not found: %s", dir_name)
        sys.exit(ExitCodes.FILE_ERROR.value)

    try:
        risk_filter = build_risk_filter(args)
    except ValueError as e:
        logging.error("Invalid filter: %s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)

    if args.TECHNOLOGIES:
        technologies = [Technology(t) for t in dict.fromkeys(args.TECHNOLOGIES)]
    else:
        technologies = detect_technologies(dir_name)
    if not technologies:
        logging.warning("No %s or %s found in %s.", Constants.PACKAGE_JSON_FILE, Constants.GEMFILE_FILE, dir_name)
        sys.exit(ExitCodes.SUCCESS.value)

    ignore_path = config_path(dir_name, args.CONFIG)
    try:
        ignore_config = load_config(ignore_path, explicit=bool(args.CONFIG))
    except IgnoreFileError as e:
        logging.error("%s", e)
        sys.exit(ExitCodes.FILE_ERROR.value)

    lookup = OsvVulnerabilityLookup() if Constants.VULNERABILITY_CHECK_ENABLED else NullVulnerabilityLookup()

    all_deps, reported = [], []
    for technology in technologies:
        try:
            merged, active, ignored = audit_technology(
                technology, dir_name, ignore_config, lookup, args, risk_filter
            )
        except LockfileResolutionError as e:
            logging.error("%s", e)
            sys.exit(ExitCodes.FILE_ERROR.value)
        all_deps.extend(merged)
        reported.extend(active)
        print_results(technology, active, ignored)

    failures = getattr(lookup, "failures", 0)
    if failures:
        logging.warning(
            "%d vulnerability lookup(s) failed; those packages were reported without advisories.", failures
        )

    reconcile_ignore_file(ignore_path, ignore_config, all_deps, technologies, dir_name)

    if getattr(args, "OUTPUT", None):
        export_json(reported, args.OUTPUT)

    if reported:
        logging.warning("One or more packages have identified risks.")
        if args.ERROR_ON_WARNINGS:
            logging.error("Warnings present, exiting with non-zero status code.")
            sys.exit(ExitCodes.EXIT_WARNINGS.value)

    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
