"""Argument parsing functionality for pkgaudit."""

import argparse
from constants import Constants


def _risk_toggle(parser, kind, help_text):
    """--KIND / --skip-KIND pair stored as True / False / None (no opinion)."""
    group = parser.add_mutually_exclusive_group()
    dest = kind.upper()
    group.add_argument(f"--{kind}",
                       dest=dest,
                       help=f"Only report {help_text} packages.",
                       action="store_const", const=True)
    group.add_argument(f"--skip-{kind}",
                       dest=dest,
                       help=f"Do not report packages that are only {help_text}.",
                       action="store_const", const=False)
    parser.set_defaults(**{dest: None})


def parse_args(args=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="pkgaudit",
        description=(
            "pkgaudit - report deprecated, outdated or vulnerable packages"
        ),
        add_help=True,
    )

    parser.add_argument("DIR",
                        help="Project directory to audit (default: current directory)",
                        nargs="?",
                        default=".")
    parser.add_argument("-t", "--technology",
                        dest="TECHNOLOGIES",
                        help="Technology to audit; repeatable. Auto-detected when omitted.",
                        action="append", type=str.lower,
                        choices=Constants.SUPPORTED_TECHNOLOGIES)
    parser.add_argument("-g", "--group",
                        dest="GROUPS",
                        help="Only report packages declared in this group; repeatable.",
                        action="append", type=str.lower,
                        choices=Constants.SUPPORTED_GROUPS)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help=f"Path to the ignore file (default: {Constants.CONFIG_FILE})",
                        action="store",
                        type=str)
    parser.add_argument("--include-ignored",
                        dest="INCLUDE_IGNORED",
                        help="Include packages ignored by the ignore file.",
                        action="store_true")

    _risk_toggle(parser, "deprecated", "deprecated")
    _risk_toggle(parser, "outdated", "outdated")
    _risk_toggle(parser, "vulnerable", "vulnerable")
    parser.add_argument("--no-vulnerability-check",
                        dest="NO_VULNERABILITY_CHECK",
                        help="Skip the OSV vulnerability lookup.",
                        action="store_true")

    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Path to a JSON file receiving the report",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("--error-on-warnings",
                        dest="ERROR_ON_WARNINGS",
                        help="Exit with a non-zero status code if risky packages are reported.",
                        action="store_true")

    # Runtime tunables
    parser.add_argument("--registry-npm",
                        dest="REGISTRY_NPM",
                        help="Base URL of the npm registry",
                        action="store",
                        type=str)
    parser.add_argument("--registry-rubygems",
                        dest="REGISTRY_RUBYGEMS",
                        help="Base URL of the RubyGems registry",
                        action="store",
                        type=str)
    parser.add_argument("--batch-size",
                        dest="BATCH_SIZE",
                        help="Packages fetched concurrently per batch",
                        action="store",
                        type=int)
    parser.add_argument("--timeout",
                        dest="TIMEOUT",
                        help="Read timeout in seconds for registry requests",
                        action="store",
                        type=float)

    return parser.parse_args(args)
