#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# ****************************************************************************************************************************************************
# * BSD 3-Clause License
# *
# * Copyright (c) 2025, Mana Battery
# * All rights reserved.
# *
# * Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
# *
# * 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
# * 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
# *    documentation and/or other materials provided with the distribution.
# * 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
# *    software without specific prior written permission.
# *
# * THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
# * THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
# * CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
# * PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
# * LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
# * EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
# ****************************************************************************************************************************************************
"""List the release roots of a multi-module Maven project and check them for changes.

PURPOSE:
    Release readiness overview for a reactor build. Shows, for every module,
    whether it is a release root, whether it changed since its last release
    and which other modules of the reactor depend on it.

WHAT IT DOES:
    - Loads the reactor from the root pom.xml (following <modules>)
    - Treats modules declaring their own <scm> section as release roots
    - Reads the latest changelog entry of each release root's working copy
    - Reports a release root as unmodified when that entry is the release
      plugin's "prepare for next development iteration" commit
    - Lists direct downstream dependents inside the reactor, and those that
      pin exactly the module's current version

METHOD:
    One changelog request per release root (git via GitPython by default,
    git/svn command line clients on request). Any failed request aborts the
    whole run; nothing is reported for a partial analysis.

REQUIREMENTS:
    - Python 3.8+
    - GitPython, networkx, packaging
    - colorama (optional, for colored output)
    - git / svn clients for the gitexe / svnexe provider implementations

EXAMPLES:
    # Report for the project in the current directory
    ./releaseCheckRoots.py

    # Use the git command line client instead of GitPython
    ./releaseCheckRoots.py ../my-project --provider-implementation git=gitexe

    # Query four working copies at a time
    ./releaseCheckRoots.py ../my-project --jobs 4
"""

import os
import sys
import signal
import logging
import argparse
from typing import Any, Dict, List

__version__ = "1.0.0"

from lib.color_utils import Colors, print_error, print_report_line, print_warning, should_use_color
from lib.constants import (
    EXIT_SUCCESS,
    EXIT_INVALID_ARGS,
    EXIT_RUNTIME_ERROR,
    EXIT_KEYBOARD_INTERRUPT,
    DEFAULT_MAX_WORKERS,
    SCM_COMMAND_TIMEOUT,
    ArgumentError,
    ReleaseCheckError,
)

# Check runtime packages early with helpful error messages
from lib.package_verification import require_package

require_package("GitPython", "changelog queries")
require_package("networkx", "reactor ordering")

from lib.pom_parser import load_reactor
from lib.release_roots import classify_release_roots
from lib.report_utils import RESULTS_HEADER, build_report_lines, summarize, write_report
from lib.scm_utils import ProviderConfig, ScmManager

# Export for tests
__all__ = ["EXIT_SUCCESS", "main", "parse_provider_implementations", "run_release_check"]

logger = logging.getLogger("releaseCheckRoots")


def signal_handler(signum: int, frame: Any) -> None:
    """Handle interrupt signals gracefully."""
    print_warning("\nInterrupted by user", prefix=False)
    sys.exit(EXIT_KEYBOARD_INTERRUPT)


def parse_provider_implementations(values: List[str]) -> Dict[str, str]:
    """Parse PREFIX=IMPLEMENTATION pairs, keeping command line order.

    Raises:
        ArgumentError: If a value is not of the form PREFIX=IMPLEMENTATION
    """
    implementations: Dict[str, str] = {}
    for value in values:
        prefix, sep, hint = value.partition("=")
        if not sep or not prefix.strip() or not hint.strip():
            raise ArgumentError(f"Invalid provider implementation '{value}', expected PREFIX=IMPLEMENTATION (e.g. git=gitexe)")
        implementations[prefix.strip()] = hint.strip()
    return implementations


def run_release_check(project_path: str, implementations: Dict[str, str], timeout: int = SCM_COMMAND_TIMEOUT, jobs: int = DEFAULT_MAX_WORKERS) -> int:
    """Load the reactor, classify it and print the report.

    Returns:
        Number of modules recommended for release

    Raises:
        ReleaseCheckError: If loading, provider configuration or classification fails
    """
    scm_manager = ScmManager(ProviderConfig(implementations=implementations, timeout=timeout))

    modules = load_reactor(project_path)

    logger.info("Analysing reactor projects and checking for changes...")
    statuses = classify_release_roots(modules, scm_manager, max_workers=jobs)

    write_report(RESULTS_HEADER + build_report_lines(statuses, modules), print_report_line)

    summary = summarize(statuses, modules)
    print()
    print(
        f"{Colors.BRIGHT}{summary.total}{Colors.RESET} modules: "
        f"{summary.not_tracked} not release roots, {summary.unmodified} unmodified, {summary.modified} changed, "
        f"{Colors.BRIGHT}{summary.recommended}{Colors.RESET} recommended for release"
    )
    return summary.recommended


def main() -> int:
    """Main entry point for the release root check.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    parser = argparse.ArgumentParser(
        description="List release roots of a multi-module Maven project and check them for changes since their last release.",
        epilog=f"Version {__version__}\n\nExamples:\n"
        f"  %(prog)s\n"
        f"  %(prog)s ../my-project --provider-implementation git=gitexe\n"
        f"  %(prog)s ../my-project --jobs 4\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("project_directory", metavar="PROJECT_DIR", nargs="?", default=".", help="Project directory or root pom.xml (default: current directory)")

    parser.add_argument(
        "--provider-implementation",
        "-p",
        metavar="PREFIX=IMPL",
        action="append",
        default=[],
        help="Override the provider implementation for an scm prefix (gitpython, gitexe, svnexe). May be repeated.",
    )

    parser.add_argument("--timeout", type=int, default=SCM_COMMAND_TIMEOUT, help=f"Seconds allowed per changelog request (default: {SCM_COMMAND_TIMEOUT})")

    parser.add_argument("--jobs", "-j", type=int, default=DEFAULT_MAX_WORKERS, help="Number of concurrent changelog requests (default: 1)")

    parser.add_argument("--no-color", action="store_true", help="Disable colored output")

    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging output")

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    if not should_use_color(no_color=args.no_color):
        Colors.disable()

    if args.timeout <= 0:
        print_error("--timeout must be a positive number of seconds")
        return EXIT_INVALID_ARGS
    if args.jobs <= 0:
        print_error("--jobs must be at least 1")
        return EXIT_INVALID_ARGS
    if not os.path.exists(args.project_directory):
        print_error(f"Project directory does not exist: {args.project_directory}")
        return EXIT_INVALID_ARGS

    try:
        implementations = parse_provider_implementations(args.provider_implementation)
        run_release_check(args.project_directory, implementations, timeout=args.timeout, jobs=args.jobs)
    except ReleaseCheckError as e:
        print_error(str(e))
        if e.__cause__ is not None:
            logger.debug("Caused by: %s", e.__cause__)
        return e.exit_code

    return EXIT_SUCCESS


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user", prefix=False)
        sys.exit(EXIT_KEYBOARD_INTERRUPT)
    except Exception as e:
        logging.error("Unexpected error: %s", e)
        if logging.getLogger().level == logging.DEBUG:
            import traceback

            traceback.print_exc()
        sys.exit(EXIT_RUNTIME_ERROR)
