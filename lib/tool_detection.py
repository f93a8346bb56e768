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
"""Centralized external tool detection for release-check.

The executable-backed SCM providers (gitexe, svnexe) shell out to the git and
svn command line clients. This module finds those clients once per process
and remembers the result.

CLI Interface:
    python3 -m lib.tool_detection --find-git      # Output command name, exit 0/1
    python3 -m lib.tool_detection --check-all     # Output JSON with all tools
"""

import sys
import json
import shutil
import logging
import argparse
import subprocess
from typing import Optional, Dict, List
from dataclasses import dataclass

from lib.constants import TOOL_VERSION_TIMEOUT

logger = logging.getLogger(__name__)

# Tool command variants to try (in order of preference)
GIT_COMMANDS = ["git"]
SVN_COMMANDS = ["svn"]

# Session-level cache for tool detection results (keyed by tool name)
_tool_cache: Dict[str, "ToolInfo"] = {}


@dataclass
class ToolInfo:
    """Information about a detected external tool.

    Attributes:
        command: Command name to invoke (e.g., "git"), None if not found
        version: First line of the tool's --version output
        error_message: Why the tool was not found
    """

    command: Optional[str]
    version: Optional[str]
    error_message: Optional[str] = None

    def is_found(self) -> bool:
        """Check if tool was found."""
        return self.command is not None


def clear_cache() -> None:
    """Clear the tool detection cache."""
    _tool_cache.clear()
    logger.debug("Tool detection cache cleared")


def _try_command(cmd_parts: List[str], timeout: int = TOOL_VERSION_TIMEOUT) -> Optional[str]:
    """Try to run a command with --version and return version output.

    Args:
        cmd_parts: Command parts (e.g., ["git"])
        timeout: Timeout in seconds for subprocess call

    Returns:
        Version output string if successful, None otherwise
    """
    try:
        result = subprocess.run(cmd_parts + ["--version"], capture_output=True, text=True, check=True, timeout=timeout)
        return result.stdout.strip()
    except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired):
        return None


def _find_tool(tool_name: str, candidates: List[str]) -> ToolInfo:
    """Find the first candidate command that is in PATH and answers --version."""
    if tool_name in _tool_cache:
        return _tool_cache[tool_name]

    for cmd in candidates:
        logger.debug("Trying %s...", cmd)
        if not shutil.which(cmd):
            logger.debug("%s not in PATH", cmd)
            continue
        version_output = _try_command([cmd])
        if version_output:
            version = version_output.splitlines()[0].strip()
            logger.debug("Found %s: %s", cmd, version)
            tool_info = ToolInfo(command=cmd, version=version)
            _tool_cache[tool_name] = tool_info
            return tool_info
        logger.debug("%s is in PATH but --version failed", cmd)

    tool_info = ToolInfo(command=None, version=None, error_message=f"not in PATH (tried: {', '.join(candidates)})")
    _tool_cache[tool_name] = tool_info
    return tool_info


def find_git() -> ToolInfo:
    """Find the git command line client."""
    return _find_tool("git", GIT_COMMANDS)


def find_svn() -> ToolInfo:
    """Find the subversion command line client."""
    return _find_tool("svn", SVN_COMMANDS)


def check_all_tools() -> Dict[str, Dict[str, str]]:
    """Check all known tools and return their status.

    Returns:
        Dictionary with tool names as keys, each containing command and version.
        Missing tools are omitted from the result.
    """
    tools: Dict[str, Dict[str, str]] = {}
    for tool_name, find_func in [("git", find_git), ("svn", find_svn)]:
        tool_info = find_func()
        if tool_info.is_found():
            assert tool_info.command is not None  # For type checker
            tools[tool_name] = {"command": tool_info.command, "version": tool_info.version or "unknown"}
    return tools


def main() -> int:
    """Main entry point for CLI usage.

    Returns:
        Exit code: 0 if tool found (or check-all succeeds), 1 if not found
    """
    parser = argparse.ArgumentParser(description="Detect external tools for release-check")
    parser.add_argument("--find-git", action="store_true", help="Find git command line client")
    parser.add_argument("--find-svn", action="store_true", help="Find svn command line client")
    parser.add_argument("--check-all", action="store_true", help="Check all tools and output JSON")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose debug logging")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(message)s", stream=sys.stderr)
    else:
        logging.basicConfig(level=logging.WARNING)

    if args.check_all:
        print(json.dumps({"tools": check_all_tools()}, indent=2))
        return 0

    for flag_value, find_func in [(args.find_git, find_git), (args.find_svn, find_svn)]:
        if flag_value:
            tool_info = find_func()
            if tool_info.is_found():
                print(tool_info.command)
                return 0
            return 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
