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
"""Shared constants for releaseCheck tools.

This module provides centralized constants used across the releaseCheck tools
to ensure consistency and make it easy to adjust markers, timeouts and defaults.
"""

from typing import Dict, Optional

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS = 0
EXIT_INVALID_ARGS = 1
EXIT_RUNTIME_ERROR = 2
EXIT_KEYBOARD_INTERRUPT = 130

# =============================================================================
# Release Detection Constants
# =============================================================================

# Comment left by the release plugin on the commit that follows a release
RELEASE_MARKER = "[maven-release-plugin] prepare for next development iteration"

# Only the most recent changelog entry decides whether a module changed
CHANGELOG_LIMIT = 1

# =============================================================================
# Project Model Constants
# =============================================================================

POM_FILE_NAME = "pom.xml"

# =============================================================================
# SCM Constants
# =============================================================================

SCM_URL_PREFIX = "scm"

# Timeouts (seconds)
SCM_COMMAND_TIMEOUT = 60  # Timeout for a single changelog request
TOOL_VERSION_TIMEOUT = 5  # Timeout for `<tool> --version` probes

# Default provider implementation per scm prefix (overridable per run)
DEFAULT_PROVIDER_IMPLEMENTATIONS: Dict[str, str] = {
    "git": "gitpython",
    "svn": "svnexe",
}

# Parallel processing
DEFAULT_MAX_WORKERS = 1  # Changelog requests run sequentially unless --jobs is given

# =============================================================================
# Report Constants
# =============================================================================

REPORT_INDENT = "  "
REPORT_DETAIL_INDENT = "      "
MISSING_VERSION_DISPLAY = "(unspecified)"

# =============================================================================
# Exception Classes
# =============================================================================


class ReleaseCheckError(Exception):
    """Base exception for all releaseCheck errors.

    All releaseCheck exceptions carry an exit_code attribute that indicates
    what exit code the program should use when this error is caught at the
    main entry point.
    """

    def __init__(self, message: str, exit_code: int = EXIT_RUNTIME_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


# Validation errors (EXIT_INVALID_ARGS)
class ValidationError(ReleaseCheckError):
    """Raised when input validation fails (arguments, paths, etc)."""

    def __init__(self, message: str):
        super().__init__(message, EXIT_INVALID_ARGS)


class ProjectDirectoryError(ValidationError):
    """Raised when the project directory or its root pom.xml is missing."""


class ArgumentError(ValidationError):
    """Raised when command-line arguments are invalid."""


# SCM errors (EXIT_RUNTIME_ERROR)
class ScmError(ReleaseCheckError):
    """Raised when a source control operation fails."""


class RepositoryDescriptorError(ScmError):
    """Raised when an scm connection string cannot be parsed into a repository."""


class UnsupportedProviderError(ScmError):
    """Raised when no provider implementation is registered for an scm prefix."""


class ChangelogRequestError(ScmError):
    """Raised when a changelog request fails (command error, timeout, bad working copy)."""


# Analysis/processing errors (EXIT_RUNTIME_ERROR)
class AnalysisError(ReleaseCheckError):
    """Raised when analysis or processing operations fail."""


class PomParseError(AnalysisError):
    """Raised when a pom.xml cannot be read or is not a valid project model."""


class ReactorCycleError(AnalysisError):
    """Raised when modules in the reactor depend on each other in a cycle."""


class ReleaseRootError(AnalysisError):
    """Raised when release root classification fails for a module.

    Attributes:
        module_key: group:artifact:version of the module being classified
        cause: The underlying SCM error
    """

    def __init__(self, module_key: str, cause: Optional[BaseException] = None):
        message = f"Unable to classify {module_key}: {cause}" if cause is not None else f"Unable to classify {module_key}"
        super().__init__(message)
        self.module_key = module_key
        self.cause = cause
