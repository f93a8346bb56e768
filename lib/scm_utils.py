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
"""Source control client used to query module changelogs.

An scm connection string such as ``scm:git:https://example.org/repo.git`` is
parsed into a ScmRepository. The ScmManager maps the connection's provider
prefix (``git``, ``svn``) to a changelog provider implementation and runs the
changelog request against the module's working copy.

Provider implementations:
    gitpython - GitPython, the default for ``git``
    gitexe    - the git command line client
    svnexe    - the svn command line client, the default for ``svn``

The prefix to implementation mapping lives on each ScmManager instance and is
configured once, from a ProviderConfig, when the manager is created.
"""

import os
import sys
import logging
import subprocess
import xml.etree.ElementTree as ElementTree
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from git import Repo, GitCommandError, InvalidGitRepositoryError, NoSuchPathError, BadName, BadObject
from git.objects import Commit

from lib.constants import (
    CHANGELOG_LIMIT,
    DEFAULT_PROVIDER_IMPLEMENTATIONS,
    SCM_COMMAND_TIMEOUT,
    SCM_URL_PREFIX,
    ChangelogRequestError,
    RepositoryDescriptorError,
    UnsupportedProviderError,
)
from lib.tool_detection import find_git, find_svn

logger = logging.getLogger(__name__)

# Field and record separators for `git log --format`
GIT_FIELD_SEPARATOR = "\x1f"
GIT_RECORD_SEPARATOR = "\x1e"
GIT_LOG_FORMAT = "%H%x1f%an%x1f%aI%x1f%B%x1e"
GIT_NO_COMMITS_MESSAGE = "does not have any commits"

SVN_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


@dataclass(frozen=True)
class ScmRepository:
    """A parsed scm connection.

    Attributes:
        provider: Provider prefix (e.g., 'git', 'svn')
        provider_url: Provider specific part of the connection
        connection: The original connection string
    """

    provider: str
    provider_url: str
    connection: str


@dataclass
class ChangeSet:
    """A single changelog entry."""

    revision: str
    author: Optional[str]
    date: Optional[datetime]
    comment: str


@dataclass
class ChangeLog:
    """Changelog entries, most recent first."""

    change_sets: List[ChangeSet] = field(default_factory=list)

    @property
    def latest(self) -> Optional[ChangeSet]:
        """Most recent entry, or None for an empty changelog."""
        return self.change_sets[0] if self.change_sets else None

    def __len__(self) -> int:
        return len(self.change_sets)


@dataclass
class ProviderConfig:
    """Configuration for a ScmManager.

    Attributes:
        implementations: scm prefix -> provider implementation hint, applied in order
        timeout: Seconds allowed for a single changelog request
    """

    implementations: Dict[str, str] = field(default_factory=dict)
    timeout: int = SCM_COMMAND_TIMEOUT


ChangeLogProvider = Callable[[ScmRepository, str, int, int], ChangeLog]


def parse_connection(connection: Optional[str]) -> ScmRepository:
    """Parse an scm connection string.

    The format is ``scm:<provider><delimiter><provider specific part>`` where the
    delimiter is the character following ``scm`` and is either ':' or '|'.

    Args:
        connection: Connection string from the project model

    Returns:
        Parsed ScmRepository

    Raises:
        RepositoryDescriptorError: If the connection string is empty or malformed
    """
    if connection is None or not connection.strip():
        raise RepositoryDescriptorError("The scm connection is empty")

    connection = connection.strip()
    if not connection.startswith(SCM_URL_PREFIX) or len(connection) <= len(SCM_URL_PREFIX):
        raise RepositoryDescriptorError(f"The scm connection must start with '{SCM_URL_PREFIX}': {connection}")

    delimiter = connection[len(SCM_URL_PREFIX)]
    if delimiter not in (":", "|"):
        raise RepositoryDescriptorError(f"The scm connection must use ':' or '|' as delimiter: {connection}")

    parts = connection[len(SCM_URL_PREFIX) + 1 :].split(delimiter, 1)
    if not parts[0]:
        raise RepositoryDescriptorError(f"The scm connection does not name a provider: {connection}")
    if len(parts) != 2 or not parts[1]:
        raise RepositoryDescriptorError(f"The scm connection has no provider specific part: {connection}")

    return ScmRepository(provider=parts[0], provider_url=parts[1], connection=connection)


def _parse_iso_date(text: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(text.strip())
    except ValueError:
        logger.debug("Could not parse date: %s", text)
        return None


def _parse_svn_date(text: Optional[str]) -> Optional[datetime]:
    if not text:
        return None
    try:
        return datetime.strptime(text.strip(), SVN_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        logger.debug("Could not parse svn date: %s", text)
        return None


def _check_working_copy(basedir: str) -> None:
    if not os.path.isdir(basedir):
        raise ChangelogRequestError(f"Working copy does not exist: {basedir}")


def _run_scm_command(cmd: List[str], basedir: str, timeout: int) -> "subprocess.CompletedProcess[str]":
    """Run an scm client command inside a working copy.

    Returns the completed process without checking its return code.

    Raises:
        ChangelogRequestError: If the command times out or cannot be started
    """
    logger.debug("Running '%s' in %s", " ".join(cmd), basedir)
    try:
        return subprocess.run(cmd, cwd=basedir, capture_output=True, text=True, check=False, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise ChangelogRequestError(f"'{' '.join(cmd)}' timed out after {timeout} seconds in {basedir}") from e
    except OSError as e:
        raise ChangelogRequestError(f"Failed to run '{' '.join(cmd)}': {e}") from e


def _command_failed(cmd: List[str], basedir: str, result: "subprocess.CompletedProcess[str]") -> ChangelogRequestError:
    stderr = (result.stderr or "").strip()
    return ChangelogRequestError(f"'{' '.join(cmd)}' failed with exit code {result.returncode} in {basedir}: {stderr}")


def _change_set_from_commit(commit: Commit) -> ChangeSet:
    message = commit.message.decode("utf-8", errors="replace") if isinstance(commit.message, bytes) else commit.message
    return ChangeSet(
        revision=commit.hexsha,
        author=commit.author.name if commit.author else None,
        date=commit.committed_datetime,
        comment=message.strip(),
    )


def git_python_change_log(repository: ScmRepository, basedir: str, limit: int, timeout: int) -> ChangeLog:
    """Changelog of a git working copy path using GitPython.

    Only commits touching ``basedir`` are listed. A repository without any
    commits yields an empty changelog.
    """
    _check_working_copy(basedir)
    try:
        repo = Repo(basedir, search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError) as e:
        raise ChangelogRequestError(f"Not a git working copy: {basedir}") from e

    try:
        if repo.working_dir is None:
            raise ChangelogRequestError(f"Bare repositories have no working copy: {basedir}")
        if not repo.head.is_valid():
            logger.debug("Repository %s has no commits", repo.working_dir)
            return ChangeLog()

        relative_path = os.path.relpath(os.path.realpath(basedir), os.path.realpath(str(repo.working_dir)))
        logger.debug("Listing %s commits for %s (%s)", limit, relative_path, repository.connection)
        rev_list_options: Dict[str, int] = {}
        if sys.platform == "win32":
            # GitPython rejects kill_after_timeout on Windows
            logger.debug("Timeout of %s seconds not enforced for GitPython on Windows", timeout)
        else:
            rev_list_options["kill_after_timeout"] = timeout
        output = repo.git.rev_list(f"--max-count={limit}", "HEAD", "--", relative_path, **rev_list_options)
        return ChangeLog([_change_set_from_commit(repo.commit(sha)) for sha in output.split()])
    except GitCommandError as e:
        raise ChangelogRequestError(f"git rev-list failed in {basedir}: {e}") from e
    except (BadName, BadObject, ValueError) as e:
        raise ChangelogRequestError(f"Could not read git history in {basedir}: {e}") from e
    finally:
        repo.close()


def git_exe_change_log(repository: ScmRepository, basedir: str, limit: int, timeout: int) -> ChangeLog:
    """Changelog of a git working copy path using the git command line client."""
    _check_working_copy(basedir)
    tool = find_git()
    if not tool.is_found():
        raise ChangelogRequestError(f"git client {tool.error_message}")
    assert tool.command is not None  # For type checker

    cmd = [tool.command, "log", f"-n{limit}", f"--format={GIT_LOG_FORMAT}", "--", "."]
    result = _run_scm_command(cmd, basedir, timeout)
    if result.returncode != 0:
        if GIT_NO_COMMITS_MESSAGE in (result.stderr or ""):
            logger.debug("Repository for %s has no commits", basedir)
            return ChangeLog()
        raise _command_failed(cmd, basedir, result)

    change_sets = []
    for record in result.stdout.split(GIT_RECORD_SEPARATOR):
        record = record.lstrip("\n")
        if not record:
            continue
        fields = record.split(GIT_FIELD_SEPARATOR, 3)
        if len(fields) != 4:
            raise ChangelogRequestError(f"Unexpected git log output in {basedir}: {record!r}")
        revision, author, date_text, comment = fields
        change_sets.append(ChangeSet(revision=revision, author=author or None, date=_parse_iso_date(date_text), comment=comment.strip()))

    logger.debug("git log returned %s entries for %s (%s)", len(change_sets), basedir, repository.connection)
    return ChangeLog(change_sets)


def svn_exe_change_log(repository: ScmRepository, basedir: str, limit: int, timeout: int) -> ChangeLog:
    """Changelog of a subversion working copy using the svn command line client."""
    _check_working_copy(basedir)
    tool = find_svn()
    if not tool.is_found():
        raise ChangelogRequestError(f"svn client {tool.error_message}")
    assert tool.command is not None  # For type checker

    cmd = [tool.command, "log", "--xml", "--non-interactive", "--limit", str(limit), "."]
    result = _run_scm_command(cmd, basedir, timeout)
    if result.returncode != 0:
        raise _command_failed(cmd, basedir, result)

    try:
        root = ElementTree.fromstring(result.stdout)
    except ElementTree.ParseError as e:
        raise ChangelogRequestError(f"Unexpected svn log output in {basedir}: {e}") from e

    change_sets = [
        ChangeSet(
            revision=entry.get("revision", ""),
            author=entry.findtext("author"),
            date=_parse_svn_date(entry.findtext("date")),
            comment=(entry.findtext("msg") or "").strip(),
        )
        for entry in root.findall("logentry")
    ]
    logger.debug("svn log returned %s entries for %s (%s)", len(change_sets), basedir, repository.connection)
    return ChangeLog(change_sets)


# Provider implementation hint -> changelog provider
CHANGELOG_PROVIDERS: Dict[str, ChangeLogProvider] = {
    "gitpython": git_python_change_log,
    "gitexe": git_exe_change_log,
    "svnexe": svn_exe_change_log,
}


class ScmManager:
    """Resolves scm connections to provider implementations and runs changelog requests.

    Args:
        config: Provider overrides and request timeout. Overrides are applied
                in mapping order on top of DEFAULT_PROVIDER_IMPLEMENTATIONS.

    Raises:
        UnsupportedProviderError: If an override names an unknown implementation
    """

    def __init__(self, config: Optional[ProviderConfig] = None):
        self.config = config or ProviderConfig()
        self._implementations: Dict[str, str] = dict(DEFAULT_PROVIDER_IMPLEMENTATIONS)
        for prefix, hint in self.config.implementations.items():
            self._set_provider_implementation(prefix, hint)

    def _set_provider_implementation(self, prefix: str, hint: str) -> None:
        if hint not in CHANGELOG_PROVIDERS:
            raise UnsupportedProviderError(f"Unknown provider implementation '{hint}' for '{prefix}' (known: {', '.join(sorted(CHANGELOG_PROVIDERS))})")
        logger.info("Changing the default '%s' provider implementation to '%s'.", prefix, hint)
        self._implementations[prefix] = hint

    @property
    def implementations(self) -> Dict[str, str]:
        """Copy of the effective prefix -> implementation mapping."""
        return dict(self._implementations)

    def get_provider_implementation(self, prefix: str) -> str:
        """Implementation hint registered for an scm prefix.

        Raises:
            UnsupportedProviderError: If no implementation is registered
        """
        hint = self._implementations.get(prefix)
        if hint is None:
            raise UnsupportedProviderError(f"No such provider: '{prefix}'")
        return hint

    def make_repository(self, connection: Optional[str]) -> ScmRepository:
        """Parse a connection string and check that its provider is supported.

        Raises:
            RepositoryDescriptorError: If the connection string is malformed
            UnsupportedProviderError: If the provider prefix is not registered
        """
        repository = parse_connection(connection)
        self.get_provider_implementation(repository.provider)
        return repository

    def change_log(self, repository: ScmRepository, basedir: str, limit: int = CHANGELOG_LIMIT) -> ChangeLog:
        """Request the most recent changelog entries for a working copy.

        Args:
            repository: Repository from make_repository()
            basedir: Working copy path whose history is requested
            limit: Maximum number of entries

        Raises:
            UnsupportedProviderError: If the provider prefix is not registered
            ChangelogRequestError: If the request fails or times out
        """
        hint = self.get_provider_implementation(repository.provider)
        provider = CHANGELOG_PROVIDERS[hint]
        logger.debug("Requesting changelog for %s using %s", basedir, hint)
        return provider(repository, basedir, limit, self.config.timeout)
