#!/usr/bin/env python3
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
"""Tests for lib.release_roots module"""
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional
import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))
from lib.constants import RELEASE_MARKER, ChangelogRequestError, ReleaseRootError, UnsupportedProviderError
from lib.pom_parser import load_reactor
from lib.reactor_types import ModuleDescriptor, ReleaseStatus
from lib.release_roots import classify_module, classify_release_roots, is_release_marker
from lib.scm_utils import ChangeLog, ChangeSet, ProviderConfig, ScmManager


class FakeScmManager(ScmManager):
    """ScmManager answering changelog requests from a basedir -> comment mapping.

    A comment of None yields an empty changelog, an exception instance is raised
    and a callable is called first to produce the comment.
    """

    def __init__(self, comments: Dict[str, Any]):
        super().__init__()
        self.comments = comments
        self.requested: List[str] = []
        self._lock = threading.Lock()

    def change_log(self, repository: Any, basedir: str, limit: int = 1) -> ChangeLog:
        with self._lock:
            self.requested.append(basedir)
        comment = self.comments[basedir]
        if callable(comment):
            comment = comment()
        if isinstance(comment, Exception):
            raise comment
        if comment is None:
            return ChangeLog()
        return ChangeLog([ChangeSet(revision="abc123", author="dev", date=None, comment=comment)])


class TestIsReleaseMarker:
    """Test the is_release_marker function."""

    @pytest.mark.parametrize(
        "comment,expected",
        [
            (RELEASE_MARKER, True),
            (f"{RELEASE_MARKER}\n\ngit-svn-id: https://svn.example.org/trunk@12", True),
            ("[maven-release-plugin] prepare release lib-1.0", False),
            ("fix bug", False),
            ("", False),
            (None, False),
        ],
    )
    def test_marker_detection(self, comment: Optional[str], expected: bool) -> None:
        """Test substring detection of the release marker."""
        assert is_release_marker(comment) is expected


class TestClassifyModule:
    """Test the classify_module function."""

    def test_no_scm_not_tracked(self, make_module: Any) -> None:
        """Test that a module without <scm> is never queried."""
        module = make_module("g:a:1.0", basedir="/a")
        manager = FakeScmManager({})

        assert classify_module(module, manager) is ReleaseStatus.NOT_TRACKED
        assert manager.requested == []

    def test_release_marker_unmodified(self, make_module: Any) -> None:
        """Test that the release commit as latest change means unmodified."""
        module = make_module("g:a:1.0", scm="scm:git:https://example.org/a.git", basedir="/a")
        assert classify_module(module, FakeScmManager({"/a": RELEASE_MARKER})) is ReleaseStatus.UNMODIFIED

    def test_other_comment_modified(self, make_module: Any) -> None:
        """Test that any other latest change means modified."""
        module = make_module("g:a:1.0", scm="scm:git:https://example.org/a.git", basedir="/a")
        assert classify_module(module, FakeScmManager({"/a": "fix bug"})) is ReleaseStatus.MODIFIED

    def test_empty_changelog_modified(self, make_module: Any) -> None:
        """Test that an empty changelog means modified."""
        module = make_module("g:a:1.0", scm="scm:git:https://example.org/a.git", basedir="/a")
        assert classify_module(module, FakeScmManager({"/a": None})) is ReleaseStatus.MODIFIED

    def test_changelog_failure(self, make_module: Any) -> None:
        """Test that a failed request names the module and keeps the cause."""
        module = make_module("g:a:1.0", scm="scm:git:https://example.org/a.git", basedir="/a")
        cause = ChangelogRequestError("git rev-list failed")

        with pytest.raises(ReleaseRootError) as exc_info:
            classify_module(module, FakeScmManager({"/a": cause}))

        assert exc_info.value.module_key == "g:a:1.0"
        assert exc_info.value.cause is cause
        assert exc_info.value.__cause__ is cause
        assert "Unable to classify g:a:1.0" in str(exc_info.value)

    def test_unsupported_provider(self, make_module: Any) -> None:
        """Test that an unknown scm prefix fails classification."""
        module = make_module("g:a:1.0", scm="scm:cvs:pserver:example.org:/cvs", basedir="/a")

        with pytest.raises(ReleaseRootError) as exc_info:
            classify_module(module, FakeScmManager({}))
        assert isinstance(exc_info.value.cause, UnsupportedProviderError)

    def test_malformed_connection(self, make_module: Any) -> None:
        """Test that an empty <scm><connection> fails classification."""
        module = make_module("g:a:1.0", scm="", basedir="/a")

        with pytest.raises(ReleaseRootError, match="scm connection is empty"):
            classify_module(module, FakeScmManager({}))


class TestClassifyReleaseRoots:
    """Test the classify_release_roots function."""

    def _modules(self, make_module: Any) -> List[ModuleDescriptor]:
        return [
            make_module("g:root:1.0", basedir="/root"),
            make_module("g:a:1.0", scm="scm:git:https://example.org/a.git", basedir="/a"),
            make_module("g:b:1.0", scm="scm:git:https://example.org/b.git", basedir="/b"),
            make_module("g:c:1.0", scm="scm:git:https://example.org/c.git", basedir="/c"),
        ]

    def test_every_module_once_in_order(self, make_module: Any) -> None:
        """Test that the result holds every module in input order."""
        modules = self._modules(make_module)
        manager = FakeScmManager({"/a": RELEASE_MARKER, "/b": "fix bug", "/c": None})

        statuses = classify_release_roots(modules, manager)

        assert list(statuses) == modules
        assert list(statuses.values()) == [
            ReleaseStatus.NOT_TRACKED,
            ReleaseStatus.UNMODIFIED,
            ReleaseStatus.MODIFIED,
            ReleaseStatus.MODIFIED,
        ]

    def test_equal_coordinates_kept_apart(self, make_module: Any) -> None:
        """Test that modules with equal coordinates are distinct entries."""
        first = make_module("g:a:1.0", scm="scm:git:https://example.org/a.git", basedir="/a")
        second = make_module("g:a:1.0", scm="scm:git:https://example.org/a.git", basedir="/a2")
        manager = FakeScmManager({"/a": RELEASE_MARKER, "/a2": "fix bug"})

        statuses = classify_release_roots([first, second], manager)

        assert len(statuses) == 2
        assert statuses[first] is ReleaseStatus.UNMODIFIED
        assert statuses[second] is ReleaseStatus.MODIFIED

    def test_empty_reactor(self) -> None:
        """Test classification of an empty module list."""
        assert classify_release_roots([], FakeScmManager({})) == {}

    def test_abort_on_first_failure(self, make_module: Any) -> None:
        """Test that the first failure aborts the run."""
        modules = self._modules(make_module)
        manager = FakeScmManager({"/a": RELEASE_MARKER, "/b": ChangelogRequestError("boom"), "/c": "fix bug"})

        with pytest.raises(ReleaseRootError) as exc_info:
            classify_release_roots(modules, manager)

        assert exc_info.value.module_key == "g:b:1.0"
        assert "/c" not in manager.requested

    def test_parallel_matches_sequential(self, make_module: Any) -> None:
        """Test that a thread pool gives the same ordered result."""
        modules = self._modules(make_module)
        comments = {"/a": RELEASE_MARKER, "/b": "fix bug", "/c": None}

        sequential = classify_release_roots(modules, FakeScmManager(comments))
        parallel = classify_release_roots(modules, FakeScmManager(comments), max_workers=3)

        assert list(parallel.items()) == list(sequential.items())

    def test_parallel_reports_first_failure_in_input_order(self, make_module: Any) -> None:
        """Test that the reported failure is the first one in input order."""
        modules = self._modules(make_module)
        manager = FakeScmManager({"/a": RELEASE_MARKER, "/b": ChangelogRequestError("b failed"), "/c": ChangelogRequestError("c failed")})

        with pytest.raises(ReleaseRootError) as exc_info:
            classify_release_roots(modules, manager, max_workers=4)

        assert exc_info.value.module_key == "g:b:1.0"

    def test_parallel_unexpected_error_cancels_pending(self, make_module: Any) -> None:
        """Test that an unexpected error cancels requests that have not started."""
        modules = self._modules(make_module)[1:] + [make_module("g:d:1.0", scm="scm:git:https://example.org/d.git", basedir="/d")]
        gate = threading.Event()

        def crash() -> str:
            raise RuntimeError("unexpected")

        def slow() -> str:
            gate.wait(0.5)
            return "fix bug"

        manager = FakeScmManager({"/a": crash, "/b": slow, "/c": slow, "/d": "fix bug"})

        with pytest.raises(RuntimeError, match="unexpected"):
            classify_release_roots(modules, manager, max_workers=2)

        assert "/d" not in manager.requested


class TestClassifyReactorRepository:
    """Test classification of a reactor loaded from a real git repository."""

    def test_mock_reactor(self, mock_reactor_repo: Any) -> None:
        """Test the statuses of the mock reactor's modules."""
        modules = load_reactor(mock_reactor_repo)

        statuses = classify_release_roots(modules, ScmManager())

        by_artifact = {module.artifact_id: status for module, status in statuses.items()}
        assert by_artifact == {
            "parent": ReleaseStatus.NOT_TRACKED,
            "a": ReleaseStatus.NOT_TRACKED,
            "c": ReleaseStatus.MODIFIED,
            "b": ReleaseStatus.UNMODIFIED,
        }

    def test_mock_reactor_gitexe(self, mock_reactor_repo: Any) -> None:
        """Test that the git command line provider agrees with GitPython."""
        modules = load_reactor(mock_reactor_repo)

        gitpython = classify_release_roots(modules, ScmManager())
        gitexe = classify_release_roots(modules, ScmManager(ProviderConfig(implementations={"git": "gitexe"})))

        assert gitexe == gitpython
