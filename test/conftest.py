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
"""Pytest configuration and shared base fixtures for ReleaseCheck tests.

Fixtures:
- temp_dir: isolated scratch directory
- write_pom: writes a pom.xml built from keyword arguments
- make_module: in-memory ModuleDescriptor factory
- mock_reactor: three module reactor on disk (no version control)
- mock_reactor_repo: the same reactor as a git repository with a release history

Fixture Scopes:
- function: Default, recreated for each test
"""

import sys
import shutil
import tempfile
import subprocess
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional, Sequence, Tuple
import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from lib.constants import RELEASE_MARKER
from lib.reactor_types import Dependency, ModuleDescriptor, ScmInfo

POM_NS = "http://maven.apache.org/POM/4.0.0"


def _pom_xml(
    artifact_id: str,
    group_id: Optional[str] = None,
    version: Optional[str] = None,
    packaging: Optional[str] = None,
    parent: Optional[Tuple[str, str, str]] = None,
    modules: Sequence[str] = (),
    scm: Optional[str] = None,
    dependencies: Sequence[Tuple[str, str, Optional[str]]] = (),
    managed: Sequence[Tuple[str, str, str]] = (),
    properties: Optional[Dict[str, str]] = None,
) -> str:
    lines = ['<?xml version="1.0" encoding="UTF-8"?>', f'<project xmlns="{POM_NS}">', "  <modelVersion>4.0.0</modelVersion>"]
    if parent:
        lines.append(f"  <parent><groupId>{parent[0]}</groupId><artifactId>{parent[1]}</artifactId><version>{parent[2]}</version></parent>")
    if group_id:
        lines.append(f"  <groupId>{group_id}</groupId>")
    lines.append(f"  <artifactId>{artifact_id}</artifactId>")
    if version:
        lines.append(f"  <version>{version}</version>")
    if packaging:
        lines.append(f"  <packaging>{packaging}</packaging>")
    if properties:
        lines.append("  <properties>")
        lines.extend(f"    <{name}>{value}</{name}>" for name, value in properties.items())
        lines.append("  </properties>")
    if scm is not None:
        lines.append(f"  <scm><connection>{scm}</connection></scm>" if scm else "  <scm/>")
    if modules:
        lines.append("  <modules>")
        lines.extend(f"    <module>{module}</module>" for module in modules)
        lines.append("  </modules>")
    if managed:
        lines.append("  <dependencyManagement><dependencies>")
        lines.extend(f"    <dependency><groupId>{g}</groupId><artifactId>{a}</artifactId><version>{v}</version></dependency>" for g, a, v in managed)
        lines.append("  </dependencies></dependencyManagement>")
    if dependencies:
        lines.append("  <dependencies>")
        for g, a, v in dependencies:
            version_xml = f"<version>{v}</version>" if v is not None else ""
            lines.append(f"    <dependency><groupId>{g}</groupId><artifactId>{a}</artifactId>{version_xml}</dependency>")
        lines.append("  </dependencies>")
    lines.append("</project>")
    return "\n".join(lines) + "\n"


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for tests.

    Scope: function (default)
    Use for: File I/O operations that need isolation
    """
    tmpdir = tempfile.mkdtemp(prefix="releasecheck_test_")
    yield tmpdir
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def write_pom() -> Callable[..., str]:
    """Return a function writing <directory>/pom.xml from keyword arguments.

    Use for: pom parser and reactor loading tests
    """

    def _write(directory: str, artifact_id: str, **kwargs: object) -> str:
        path = Path(directory)
        path.mkdir(parents=True, exist_ok=True)
        pom_path = path / "pom.xml"
        pom_path.write_text(_pom_xml(artifact_id, **kwargs))  # type: ignore[arg-type]
        return str(pom_path)

    return _write


@pytest.fixture
def make_module() -> Callable[..., ModuleDescriptor]:
    """Return a factory for in-memory ModuleDescriptor instances.

    Dependencies are given as "group:artifact:version" strings.
    """

    def _make(coordinates: str, scm: Optional[str] = None, depends_on: Sequence[str] = (), basedir: str = "") -> ModuleDescriptor:
        group_id, artifact_id, version = coordinates.split(":")
        dependencies: List[Dependency] = []
        for dependency in depends_on:
            dep_group, dep_artifact, dep_version = dependency.split(":")
            dependencies.append(Dependency(dep_group, dep_artifact, dep_version))
        return ModuleDescriptor(
            group_id=group_id,
            artifact_id=artifact_id,
            version=version,
            basedir=basedir,
            scm=ScmInfo(connection=scm) if scm is not None else None,
            dependencies=dependencies,
        )

    return _make


@pytest.fixture
def mock_reactor(temp_dir: str, write_pom: Callable[..., str]) -> str:
    """Create a reactor with an aggregator and three modules.

    - com.example:parent:1.0-SNAPSHOT  aggregator, no scm
    - com.example:a:1.0                no scm
    - com.example:b:2.0                scm, depends on com.example:c:3.0
    - com.example:c:3.0                scm, no dependencies

    Scope: function
    Dependencies: temp_dir, write_pom
    """
    parent = ("com.example", "parent", "1.0-SNAPSHOT")
    write_pom(temp_dir, "parent", group_id="com.example", version="1.0-SNAPSHOT", packaging="pom", modules=["a", "b", "c"])
    write_pom(str(Path(temp_dir) / "a"), "a", version="1.0", parent=parent)
    write_pom(
        str(Path(temp_dir) / "b"),
        "b",
        version="2.0",
        parent=parent,
        scm="scm:git:https://example.org/b.git",
        dependencies=[("com.example", "c", "3.0")],
    )
    write_pom(str(Path(temp_dir) / "c"), "c", version="3.0", parent=parent, scm="scm:git:https://example.org/c.git")
    for module in ("a", "b", "c"):
        source = Path(temp_dir) / module / "src" / "Main.java"
        source.parent.mkdir(parents=True, exist_ok=True)
        source.write_text(f"class Main {{ /* {module} */ }}\n")
    return temp_dir


def _git(repo_dir: str, *args: str) -> None:
    subprocess.run(["git", *args], cwd=repo_dir, check=True, capture_output=True)


@pytest.fixture
def git_repo_factory() -> Callable[[str], None]:
    """Return a function that turns a directory into an empty git repository.

    Skips the test when git is not available.
    """

    def _init(repo_dir: str) -> None:
        try:
            _git(repo_dir, "init")
            _git(repo_dir, "config", "user.email", "test@example.com")
            _git(repo_dir, "config", "user.name", "Test User")
            _git(repo_dir, "config", "commit.gpgsign", "false")
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            pytest.skip(f"Git not available or failed: {e}")

    return _init


@pytest.fixture
def mock_reactor_repo(mock_reactor: str, git_repo_factory: Callable[[str], None]) -> Generator[str, None, None]:
    """Turn mock_reactor into a git repository with a release history.

    History (oldest first):
    1. "Initial import"            all files
    2. RELEASE_MARKER              touches b/ and c/
    3. "fix bug"                   touches c/ only

    So b's latest change is the release commit and c changed since.

    Scope: function
    Dependencies: mock_reactor, git_repo_factory
    Requires: git command available
    """
    repo_dir = mock_reactor
    git_repo_factory(repo_dir)
    try:
        _git(repo_dir, "add", ".")
        _git(repo_dir, "commit", "-m", "Initial import")

        for module in ("b", "c"):
            pom = Path(repo_dir) / module / "pom.xml"
            pom.write_text(pom.read_text() + "<!-- next development iteration -->\n")
        _git(repo_dir, "add", ".")
        _git(repo_dir, "commit", "-m", RELEASE_MARKER)

        source = Path(repo_dir) / "c" / "src" / "Main.java"
        source.write_text("class Main { int fixed; }\n")
        _git(repo_dir, "add", ".")
        _git(repo_dir, "commit", "-m", "fix bug")
    except subprocess.CalledProcessError as e:
        pytest.skip(f"Git not available or failed: {e}")

    yield repo_dir
