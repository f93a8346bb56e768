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
"""Data types describing the modules of a reactor build.

ModuleDescriptor instances are produced by lib.pom_parser and treated as
read-only by everything else. They hash and compare by identity: two
descriptors with the same coordinates are still two distinct modules.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class ReleaseStatus(Enum):
    """Release state of a module.

    NOT_TRACKED: the module declares no <scm> section (not a release root)
    UNMODIFIED: the latest change is the release plugin's post-release commit
    MODIFIED: anything else, including an empty changelog
    """

    NOT_TRACKED = "not-tracked"
    UNMODIFIED = "unmodified"
    MODIFIED = "modified"


@dataclass(frozen=True)
class Dependency:
    """A declared dependency of a module.

    Attributes:
        group_id: Dependency groupId
        artifact_id: Dependency artifactId
        version: Declared (or managed) version, None if neither is given
    """

    group_id: str
    artifact_id: str
    version: Optional[str] = None

    @property
    def coordinate(self) -> Tuple[str, str]:
        """(groupId, artifactId) pair used to match dependencies to modules."""
        return (self.group_id, self.artifact_id)


@dataclass(frozen=True)
class ScmInfo:
    """The <scm> section of a module.

    Attributes:
        connection: Effective read connection, e.g. 'scm:git:https://host/repo.git'
        developer_connection: Effective write connection
        url: Browsable repository url
    """

    connection: Optional[str] = None
    developer_connection: Optional[str] = None
    url: Optional[str] = None


@dataclass(eq=False)
class ModuleDescriptor:
    """A module of the reactor.

    Attributes:
        group_id: Module groupId
        artifact_id: Module artifactId
        version: Module version
        basedir: Working copy directory of the module (holds its pom.xml)
        scm: The module's own <scm> section, None when the module declares none
        dependencies: Declared dependencies in declaration order
        parent: (groupId, artifactId) of the declared parent, if any
        packaging: Module packaging (jar, pom, ...)
    """

    group_id: str
    artifact_id: str
    version: str
    basedir: str = ""
    scm: Optional[ScmInfo] = None
    dependencies: List[Dependency] = field(default_factory=list)
    parent: Optional[Tuple[str, str]] = None
    packaging: str = "jar"

    @property
    def key(self) -> str:
        """Canonical display key, group:artifact:version."""
        return f"{self.group_id}:{self.artifact_id}:{self.version}"

    @property
    def coordinate(self) -> Tuple[str, str]:
        """(groupId, artifactId) pair this module is depended upon by."""
        return (self.group_id, self.artifact_id)

    @property
    def is_release_root(self) -> bool:
        """True when the module declares its own <scm> section."""
        return self.scm is not None

    def __repr__(self) -> str:
        return f"ModuleDescriptor({self.key})"
