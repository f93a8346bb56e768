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
"""Parser for pom.xml files to load the modules of a reactor build.

load_reactor() starts from the root pom.xml, follows <modules> recursively and
returns one ModuleDescriptor per project, in reactor build order.

Only the parts of the project model the release check needs are evaluated:
coordinates (inherited from <parent>), properties, the <scm> section, direct
dependencies and <dependencyManagement> versions. Parents are looked up via
<relativePath> (default ../pom.xml) and among the poms already loaded.
Placeholders that cannot be resolved are kept verbatim.
"""

import os
import re
import logging
import xml.etree.ElementTree as ElementTree
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from lib.constants import POM_FILE_NAME, PomParseError, ProjectDirectoryError
from lib.dependency_utils import sort_reactor_modules
from lib.reactor_types import Dependency, ModuleDescriptor, ScmInfo

logger = logging.getLogger(__name__)

RE_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")
MAX_INTERPOLATION_DEPTH = 10
DEFAULT_PARENT_RELATIVE_PATH = "../" + POM_FILE_NAME


@dataclass(frozen=True)
class ParentReference:
    """The <parent> element of a pom."""

    group_id: str
    artifact_id: str
    version: str
    relative_path: Optional[str] = DEFAULT_PARENT_RELATIVE_PATH


@dataclass
class PomModel:
    """Raw, uninterpolated content of a single pom.xml.

    Attributes:
        path: Absolute path of the pom file
        managed_versions: (groupId, artifactId) -> version from <dependencyManagement>
    """

    path: str
    artifact_id: str
    group_id: Optional[str] = None
    version: Optional[str] = None
    packaging: str = "jar"
    parent: Optional[ParentReference] = None
    properties: Dict[str, str] = field(default_factory=dict)
    modules: List[str] = field(default_factory=list)
    scm: Optional[ScmInfo] = None
    dependencies: List[Dependency] = field(default_factory=list)
    managed_versions: Dict[Tuple[str, str], str] = field(default_factory=dict)

    @property
    def basedir(self) -> str:
        return os.path.dirname(self.path)

    @property
    def effective_group_id(self) -> Optional[str]:
        """Own groupId, or the parent's as declared in <parent>."""
        if self.group_id:
            return self.group_id
        return self.parent.group_id if self.parent else None


@dataclass
class _InheritedModel:
    """Raw values of a pom after inheritance from its parent chain."""

    group_id: str
    version: str
    properties: Dict[str, str]
    dependencies: List[Dependency]
    managed_versions: Dict[Tuple[str, str], str]
    scm_connection: Optional[str]
    scm_developer_connection: Optional[str]
    scm_url: Optional[str]


def _strip_namespaces(root: ElementTree.Element) -> None:
    for element in root.iter():
        if isinstance(element.tag, str) and "}" in element.tag:
            element.tag = element.tag.split("}", 1)[1]


def _text(element: Optional[ElementTree.Element], tag: str) -> Optional[str]:
    if element is None:
        return None
    value = element.findtext(tag)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_dependency(element: ElementTree.Element, pom_path: str) -> Dependency:
    group_id = _text(element, "groupId")
    artifact_id = _text(element, "artifactId")
    if not group_id or not artifact_id:
        raise PomParseError(f"Dependency without groupId or artifactId in {pom_path}")
    return Dependency(group_id=group_id, artifact_id=artifact_id, version=_text(element, "version"))


def parse_pom(pom_path: str) -> PomModel:
    """Parse a single pom.xml file.

    Args:
        pom_path: Path to the pom file

    Returns:
        PomModel with the raw values of the file

    Raises:
        PomParseError: If the file cannot be read, is not well formed or has no artifactId
    """
    pom_path = os.path.abspath(pom_path)
    try:
        tree = ElementTree.parse(pom_path)
    except FileNotFoundError as e:
        raise PomParseError(f"Project file not found: {pom_path}") from e
    except ElementTree.ParseError as e:
        raise PomParseError(f"Malformed project file {pom_path}: {e}") from e
    except OSError as e:
        raise PomParseError(f"Cannot read project file {pom_path}: {e}") from e

    root = tree.getroot()
    _strip_namespaces(root)
    if root.tag != "project":
        raise PomParseError(f"Not a project model (root element <{root.tag}>): {pom_path}")

    artifact_id = _text(root, "artifactId")
    if not artifact_id:
        raise PomParseError(f"Missing artifactId in {pom_path}")

    parent = None
    parent_element = root.find("parent")
    if parent_element is not None:
        parent_group = _text(parent_element, "groupId")
        parent_artifact = _text(parent_element, "artifactId")
        parent_version = _text(parent_element, "version")
        if not parent_group or not parent_artifact or not parent_version:
            raise PomParseError(f"Incomplete <parent> in {pom_path}")
        relative_path_element = parent_element.find("relativePath")
        if relative_path_element is None:
            relative_path: Optional[str] = DEFAULT_PARENT_RELATIVE_PATH
        else:
            relative_path = (relative_path_element.text or "").strip() or None
        parent = ParentReference(parent_group, parent_artifact, parent_version, relative_path)

    properties: Dict[str, str] = {}
    properties_element = root.find("properties")
    if properties_element is not None:
        for prop in properties_element:
            if isinstance(prop.tag, str):
                properties[prop.tag] = (prop.text or "").strip()

    scm = None
    scm_element = root.find("scm")
    if scm_element is not None:
        scm = ScmInfo(
            connection=_text(scm_element, "connection"),
            developer_connection=_text(scm_element, "developerConnection"),
            url=_text(scm_element, "url"),
        )

    managed_versions: Dict[Tuple[str, str], str] = {}
    for element in root.findall("dependencyManagement/dependencies/dependency"):
        managed = _parse_dependency(element, pom_path)
        if managed.version is not None:
            managed_versions[managed.coordinate] = managed.version

    model = PomModel(
        path=pom_path,
        artifact_id=artifact_id,
        group_id=_text(root, "groupId"),
        version=_text(root, "version"),
        packaging=_text(root, "packaging") or "jar",
        parent=parent,
        properties=properties,
        modules=[(module.text or "").strip() for module in root.findall("modules/module") if (module.text or "").strip()],
        scm=scm,
        dependencies=[_parse_dependency(element, pom_path) for element in root.findall("dependencies/dependency")],
        managed_versions=managed_versions,
    )
    logger.debug("Parsed %s: %s modules, %s dependencies", pom_path, len(model.modules), len(model.dependencies))
    return model


def interpolate(value: Optional[str], properties: Dict[str, str]) -> Optional[str]:
    """Replace ${name} placeholders using properties.

    Placeholders without a value are kept verbatim. Values may themselves
    contain placeholders, resolved up to MAX_INTERPOLATION_DEPTH levels.
    """
    if value is None:
        return None

    def replace(match: "re.Match[str]") -> str:
        return properties.get(match.group(1), match.group(0))

    for _ in range(MAX_INTERPOLATION_DEPTH):
        resolved = RE_PLACEHOLDER.sub(replace, value)
        if resolved == value:
            break
        value = resolved
    return value


def _inherit_scm_value(own: Optional[str], inherited: Optional[str], artifact_id: str) -> Optional[str]:
    # Inherited scm locations point at the child's directory below the parent's
    if own:
        return own
    return f"{inherited.rstrip('/')}/{artifact_id}" if inherited else None


def _resolve(value: str, properties: Dict[str, str]) -> str:
    resolved = interpolate(value, properties)
    assert resolved is not None  # For type checker
    return resolved


def _merge_dependencies(inherited: List[Dependency], own: List[Dependency]) -> List[Dependency]:
    merged: Dict[Tuple[str, str], Dependency] = {dependency.coordinate: dependency for dependency in inherited}
    for dependency in own:
        merged[dependency.coordinate] = dependency
    return list(merged.values())


def resolve_pom_path(path: str) -> str:
    """Resolve a project directory or pom file path to an absolute pom path.

    Raises:
        ProjectDirectoryError: If no pom.xml exists at the location
    """
    candidate = os.path.join(path, POM_FILE_NAME) if os.path.isdir(path) else path
    if not os.path.isfile(candidate):
        raise ProjectDirectoryError(f"No {POM_FILE_NAME} found at: {path}")
    return os.path.abspath(candidate)


class ReactorLoader:
    """Loads every module reachable from a root pom via <modules>."""

    def __init__(self) -> None:
        self._models: Dict[str, PomModel] = {}
        self._inherited: Dict[str, _InheritedModel] = {}
        self._resolving: Set[str] = set()
        self._loaded: Set[str] = set()
        self.modules: List[ModuleDescriptor] = []

    def _parse(self, pom_path: str) -> PomModel:
        real_path = os.path.realpath(pom_path)
        if real_path not in self._models:
            self._models[real_path] = parse_pom(real_path)
        return self._models[real_path]

    def _find_parent(self, model: PomModel) -> Optional[PomModel]:
        parent_ref = model.parent
        if parent_ref is None:
            return None

        if parent_ref.relative_path:
            candidate = os.path.join(model.basedir, parent_ref.relative_path)
            if os.path.isdir(candidate):
                candidate = os.path.join(candidate, POM_FILE_NAME)
            if os.path.isfile(candidate):
                parent = self._parse(candidate)
                if parent.artifact_id == parent_ref.artifact_id and parent.effective_group_id == parent_ref.group_id:
                    return parent
                logger.debug("%s does not match parent %s:%s of %s", candidate, parent_ref.group_id, parent_ref.artifact_id, model.path)

        for candidate_model in self._models.values():
            if candidate_model.artifact_id == parent_ref.artifact_id and candidate_model.effective_group_id == parent_ref.group_id:
                return candidate_model

        logger.debug("Parent %s:%s of %s is not part of the reactor", parent_ref.group_id, parent_ref.artifact_id, model.path)
        return None

    def _inherit(self, model: PomModel) -> _InheritedModel:
        real_path = os.path.realpath(model.path)
        if real_path in self._inherited:
            return self._inherited[real_path]
        if real_path in self._resolving:
            raise PomParseError(f"Cyclic parent chain at {model.path}")

        self._resolving.add(real_path)
        try:
            parent = self._find_parent(model)
            base = self._inherit(parent) if parent is not None else None
        finally:
            self._resolving.discard(real_path)

        group_id = model.group_id or (model.parent.group_id if model.parent else None)
        version = model.version or (model.parent.version if model.parent else None)
        if not group_id or not version:
            raise PomParseError(f"Missing groupId or version in {model.path}")

        properties = dict(base.properties) if base else {}
        properties.update(model.properties)
        managed_versions = dict(base.managed_versions) if base else {}
        managed_versions.update(model.managed_versions)

        scm = model.scm or ScmInfo()
        connection = _inherit_scm_value(scm.connection, base.scm_connection if base else None, model.artifact_id)
        developer_connection = _inherit_scm_value(scm.developer_connection, base.scm_developer_connection if base else None, model.artifact_id)
        url = _inherit_scm_value(scm.url, base.scm_url if base else None, model.artifact_id)

        inherited = _InheritedModel(
            group_id=group_id,
            version=version,
            properties=properties,
            dependencies=_merge_dependencies(base.dependencies if base else [], model.dependencies),
            managed_versions=managed_versions,
            scm_connection=connection,
            scm_developer_connection=developer_connection,
            scm_url=url,
        )
        self._inherited[real_path] = inherited
        return inherited

    def _build_descriptor(self, model: PomModel) -> ModuleDescriptor:
        inherited = self._inherit(model)

        properties = dict(inherited.properties)
        group_id = _resolve(inherited.group_id, properties)
        version = _resolve(inherited.version, properties)
        for prefix in ("project.", "pom.", ""):
            properties[f"{prefix}groupId"] = group_id
            properties[f"{prefix}artifactId"] = model.artifact_id
            properties[f"{prefix}version"] = version
        properties["project.basedir"] = model.basedir
        properties["basedir"] = model.basedir
        if model.parent is not None:
            properties["project.parent.groupId"] = model.parent.group_id
            properties["project.parent.artifactId"] = model.parent.artifact_id
            properties["project.parent.version"] = model.parent.version

        managed = {
            (_resolve(g, properties), _resolve(a, properties)): interpolate(v, properties) for (g, a), v in inherited.managed_versions.items()
        }
        dependencies = []
        for dependency in inherited.dependencies:
            dep_group = _resolve(dependency.group_id, properties)
            dep_artifact = _resolve(dependency.artifact_id, properties)
            dep_version = interpolate(dependency.version, properties)
            if dep_version is None:
                dep_version = managed.get((dep_group, dep_artifact))
            dependencies.append(Dependency(dep_group, dep_artifact, dep_version))

        scm = None
        if model.scm is not None:
            scm = ScmInfo(
                connection=interpolate(inherited.scm_connection, properties),
                developer_connection=interpolate(inherited.scm_developer_connection, properties),
                url=interpolate(inherited.scm_url, properties),
            )

        return ModuleDescriptor(
            group_id=group_id,
            artifact_id=model.artifact_id,
            version=version,
            basedir=model.basedir,
            scm=scm,
            dependencies=dependencies,
            parent=(model.parent.group_id, model.parent.artifact_id) if model.parent else None,
            packaging=model.packaging,
        )

    def _collect(self, pom_path: str) -> None:
        real_path = os.path.realpath(pom_path)
        if real_path in self._loaded:
            logger.debug("Skipping already loaded module %s", pom_path)
            return
        self._loaded.add(real_path)

        model = self._parse(pom_path)
        self.modules.append(self._build_descriptor(model))

        for module_path in model.modules:
            child = os.path.join(model.basedir, module_path)
            if os.path.isdir(child):
                child = os.path.join(child, POM_FILE_NAME)
            if not os.path.isfile(child):
                raise PomParseError(f"Module '{module_path}' of {model.path} has no {POM_FILE_NAME}: {child}")
            self._collect(child)

    def load(self, path: str) -> List[ModuleDescriptor]:
        """Load the reactor rooted at a project directory or pom file.

        Returns:
            Modules in declaration order (aggregator before its modules)
        """
        self._collect(resolve_pom_path(path))
        return self.modules


def load_reactor(path: str) -> List[ModuleDescriptor]:
    """Load every module of the reactor rooted at path, in reactor build order.

    Args:
        path: Project directory or root pom.xml

    Returns:
        Modules sorted so that producers precede their consumers

    Raises:
        ProjectDirectoryError: If no pom.xml exists at path
        PomParseError: If a pom cannot be parsed or a module is missing
        ReactorCycleError: If the modules depend on each other in a cycle
    """
    modules = ReactorLoader().load(path)
    logger.info("Loaded %s modules from %s", len(modules), path)
    return sort_reactor_modules(modules)
