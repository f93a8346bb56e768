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
"""Dependency analysis utilities for modules of a reactor build.

cross_reference() finds the direct in-reactor dependents of a module and
whether any of them pins the module's current version. The reactor graph
helpers order modules the way a reactor build would: producers before their
consumers, declaration order otherwise.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

import networkx as nx

from lib.constants import ReactorCycleError
from lib.reactor_types import ModuleDescriptor, ReleaseStatus

logger = logging.getLogger(__name__)


class DependencyEdge(NamedTuple):
    """A consumer -> producer relationship inside the reactor."""

    dependent: ModuleDescriptor
    dependency: ModuleDescriptor
    declared_version: Optional[str]


@dataclass
class CrossReference:
    """Direct in-reactor dependents of a module.

    Attributes:
        target: The module that is depended upon
        dependents: Dependent module -> version it declares for target, in encounter order
        has_explicit_match: True if some dependent declares exactly target's version
    """

    target: ModuleDescriptor
    dependents: Dict[ModuleDescriptor, Optional[str]] = field(default_factory=dict)
    has_explicit_match: bool = False

    def explicit_dependents(self) -> List[ModuleDescriptor]:
        """Dependents pinning exactly the target's current version."""
        return [module for module, declared in self.dependents.items() if declared == self.target.version]

    def edges(self) -> List[DependencyEdge]:
        """The dependents as DependencyEdge triples."""
        return [DependencyEdge(module, self.target, declared) for module, declared in self.dependents.items()]

    def recommend_release(self, status: ReleaseStatus) -> bool:
        """Whether the report should recommend releasing the target.

        True when a dependent pins the target's version and the target is not
        unmodified since its last release.
        """
        return self.has_explicit_match and status is not ReleaseStatus.UNMODIFIED


def cross_reference(target: ModuleDescriptor, all_modules: Iterable[ModuleDescriptor]) -> CrossReference:
    """Find the modules that declare a dependency on target.

    A dependency matches when its groupId and artifactId equal the target's;
    the declared version only decides whether the match is explicit. The
    target itself is skipped by identity, so a distinct module sharing its
    coordinates is still searched.

    Args:
        target: Module to find dependents of
        all_modules: Every module of the reactor

    Returns:
        CrossReference for target
    """
    result = CrossReference(target=target)
    for module in all_modules:
        if module is target:
            continue
        for dependency in module.dependencies:
            if dependency.group_id == target.group_id and dependency.artifact_id == target.artifact_id:
                result.dependents[module] = dependency.version
                result.has_explicit_match = result.has_explicit_match or dependency.version == target.version

    logger.debug("%s has %s downstream dependents (explicit: %s)", target.key, len(result.dependents), result.has_explicit_match)
    return result


def build_reactor_graph(modules: Sequence[ModuleDescriptor]) -> "nx.DiGraph[ModuleDescriptor]":
    """Build the direct dependency graph of a reactor.

    Edges point from producer to consumer. A declared parent counts as a
    producer of its children. Dependencies on artifacts outside the reactor
    are ignored.

    Args:
        modules: Every module of the reactor

    Returns:
        Directed graph with one node per module
    """
    by_coordinate: Dict[Tuple[str, str], List[ModuleDescriptor]] = {}
    for module in modules:
        by_coordinate.setdefault(module.coordinate, []).append(module)

    G: "nx.DiGraph[ModuleDescriptor]" = nx.DiGraph()
    G.add_nodes_from(modules)

    for module in modules:
        producers = [dependency.coordinate for dependency in module.dependencies]
        if module.parent is not None:
            producers.append(module.parent)
        for coordinate in producers:
            for producer in by_coordinate.get(coordinate, []):
                if producer is not module:
                    G.add_edge(producer, module)

    return G


def sort_reactor_modules(modules: Sequence[ModuleDescriptor]) -> List[ModuleDescriptor]:
    """Order modules so that every producer precedes its consumers.

    Among modules whose producers are all placed, declaration order wins.

    Args:
        modules: Every module of the reactor, in declaration order

    Returns:
        Modules in build order

    Raises:
        ReactorCycleError: If the modules depend on each other in a cycle
    """
    position = {module: index for index, module in enumerate(modules)}
    G = build_reactor_graph(modules)
    try:
        return list(nx.lexicographical_topological_sort(G, key=lambda module: position[module]))
    except nx.NetworkXUnfeasible as e:
        cycle = nx.find_cycle(G)
        chain = " -> ".join(producer.key for producer, _ in cycle)
        raise ReactorCycleError(f"The reactor contains a dependency cycle: {chain} -> {cycle[0][0].key}") from e
