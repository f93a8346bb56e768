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
"""Release readiness report formatting."""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Mapping, Sequence

from lib.constants import MISSING_VERSION_DISPLAY, REPORT_DETAIL_INDENT, REPORT_INDENT
from lib.dependency_utils import cross_reference
from lib.reactor_types import ModuleDescriptor, ReleaseStatus

logger = logging.getLogger(__name__)

RESULTS_HEADER = ["Done.", "", "Results", "-------", ""]

NOT_A_RELEASE_ROOT = f"{REPORT_INDENT}- Not a release root"
UNMODIFIED_LINE = f"{REPORT_INDENT}- Unmodified since last release"
MODIFIED_LINE = f"{REPORT_INDENT}* Changes since last release present"
DOWNSTREAM_HEADER = f"{REPORT_INDENT}- Downstream dependencies present in reactor"
EXPLICIT_HEADER = f"{REPORT_INDENT}* Downstream explicit dependencies present in reactor"
RECOMMEND_RELEASE = f"{REPORT_INDENT}* RECOMMEND RELEASE"


@dataclass
class ReportSummary:
    """Counts shown after the report."""

    total: int = 0
    not_tracked: int = 0
    unmodified: int = 0
    modified: int = 0
    recommended: int = 0


def format_module_lines(module: ModuleDescriptor, status: ReleaseStatus, modules: Sequence[ModuleDescriptor]) -> List[str]:
    """Report lines for a single module.

    Args:
        module: Module being reported
        status: Its release status
        modules: Every module of the reactor, searched for dependents

    Returns:
        Report lines, starting with the module key
    """
    lines = [module.key]
    if status is ReleaseStatus.NOT_TRACKED:
        lines.append(NOT_A_RELEASE_ROOT)
        return lines

    lines.append(UNMODIFIED_LINE if status is ReleaseStatus.UNMODIFIED else MODIFIED_LINE)

    xref = cross_reference(module, modules)
    if xref.dependents:
        lines.append(DOWNSTREAM_HEADER)
        for dependent, declared in xref.dependents.items():
            version = declared if declared is not None else MISSING_VERSION_DISPLAY
            lines.append(f"{REPORT_DETAIL_INDENT}{dependent.key} <- {version}")

    if xref.has_explicit_match:
        lines.append(EXPLICIT_HEADER)
        for dependent in xref.explicit_dependents():
            lines.append(f"{REPORT_DETAIL_INDENT}{dependent.key}")

    if xref.recommend_release(status):
        lines.append(RECOMMEND_RELEASE)

    return lines


def build_report_lines(statuses: Mapping[ModuleDescriptor, ReleaseStatus], modules: Sequence[ModuleDescriptor]) -> List[str]:
    """Report lines for every classified module, in mapping order."""
    lines: List[str] = []
    for module, status in statuses.items():
        lines.extend(format_module_lines(module, status, modules))
    return lines


def summarize(statuses: Mapping[ModuleDescriptor, ReleaseStatus], modules: Sequence[ModuleDescriptor]) -> ReportSummary:
    """Count modules per status and release recommendations."""
    summary = ReportSummary(total=len(statuses))
    for module, status in statuses.items():
        if status is ReleaseStatus.NOT_TRACKED:
            summary.not_tracked += 1
            continue
        if status is ReleaseStatus.UNMODIFIED:
            summary.unmodified += 1
        else:
            summary.modified += 1
        if cross_reference(module, modules).recommend_release(status):
            summary.recommended += 1
    return summary


def write_report(lines: Iterable[str], sink: Callable[[str], None] = logger.info) -> None:
    """Write report lines, one call per line, to a sink such as a logger method or print."""
    for line in lines:
        sink(line)
