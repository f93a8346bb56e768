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
"""Release root classification.

A module is a release root when it declares its own <scm> section. For every
release root the latest changelog entry of its working copy decides whether
the module changed since its last release: the release plugin leaves a fixed
comment on the commit that follows a release, so if that commit is still the
most recent one, nothing has changed since.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence

from lib.constants import CHANGELOG_LIMIT, DEFAULT_MAX_WORKERS, RELEASE_MARKER, ReleaseRootError, ScmError
from lib.reactor_types import ModuleDescriptor, ReleaseStatus
from lib.scm_utils import ScmManager

logger = logging.getLogger(__name__)


def is_release_marker(comment: Optional[str]) -> bool:
    """Check if a changelog comment contains the release marker."""
    return comment is not None and RELEASE_MARKER in comment


def classify_module(module: ModuleDescriptor, scm_manager: ScmManager) -> ReleaseStatus:
    """Classify a single module.

    Args:
        module: Module to classify
        scm_manager: SCM client used for the changelog request

    Returns:
        NOT_TRACKED without <scm>, UNMODIFIED if the latest changelog comment
        carries the release marker, MODIFIED otherwise

    Raises:
        ReleaseRootError: If the repository cannot be resolved or the changelog request fails
    """
    if module.scm is None:
        return ReleaseStatus.NOT_TRACKED

    try:
        repository = scm_manager.make_repository(module.scm.connection)
        change_log = scm_manager.change_log(repository, module.basedir, limit=CHANGELOG_LIMIT)
    except ScmError as e:
        raise ReleaseRootError(module.key, e) from e

    latest = change_log.latest
    if latest is None:
        logger.debug("%s: empty changelog", module.key)
        return ReleaseStatus.MODIFIED

    logger.debug("%s: latest change %s: %s", module.key, latest.revision[:8], latest.comment.splitlines()[0] if latest.comment else "")
    return ReleaseStatus.UNMODIFIED if is_release_marker(latest.comment) else ReleaseStatus.MODIFIED


def classify_release_roots(
    modules: Sequence[ModuleDescriptor], scm_manager: ScmManager, max_workers: int = DEFAULT_MAX_WORKERS
) -> Dict[ModuleDescriptor, ReleaseStatus]:
    """Classify every module of the reactor.

    The returned mapping holds every module exactly once, in input order.
    Classification stops at the first failure; no partial result is returned.
    With max_workers > 1 the changelog requests run on a thread pool and the
    failure reported is the first one in input order.

    Args:
        modules: Every module of the reactor, in reactor order
        scm_manager: SCM client used for changelog requests
        max_workers: Number of concurrent changelog requests

    Returns:
        Module -> ReleaseStatus mapping in input order

    Raises:
        ReleaseRootError: If classification of any module fails
    """
    if max_workers <= 1:
        return {module: classify_module(module, scm_manager) for module in modules}

    statuses: Dict[ModuleDescriptor, ReleaseStatus] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures: List[Future] = [executor.submit(classify_module, module, scm_manager) for module in modules]
        try:
            for module, future in zip(modules, futures):
                statuses[module] = future.result()
        except BaseException:
            for future in futures:
                future.cancel()
            raise

    return statuses
