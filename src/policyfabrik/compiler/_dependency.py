# Copyright (C) 2026 Linuxfabrik <info@linuxfabrik.ch>
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 2 of the License, or
# (at your option) any later version.
#
# On Debian systems, the complete text of the GNU General Public License
# version 2 can be found in /usr/share/common-licenses/GPL-2.
#
# SPDX-License-Identifier: GPL-2.0-or-later

"""Topological ordering of sections from ``before``/``after`` directives.

Names are visited in lexical order, so two runs over the same sections
always produce the same sequence.  Directives naming unknown sections
are ignored.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from policyfabrik.core._errors import DependencyError

logger = logging.getLogger(__name__)


def resolve(sections: Mapping) -> list[str]:
    """Return all section names in an order satisfying every directive.

    *sections* maps names to objects with ``before`` and ``after`` lists.
    Raises :class:`DependencyError` listing the cycle members if the
    directives are contradictory.
    """
    names = sorted(sections)

    # predecessors[name]: sections that must come before name
    predecessors: dict[str, list[str]] = {name: [] for name in names}
    for name in names:
        section = sections[name]
        for other in getattr(section, 'after', None) or []:
            if other in predecessors:
                predecessors[name].append(other)
            else:
                logger.debug('Section %s: ignoring unknown "after" %s', name, other)
        for other in getattr(section, 'before', None) or []:
            if other in predecessors:
                predecessors[other].append(name)
            else:
                logger.debug('Section %s: ignoring unknown "before" %s', name, other)

    order: list[str] = []
    done: set[str] = set()
    stack: list[str] = []

    def visit(name: str) -> None:
        if name in done:
            return
        if name in stack:
            cycle = stack[stack.index(name) :] + [name]
            raise DependencyError(cycle)
        stack.append(name)
        for pred in sorted(set(predecessors[name])):
            visit(pred)
        stack.pop()
        done.add(name)
        order.append(name)

    for name in names:
        visit(name)

    logger.debug('Section order: %s', ', '.join(order))
    return order
