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

"""Option fragments and their combination algebra.

An option fragment is a partial iptables rule: any subset of address
family, table, chain, match tokens, target, position and index.  An
unset attribute means "unconstrained", not "empty".

:func:`combine` builds the ordered cross product of fragment lists.
Match tokens accumulate; every other attribute must agree on both
sides, otherwise the combination is dropped from the product.  This is
what lets a family-agnostic fragment list be narrowed by combining it
with ``[OptFrag(family='inet')]``.
"""

from __future__ import annotations

import dataclasses
import itertools
from collections.abc import Iterable
from typing import NamedTuple

# Attributes merged by equality; ``match`` is handled separately.
_SCALAR_FIELDS = ('family', 'table', 'chain', 'target', 'position', 'index')


def _tokens(match) -> tuple[str, ...]:
    if match is None:
        return ()
    if isinstance(match, str):
        return (match,) if match else ()
    return tuple(t for t in match if t)


@dataclasses.dataclass(frozen=True)
class OptFrag:
    """Partial rule specification."""

    family: str | None = None
    table: str | None = None
    chain: str | None = None
    match: tuple[str, ...] = ()
    target: str | None = None
    position: str | None = None
    index: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, 'match', _tokens(self.match))

    @property
    def match_text(self) -> str:
        return ' '.join(self.match)

    def replace(self, **changes) -> OptFrag:
        return dataclasses.replace(self, **changes)

    def merge(self, other: OptFrag) -> OptFrag | None:
        """Merge two fragments, or return None if they conflict."""
        values = {}
        for name in _SCALAR_FIELDS:
            mine = getattr(self, name)
            theirs = getattr(other, name)
            if mine is not None and theirs is not None and mine != theirs:
                return None
            values[name] = mine if mine is not None else theirs
        return OptFrag(match=self.match + other.match, **values)

    def is_bound(self) -> bool:
        """True when family, table and chain are all set."""
        return None not in (self.family, self.table, self.chain)


class RuleCommand(NamedTuple):
    """Rule as stored in the rule tree: match text and optional target."""

    match: str
    target: str | None

    @property
    def text(self) -> str:
        parts = []
        if self.match:
            parts.append(self.match)
        if self.target:
            parts.append(f'-j {self.target}')
        return ' '.join(parts)


def frags(*specs: dict) -> list[OptFrag]:
    """Build a fragment list from keyword dicts."""
    return [OptFrag(**spec) for spec in specs]


def combine(*lists: Iterable[OptFrag] | None) -> list[OptFrag]:
    """Return the merged cross product of the given fragment lists.

    ``None`` arguments are skipped.  The leftmost list varies slowest, so
    the output order is predictable.  Combinations with conflicting
    non-match attributes are left out.
    """
    present = [list(lst) for lst in lists if lst is not None]
    if not present:
        return []

    result = []
    for choice in itertools.product(*present):
        merged = choice[0]
        for ofrag in choice[1:]:
            merged = merged.merge(ofrag)
            if merged is None:
                break
        if merged is not None:
            result.append(merged)
    return result


def location(ofrag: OptFrag) -> tuple[str | None, str | None, str | None]:
    """Return the (family, table, chain) key of a fragment."""
    return (ofrag.family, ofrag.table, ofrag.chain)


def command(ofrag: OptFrag) -> RuleCommand:
    """Project a translation rule into its rule tree representation."""
    return RuleCommand(ofrag.match_text, ofrag.target)
