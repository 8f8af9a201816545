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

"""Section and module descriptors registered with the compiler.

An *object section* (e.g. ``filter``) holds declarative objects keyed by
name or index and names the model class they are morphed into.  A
*virtual section* has a name starting with ``%`` and contributes a rule
list directly.  Both take part in dependency ordering through their
``before``/``after`` lists.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from typing import Any

from policyfabrik.compiler._optfrag import OptFrag

VIRTUAL_PREFIX = '%'

# Virtual section ordered before every section exported by a module.
MODULES_LOADED = '%modules'


def _as_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


@dataclasses.dataclass
class Section:
    """Named section descriptor."""

    name: str
    cls: type | None = None
    rules: list[OptFrag] | Callable[[Any], list[OptFrag] | None] | None = None
    before: list[str] = dataclasses.field(default_factory=list)
    after: list[str] = dataclasses.field(default_factory=list)
    # Objects are keyed by name; the section must be a mapping.
    keyed: bool = False

    def __post_init__(self) -> None:
        self.before = _as_list(self.before)
        self.after = _as_list(self.after)

    @property
    def virtual(self) -> bool:
        return self.name.startswith(VIRTUAL_PREFIX)

    def get_rules(self, context) -> list[OptFrag]:
        """Return the rule list of a virtual section.

        Callable rule lists receive the compilation context and may inspect
        its (already morphed) objects.
        """
        rules = self.rules(context) if callable(self.rules) else self.rules
        return list(rules or [])


@dataclasses.dataclass
class Module:
    """Bundle of sections and globally declared auxiliary chain rules."""

    name: str
    sections: list[Section] = dataclasses.field(default_factory=list)
    achains: list[OptFrag] = dataclasses.field(default_factory=list)
    # Model sections are not ordered behind MODULES_LOADED.
    core: bool = False
