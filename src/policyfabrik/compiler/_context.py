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

"""Compilation context threaded through the compiler and the rule model.

One context is created per compilation run.  It owns the registered
sections, the globally declared auxiliary chains, unique chain-name
counters, the object map and the compiler options.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from policyfabrik.compiler._base import BaseCompiler
from policyfabrik.compiler._dependency import resolve
from policyfabrik.compiler._section import MODULES_LOADED, Module, Section
from policyfabrik.core._host import HostResolver, Resolver
from policyfabrik.core.options import COMPILER_DEFAULTS, CompilerDefaults

if TYPE_CHECKING:
    from policyfabrik.compiler._optfrag import OptFrag

logger = logging.getLogger(__name__)


class CompilationContext(BaseCompiler):
    """Per-run registry of sections, auxiliary chains and objects."""

    def __init__(
        self,
        modules: Iterable[Module] = (),
        options: CompilerDefaults | None = None,
        resolver: Resolver | None = None,
    ) -> None:
        super().__init__()
        self.options: CompilerDefaults = options or COMPILER_DEFAULTS
        self.hosts: HostResolver = HostResolver(resolver)
        self.sections: dict[str, Section] = {}
        self.achains: list[OptFrag] = []
        self.objects: dict[str, Any] = {}
        # Log used when a rule asks for logging without naming a log class
        self.default_log: Any = None

        self._shared_chains: set[str] = set()
        self._lastid: dict[str, int] = {}
        self._order: list[str] | None = None

        exported: list[str] = []
        for module in modules:
            names = self.register(module)
            if not module.core:
                exported.extend(names)
        self.sections[MODULES_LOADED] = Section(MODULES_LOADED, before=exported)

    @property
    def families(self) -> tuple[str, ...]:
        return self.options.families

    def register(self, module: Module) -> list[str]:
        """Register the sections and auxiliary chains of *module*."""
        logger.debug('Registering module %s', module.name)
        names = []
        for section in module.sections:
            if section.name in self.sections:
                self.error(f'module {module.name}', f'Duplicate section: {section.name}')
            if module.core and not section.virtual:
                section = dataclasses.replace(
                    section, before=[*section.before, MODULES_LOADED]
                )
            self.sections[section.name] = section
            names.append(section.name)
        self.achains.extend(module.achains)
        self._order = None
        return names

    @property
    def order(self) -> list[str]:
        """Section processing order."""
        if self._order is None:
            self._order = resolve(self.sections)
        return self._order

    def section_class(self, name: str) -> type | None:
        section = self.sections.get(name)
        return section.cls if section else None

    def uniqueid(self, key: str) -> str:
        """Return a fresh chain name ``<key>-<n>``."""
        n = self._lastid.get(key, -1) + 1
        self._lastid[key] = n
        return f'{key}-{n}'

    def declare_chain(self, chain: str, rules: list[OptFrag]) -> bool:
        """Declare a shared auxiliary chain once.

        Returns False if a chain with this name was declared before; its
        rules are then left unchanged.
        """
        if chain in self._shared_chains:
            return False
        self._shared_chains.add(chain)
        self.achains.extend(rule.replace(chain=chain) for rule in rules)
        return True
