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

"""Compiler: assembles the rule tree from a policy.

Compilation runs in two passes over the section order:

1. morph the raw objects of every object section into instances of the
   section's class;
2. insert the translation rules of every section (virtual sections
   contribute their rule list, object sections the rules of their
   objects) into the rule tree.

A rule jumping to an auxiliary chain pulls in the chain's rules the
first time that chain is referenced in a given (family, table)
location.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from policyfabrik.compiler._context import CompilationContext
from policyfabrik.compiler._optfrag import OptFrag, combine, command, location
from policyfabrik.compiler._rule_tree import RuleTree
from policyfabrik.compiler._section import Module
from policyfabrik.core._host import Resolver
from policyfabrik.core._ipset import IPSet
from policyfabrik.core._policy_reader import PolicyConfig
from policyfabrik.core.options import CompilerDefaults

logger = logging.getLogger(__name__)

CUSTOM_PREFIX = 'custom:'

_CUSTOM_RULE_KEYS = frozenset({'family', 'table', 'match', 'target'})


class Compiler:
    """Compiles a :class:`PolicyConfig` into iptables and ipset configuration.

    The result is available as :attr:`iptables` (a :class:`RuleTree`)
    and :attr:`ipset` (an :class:`IPSet`).  Configuration errors raise
    :class:`~policyfabrik.core.PolicyError`.
    """

    def __init__(
        self,
        policy: PolicyConfig,
        modules: Iterable[Module] | None = None,
        resolver: Resolver | None = None,
        options: CompilerDefaults | None = None,
    ) -> None:
        if modules is None:
            from policyfabrik.modules import MODULES

            modules = MODULES
        if options is None:
            options = CompilerDefaults.from_mapping(policy.options)

        self.policy = policy
        self.context = CompilationContext(modules, options=options, resolver=resolver)
        self.context.objects = self.objects = policy.expand()
        self.iptables = RuleTree()

        # Locations of auxiliary chains already inserted
        self._actions: set[tuple[str | None, str | None, str | None]] = set()

        for section in sorted(set(self.objects) - set(self.context.sections)):
            self.context.warning(section, 'Unknown section ignored')

        for name, section in self.context.sections.items():
            objs = self.objects.get(name)
            if section.keyed and objs and not isinstance(objs, Mapping):
                self.context.error(name, f'Section {name} must be a mapping')

        order = self.context.order
        logger.debug('Processing sections: %s', ', '.join(order))
        self._morph(order)
        self._insert(order)

        self.ipset = IPSet(self.objects.get('ipset'))

    @property
    def action_chains(self) -> set[tuple[str | None, str | None, str | None]]:
        return set(self._actions)

    @property
    def warnings(self) -> list[str]:
        return self.context.get_warnings()

    def _morph(self, order: list[str]) -> None:
        for name in order:
            section = self.context.sections[name]
            objs = self.objects.get(name)
            if section.virtual or section.cls is None or not objs:
                continue
            sources = self.policy.source.get(name, {})
            keys = objs.keys() if isinstance(objs, Mapping) else range(len(objs))
            for key in keys:
                where = f'{name} {key} ({sources.get(key, "?")})'
                objs[key] = section.cls.morph(objs[key], self.context, where, key=key)
            logger.debug('Morphed %d %s objects', len(objs), name)

    def _insert(self, order: list[str]) -> None:
        for name in order:
            section = self.context.sections[name]
            if section.virtual:
                self.insertrules(section.get_rules(self.context))
                continue
            objs = self.objects.get(name)
            if not objs or section.cls is None:
                continue
            items = objs.values() if isinstance(objs, Mapping) else objs
            for obj in items:
                if hasattr(obj, 'trules'):
                    self.insertrules(obj.trules(), obj)

    def insertrules(self, trules: Iterable[OptFrag], obj: Any = None) -> None:
        """Insert translation rules into the rule tree.

        Prepended rules keep the order in which they are given.
        """
        prepended: dict[tuple, int] = {}

        for trule in trules:
            if not trule.is_bound():
                self._error(obj, f'Incomplete rule location: {trule}')
            rules = self.iptables.chain(trule.family, trule.table, trule.chain)

            if trule.target:
                acfrag = OptFrag(family=trule.family, table=trule.table, chain=trule.target)
                key = location(acfrag)
                if key not in self._actions:
                    self._actions.add(key)
                    if trule.target.startswith(CUSTOM_PREFIX):
                        # Declared even when it has no rules
                        self.iptables.chain(*key)
                        self.insertrules(self._customrules(trule.target, acfrag, obj))
                    else:
                        self.insertrules(combine(self.context.achains, [acfrag]))

            if trule.position == 'prepend':
                loc = location(trule)
                index = prepended.get(loc, 0)
                rules.insert(index, command(trule))
                prepended[loc] = index + 1
            else:
                rules.append(command(trule))

    def _customrules(self, target: str, acfrag: OptFrag, obj: Any) -> list[OptFrag]:
        name = target[len(CUSTOM_PREFIX) :]
        rules = (self.objects.get('custom') or {}).get(name)
        if rules is None:
            self._error(obj, f'Invalid custom chain: {name}')

        where = f'custom {name}'
        ofrags = []
        for rule in rules if isinstance(rules, list) else [rules]:
            if not isinstance(rule, Mapping):
                self.context.error(where, 'Custom rule must be a mapping')
            unknown = sorted(set(rule) - _CUSTOM_RULE_KEYS)
            if unknown:
                self.context.error(where, f'Invalid attribute: {unknown[0]}')
            ofrags.append(OptFrag(**{k: rule[k] for k in _CUSTOM_RULE_KEYS if k in rule}))
        return combine([OptFrag(chain=target)], ofrags, [acfrag])

    def _error(self, obj: Any, msg: str) -> None:
        if obj is not None and hasattr(obj, 'error'):
            obj.error(msg)
        self.context.error('', msg)
