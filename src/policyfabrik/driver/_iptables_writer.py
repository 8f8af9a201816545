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

"""Render a compiled rule tree in iptables-restore format."""

from __future__ import annotations

import logging
from pathlib import Path

import policyfabrik
from policyfabrik.compiler._rule_tree import RuleTree
from policyfabrik.core.options import COMPILER_DEFAULTS, CompilerDefaults
from policyfabrik.driver._jinja2_template import Jinja2Template

logger = logging.getLogger(__name__)

BUILTIN_CHAINS = {
    'raw': ('PREROUTING', 'OUTPUT'),
    'mangle': ('PREROUTING', 'INPUT', 'FORWARD', 'OUTPUT', 'POSTROUTING'),
    'nat': ('PREROUTING', 'INPUT', 'OUTPUT', 'POSTROUTING'),
    'filter': ('INPUT', 'FORWARD', 'OUTPUT'),
}

FILE_NAMES = {'inet': 'rules-save', 'inet6': 'rules6-save'}

TEMPLATE_NAME = 'rules-save.j2'


class IptablesWriter:
    """Serializes a :class:`RuleTree` per address family."""

    def __init__(
        self,
        tree: RuleTree,
        options: CompilerDefaults | None = None,
        template_dir: str | Path | None = None,
    ) -> None:
        self.tree = tree
        self.options = options or COMPILER_DEFAULTS
        self._template = Jinja2Template('iptables', TEMPLATE_NAME, template_dir)

    def _policy(self, table: str) -> str:
        if table == 'filter':
            return self.options.filter_chain_policy
        return 'ACCEPT'

    def _tables(self, family: str) -> list[dict]:
        chains_by_table = dict(self.tree.tables(family))
        # The filter table carries the default policy
        chains_by_table.setdefault('filter', {})

        ordered = [t for t in BUILTIN_CHAINS if t in chains_by_table]
        ordered += sorted(t for t in chains_by_table if t not in BUILTIN_CHAINS)

        tables = []
        for table in ordered:
            chains = chains_by_table[table]
            builtin = BUILTIN_CHAINS.get(table, ())
            declared = [{'name': c, 'policy': self._policy(table)} for c in builtin]
            declared += [{'name': c, 'policy': '-'} for c in chains if c not in builtin]

            lines = [
                f'-A {chain} {rule.text}'.rstrip()
                for chain, rules in chains.items()
                for rule in rules
            ]
            tables.append({'name': table, 'chains': declared, 'lines': lines})
        return tables

    def render(self, family: str) -> str:
        """Return the iptables-restore text of one family."""
        return self._template.render(
            {'version': policyfabrik.__version__, 'tables': self._tables(family)}
        )

    def print(self) -> str:
        return '\n'.join(
            f'# {FILE_NAMES[family]}\n{self.render(family)}'
            for family in self.options.families
        )

    def dump(self, directory: str | Path) -> list[Path]:
        """Write one rule file per family into *directory*."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        paths = []
        for family in self.options.families:
            path = directory / FILE_NAMES[family]
            path.write_text(self.render(family), encoding='utf-8')
            logger.info('Wrote %s', path)
            paths.append(path)
        return paths
