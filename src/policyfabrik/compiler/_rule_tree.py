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

"""Compiled rule tree: family -> table -> chain -> rules."""

from __future__ import annotations

from policyfabrik.compiler._optfrag import RuleCommand


class RuleTree:
    """Nested mapping of compiled rules, in insertion order."""

    def __init__(self) -> None:
        self.config: dict[str, dict[str, dict[str, list[RuleCommand]]]] = {}

    def chain(self, family: str, table: str, chain: str) -> list[RuleCommand]:
        """Return the rule list of a chain, creating it if necessary."""
        tables = self.config.setdefault(family, {})
        chains = tables.setdefault(table, {})
        return chains.setdefault(chain, [])

    def families(self) -> list[str]:
        return list(self.config)

    def tables(self, family: str) -> dict[str, dict[str, list[RuleCommand]]]:
        return self.config.get(family, {})

    def rules(self, family: str, table: str, chain: str) -> list[RuleCommand]:
        return list(self.config.get(family, {}).get(table, {}).get(chain, []))

    def to_dict(self) -> dict:
        """Return the tree with rules projected to their text form."""
        return {
            family: {
                table: {chain: [rule.text for rule in rules] for chain, rules in chains.items()}
                for table, chains in tables.items()
            }
            for family, tables in self.config.items()
        }

    def __len__(self) -> int:
        return sum(
            len(rules)
            for tables in self.config.values()
            for chains in tables.values()
            for rules in chains.values()
        )
