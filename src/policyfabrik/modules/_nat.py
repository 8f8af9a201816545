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

"""NAT module: ``dnat`` and ``snat`` sections (IPv4 only)."""

from __future__ import annotations

from policyfabrik.compiler._section import Module, Section
from policyfabrik.model import Rule


class NATRule(Rule):
    attributes = frozenset({'to-addr', 'to-port'})

    table_name = 'nat'

    def families(self) -> tuple[str, ...]:
        return tuple(family for family in self.context.families if family == 'inet')

    def address(self) -> str | None:
        addr = self.get('to-addr')
        if addr is None:
            return None
        port = self.get('to-port')
        if port is not None:
            addr = f'{addr}:{port}'
        return str(addr)


class DNATRule(NATRule):
    chain_map = {'INPUT': 'PREROUTING', 'FORWARD': 'PREROUTING', 'OUTPUT': 'OUTPUT'}

    def target(self) -> str | None:
        addr = self.address()
        if addr is not None:
            return f'DNAT --to-destination {addr}'
        if 'to-port' in self:
            return f'REDIRECT --to-ports {self["to-port"]}'
        self.error('Translation address or port required')
        return None


class SNATRule(NATRule):
    chain_map = {'FORWARD': 'POSTROUTING', 'OUTPUT': 'POSTROUTING'}

    def target(self) -> str | None:
        addr = self.address()
        if addr is not None:
            return f'SNAT --to-source {addr}'
        if 'to-port' in self:
            return f'MASQUERADE --to-ports {self["to-port"]}'
        return 'MASQUERADE'


MODULE = Module(
    name='nat',
    sections=[
        Section('dnat', cls=DNATRule),
        Section('snat', cls=SNATRule),
    ],
)
