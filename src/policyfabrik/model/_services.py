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

"""Services: protocol/port definitions referenced by rules.

A service is one definition or a list of definitions, for example::

    service:
      ftp: {proto: tcp, port: 21, ct-helper: ftp}
      dns: [{proto: udp, port: 53}, {proto: tcp, port: 53}]
"""

from __future__ import annotations

from typing import Any

from policyfabrik.compiler._optfrag import OptFrag
from policyfabrik.model._base import ConfigObject, as_list

# multiport accepts at most 15 ports; a range counts as two
MULTIPORT_MAX = 15

PORT_PROTOCOLS = frozenset({'tcp', 'udp', 'sctp', 'udplite', 'dccp'})

ICMP_PROTOCOLS = {
    'icmp': ('inet', 'icmp', '--icmp-type'),
    'icmpv6': ('inet6', 'icmpv6', '--icmpv6-type'),
    'ipv6-icmp': ('inet6', 'icmpv6', '--icmpv6-type'),
}


def _port(port) -> str:
    return str(port).replace('-', ':')


def _chunks(ports: list[str]) -> list[list[str]]:
    chunks: list[list[str]] = [[]]
    weight = 0
    for port in ports:
        w = 2 if ':' in port else 1
        if weight + w > MULTIPORT_MAX:
            chunks.append([])
            weight = 0
        chunks[-1].append(port)
        weight += w
    return chunks


class ServiceDefinition(ConfigObject):
    """A single protocol definition of a service."""

    attributes = frozenset({'proto', 'port', 'family', 'type', 'ct-helper'})

    def init(self) -> None:
        if 'proto' not in self:
            self.error('Protocol not defined')
        self['proto'] = str(self['proto']).lower()
        family = self.get('family')
        if family not in (None, 'inet', 'inet6'):
            self.error(f'Invalid address family: {family}')

    @property
    def proto(self) -> str:
        return self['proto']

    @property
    def family(self) -> str | None:
        icmp = ICMP_PROTOCOLS.get(self.proto)
        return icmp[0] if icmp else self.get('family')

    def optfrags(self, reverse: bool = False) -> list[OptFrag]:
        proto = self.proto
        family = self.family

        if proto in ICMP_PROTOCOLS:
            _, name, option = ICMP_PROTOCOLS[proto]
            match = [f'-p {name}']
            if 'type' in self:
                match.append(f'{option} {self["type"]}')
            return [OptFrag(family=family, match=tuple(match))]

        match = f'-p {proto}'
        if 'port' not in self:
            return [OptFrag(family=family, match=match)]

        if proto not in PORT_PROTOCOLS:
            self.error(f'Port not allowed with protocol {proto}')

        ports = [_port(port) for port in as_list(self['port'])]
        direction = 's' if reverse else 'd'
        if len(ports) == 1:
            return [OptFrag(family=family, match=(match, f'--{direction}port {ports[0]}'))]
        return [
            OptFrag(
                family=family,
                match=(match, f'-m multiport --{direction}ports {",".join(chunk)}'),
            )
            for chunk in _chunks(ports)
        ]


class Service(ConfigObject):
    """Named service, holding one or more :class:`ServiceDefinition`."""

    def __init__(self, context, location, attrs, key=None) -> None:
        self.definitions: list[ServiceDefinition] = []
        super().__init__(context, location, attrs, key=key)

    @classmethod
    def morph(cls, raw: Any, context, location: str, key: Any = None) -> Service:
        if isinstance(raw, Service):
            return raw
        service = cls(context, location, {}, key=key)
        service.definitions = [
            ServiceDefinition.morph(item, context, location) for item in as_list(raw)
        ]
        if not service.definitions:
            service.error('Empty service definition')
        return service

    def optfrags(self, reverse: bool = False) -> list[OptFrag]:
        res = []
        for sdef in self.definitions:
            res.extend(sdef.optfrags(reverse))
        return res
