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

"""Rule object model.

Each class adds one concern on top of its base:

* :class:`Rule`: zone, address, address set and service dimensions,
  expanded into translation rules with the fragment algebra.
* :class:`TranslatingRule`: destination NAT rewrite of the address and
  service dimensions.
* :class:`LoggingRule`: action and log decoration.
* :class:`RelatedRule`: RELATED-state matches for connection tracking
  helpers.

The rule expansion is a fixed sequence of steps::

    trules = combine(zone, src, dest, ipset, service, position)
             -> mangleoptfrags
             -> combine(family, table)
             + extratrules

Subclasses override individual ``*optfrags`` steps.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any

from policyfabrik.compiler._optfrag import OptFrag, combine
from policyfabrik.model._base import ConfigObject, as_list
from policyfabrik.model._log import Log
from policyfabrik.model._services import Service
from policyfabrik.model._zones import FW_ZONE, Zone

logger = logging.getLogger(__name__)

# Interface directions visible in each hook
IFACE_DIRECTIONS = {
    'INPUT': ('in',),
    'OUTPUT': ('out',),
    'FORWARD': ('in', 'out'),
    'PREROUTING': ('in',),
    'POSTROUTING': ('out',),
}

# Attributes copied from a rule into the rules derived from it
TRANSFER_ATTRIBUTES = ('in', 'out', 'src', 'dest', 'service', 'ipset')

CUSTOM_PREFIX = 'custom:'


class Rule(ConfigObject):
    attributes = frozenset({'in', 'out', 'src', 'dest', 'service', 'ipset', 'reverse'})

    table_name = 'filter'
    # Filter hook -> chain of this rule's table; unmapped hooks are skipped
    chain_map = {'INPUT': 'INPUT', 'OUTPUT': 'OUTPUT', 'FORWARD': 'FORWARD'}

    def init(self) -> None:
        super().init()
        self._zones = {attr: self._resolve_zones(attr) for attr in ('in', 'out')}
        self._services = self._resolve_services()

        ipset = self.get('ipset')
        if ipset is not None:
            if isinstance(ipset, str):
                ipset = {'name': ipset}
            if 'name' not in ipset:
                self.error('ipset name not defined')
            self['ipset'] = ipset

    def _resolve_zones(self, attr: str) -> list[Zone | str] | None:
        if attr not in self:
            return None
        zones = []
        for name in as_list(self[attr]):
            if name == FW_ZONE:
                zones.append(FW_ZONE)
                continue
            if isinstance(name, Zone):
                zones.append(name)
                continue
            zone = (self.root.get('zone') or {}).get(name)
            if zone is None:
                self.error(f'Invalid zone: {name}')
            zones.append(zone)
        return zones

    def _resolve_services(self) -> list[Service] | None:
        if 'service' not in self:
            return None
        services = []
        for item in as_list(self['service']):
            if isinstance(item, str):
                service = (self.root.get('service') or {}).get(item)
                if service is None:
                    self.error(f'Invalid service: {item}')
            else:
                service = Service.morph(item, self.context, f'{self.location} service')
            services.append(service)
        return services

    def services(self) -> list[Service]:
        return list(self._services or [])

    @property
    def reverse(self) -> bool:
        return bool(self.get('reverse'))

    def direction(self, direction: str) -> str:
        """Return *direction*, swapped for reply-direction rules."""
        if not self.reverse:
            return direction
        return {'in': 'out', 'out': 'in'}[direction]

    # -- Fragment dimensions --

    def zoneoptfrags(self) -> list[OptFrag]:
        zins = self._zones['in'] or [None]
        zouts = self._zones['out'] or [None]
        if self.reverse:
            zins, zouts = zouts, zins

        res: list[OptFrag] = []
        for zin, zout in itertools.product(zins, zouts):
            for ofrag in self._zonepair(zin, zout):
                if ofrag not in res:
                    res.append(ofrag)
        return res

    def _zonepair(self, zin, zout) -> list[OptFrag]:
        if zin == FW_ZONE and zout == FW_ZONE:
            return []
        if zin == FW_ZONE:
            hooks, zin = ['OUTPUT'], None
        elif zout == FW_ZONE:
            hooks, zout = ['INPUT'], None
        else:
            hooks = ['FORWARD']
            if zout is None:
                hooks.append('INPUT')
            if zin is None:
                hooks.append('OUTPUT')

        res = []
        for hook in hooks:
            chain = self.chain_map.get(hook)
            if chain is None:
                continue
            visible = IFACE_DIRECTIONS.get(chain, ('in', 'out'))
            chainfrag = [OptFrag(chain=chain)]

            if zin is not None and zin is zout and not zin.get('route-back'):
                ifaces = zin.ifaces()
                if ifaces:
                    for iin, iout in itertools.permutations(ifaces, 2):
                        res.extend(
                            combine(
                                zin.optfrags('in', [iin] if 'in' in visible else False),
                                zout.optfrags('out', [iout] if 'out' in visible else False),
                                chainfrag,
                            )
                        )
                    continue

            ofrags = [
                zone.optfrags(direction, None if direction in visible else False)
                if zone is not None
                else None
                for zone, direction in ((zin, 'in'), (zout, 'out'))
            ]
            res.extend(combine(*ofrags, chainfrag))
        return res

    def _hostoptfrags(self, attr: str, direction: str) -> list[OptFrag] | None:
        if attr not in self:
            return None
        option = '-s' if self.direction(direction) == 'in' else '-d'
        res = []
        for hostdef in as_list(self[attr]):
            for family, addr in self.context.hosts.resolve(hostdef, self):
                res.append(OptFrag(family=family, match=f'{option} {addr}'))
        return res

    def srcoptfrags(self) -> list[OptFrag] | None:
        return self._hostoptfrags('src', 'in')

    def destoptfrags(self) -> list[OptFrag] | None:
        return self._hostoptfrags('dest', 'out')

    def ipsetoptfrags(self) -> list[OptFrag] | None:
        ipset = self.get('ipset')
        if not ipset:
            return None
        args = ipset.get('args') or ('dst' if self.reverse else 'src')
        if isinstance(args, list | tuple):
            args = ','.join(args)
        return [OptFrag(match=f'-m set --match-set {ipset["name"]} {args}')]

    def servoptfrags(self) -> list[OptFrag] | None:
        if self._services is None:
            return None
        res = []
        for service in self._services:
            res.extend(service.optfrags(self.reverse))
        return res

    # -- Placement --

    def position(self) -> str:
        return 'append'

    def table(self) -> str:
        return self.table_name

    def families(self) -> tuple[str, ...]:
        return self.context.families

    def target(self) -> str | None:
        return None

    def mangleoptfrags(self, ofrags: list[OptFrag]) -> list[OptFrag]:
        target = self.target()
        if target is None:
            return ofrags
        return combine(ofrags, [OptFrag(target=target)])

    # -- Expansion --

    def trules(self) -> list[OptFrag]:
        """Return this rule's translation rules."""
        ofrags = combine(
            self.zoneoptfrags(),
            self.srcoptfrags(),
            self.destoptfrags(),
            self.ipsetoptfrags(),
            self.servoptfrags(),
            [OptFrag(position=self.position())],
        )
        ofrags = self.mangleoptfrags(ofrags)
        res = combine(
            ofrags,
            [OptFrag(family=family) for family in self.families()],
            [OptFrag(table=self.table())],
        )
        logger.debug('%s: %d translation rules', self.location, len(res))
        return res + self.extratrules()

    def extratrules(self) -> list[OptFrag]:
        return []

    def extrarules(
        self,
        label: str,
        cls: type | str,
        *,
        src: Any = None,
        index: int | None = None,
        update: dict | None = None,
        discard: tuple[str, ...] = (),
        attrs: tuple[str, ...] = (),
    ) -> list[OptFrag]:
        """Return the translation rules of a rule derived from this one.

        *cls* is a rule class or a section name.  Transferable attributes
        are taken from *src* (this rule by default), then *update* is
        applied and *discard* removed.
        """
        if isinstance(cls, str):
            name = cls
            cls = self.context.section_class(name)
            if cls is None:
                self.error(f'Section not available: {name}')

        source = self.attrs if src is None else src
        params = {}
        for key in (*TRANSFER_ATTRIBUTES, *attrs):
            if source.get(key) is not None:
                params[key] = source[key]
        params.update(update or {})
        for key in discard:
            params.pop(key, None)
        params = {key: value for key, value in params.items() if value is not None}

        location = f'{self.location} {label}'
        if index is not None:
            location = f'{location} {index}'
        return cls.morph(params, self.context, location).trules()

    def combine(
        self,
        ofrags: list[OptFrag],
        actfrags: list[OptFrag],
        key: str,
        log: Log | None = None,
        unique: bool = False,
    ) -> list[OptFrag]:
        """Attach action fragments to match fragments.

        A single action is merged into the match fragments.  Several
        actions go to an auxiliary chain: a chain shared by all rules
        using the same named *log*, or otherwise a chain of this rule
        (always when *unique* is set).
        """
        if not unique and len(actfrags) == 1:
            return combine(ofrags, actfrags)

        if not unique and log is not None and log.name is not None:
            chain = f'{key}-{log.name}' if log.name else key
            self.context.declare_chain(chain, actfrags)
            return combine(ofrags, [OptFrag(target=chain)])

        chain = self.uniqueid(key)
        jumps = [ofrag if ofrag.target else ofrag.replace(target=chain) for ofrag in ofrags]
        body = [ofrag if ofrag.chain else ofrag.replace(chain=chain) for ofrag in actfrags]

        families = {ofrag.family for ofrag in jumps}
        if jumps and None not in families:
            body = combine(body, [OptFrag(family=family) for family in sorted(families)])
        return jumps + body


class TranslatingRule(Rule):
    attributes = frozenset({'dnat'})

    def init(self) -> None:
        super().init()
        dnat = self.get('dnat')
        if isinstance(dnat, str):
            self['dnat'] = {'addr': dnat}
        elif dnat is not None and 'addr' not in dnat:
            self.error('dnat address not defined')

    def dnat_address(self) -> str:
        """Return the single IPv4 address the DNAT target resolves to."""
        addr = str(self['dnat']['addr'])
        if '/' in addr:
            self.error('DNAT target cannot be a network address')
        res = None
        for family, address in self.context.hosts.resolve(addr, self):
            if family == 'inet':
                if res is not None:
                    self.error(f'{addr} resolves to multiple IPv4 addresses')
                res = address
        if res is None:
            self.error(f'{addr} does not resolve to any IPv4 address')
        return res

    def destoptfrags(self) -> list[OptFrag] | None:
        ofrags = super().destoptfrags()
        if not self.get('dnat'):
            return ofrags

        ofrags = combine(ofrags, [OptFrag(family='inet6')])
        zone = self.create(Zone, {'addr': self.dnat_address()}, 'dnat')
        return ofrags + zone.optfrags(self.direction('out'))

    def servoptfrags(self) -> list[OptFrag] | None:
        ofrags = super().servoptfrags()
        dnat = self.get('dnat')
        if not dnat or dnat.get('port') is None:
            return ofrags

        ofrags = combine(ofrags, [OptFrag(family='inet6')])

        protos = []
        for service in self.services():
            for sdef in service.definitions:
                if sdef.family == 'inet6':
                    continue
                if sdef.proto not in ('tcp', 'udp'):
                    self.error(f'Cannot do port translation for {sdef.proto}')
                if sdef.proto not in protos:
                    protos.append(sdef.proto)

        for proto in protos:
            service = self.create(Service, {'proto': proto, 'port': dnat['port']}, 'dnat')
            ofrags += combine(service.optfrags(self.reverse), [OptFrag(family='inet')])
        return ofrags


class LoggingRule(TranslatingRule):
    attributes = frozenset({'action', 'log'})

    def init(self) -> None:
        super().init()
        self.attrs.setdefault('action', 'accept')
        self['action'] = str(self['action'])

        custom = self.customtarget()
        if not isinstance(self.get('log'), Log):
            self['log'] = Log.get(self, self.get('log'), not custom and self.logdefault())
        if custom and self['log']:
            self.error(f'Logging not allowed with custom action: {self["action"]}')

    @property
    def action(self) -> str:
        return self['action']

    @property
    def log(self) -> Log | None:
        return self.get('log')

    def customtarget(self) -> bool:
        return self.action.startswith(CUSTOM_PREFIX)

    def logdefault(self) -> bool:
        return False

    def target(self) -> str | None:
        return 'ACCEPT'

    def actofrags(self, log: Log | None, target: str | None = None) -> list[OptFrag]:
        res = log.optfrags() if log else []
        if target is not None:
            res.append(OptFrag(target=target))
        return res

    def combinelog(
        self,
        ofrags: list[OptFrag],
        log: Log | None,
        action: str,
        target: str | None,
    ) -> list[OptFrag]:
        actions = self.actofrags(log, target)
        if not actions:
            return ofrags
        return self.combine(ofrags, actions, f'log{action}', log)

    def mangleoptfrags(self, ofrags: list[OptFrag]) -> list[OptFrag]:
        return self.combinelog(ofrags, self.log, self.action, self.target())


class RelatedRule(TranslatingRule):
    """Accepts RELATED traffic of connections with a tracking helper."""

    def servoptfrags(self) -> list[OptFrag] | None:
        helpers: dict[str, OptFrag] = {}
        for service in self.services():
            for sdef in service.definitions:
                helper = sdef.get('ct-helper')
                if helper:
                    helpers[helper] = OptFrag(
                        family=sdef.family,
                        match=f'-m conntrack --ctstate RELATED -m helper --helper {helper}',
                    )
        return list(helpers.values())

    def target(self) -> str | None:
        return 'ACCEPT'
