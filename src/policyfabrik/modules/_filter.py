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

"""Filter module: filter and policy rules, rate limits, stateful rules.

Rate limits are implemented with one of two strategies:

* ``recent`` match: each tracked address is recorded in a recent list
  and checked against count/interval.  The list holds a bounded number
  of entries per address, so this only works for counts up to the
  ``recent_max_count`` option and when exactly one address (source or
  destination) is tracked.
* ``hashlimit`` match in an auxiliary chain otherwise.
"""

from __future__ import annotations

import logging

from policyfabrik.compiler._optfrag import OptFrag, combine, frags
from policyfabrik.compiler._section import Module, Section
from policyfabrik.model import (
    Limit,
    Log,
    LoggingRule,
    RelatedRule,
    TranslatingRule,
    as_list,
    netmask,
    values,
)

logger = logging.getLogger(__name__)

# Deprecated action -> replacement
ACTION_ALIASES = {'logdrop': 'drop', 'logreject': 'reject'}

LIMITS = ('conn-limit', 'flow-limit')

_RECENT_ADDR = {'src': '--rsource', 'dest': '--rdest'}

FILTER_CHAINS = frags({'chain': 'FORWARD'}, {'chain': 'INPUT'}, {'chain': 'OUTPUT'})


class FilterLimit(Limit):
    def recent_match(self, family: str, name: str) -> OptFrag | None:
        mode = self.maskmode(family)
        if mode is None:
            return None
        attr, length = mode
        return OptFrag(
            family=family,
            match=(
                '-m recent',
                f'--name {name}',
                _RECENT_ADDR[attr],
                f'--mask {netmask(family, length)}',
            ),
        )

    def recentofrags(self, name: str) -> tuple[list[OptFrag], list[OptFrag]] | None:
        """Return the (update, set) fragments of the recent strategy.

        Returns None when the strategy is not applicable.
        """
        maxcount = self.context.options.recent_max_count
        count = self.count
        interval = self.interval

        if count > maxcount:
            count = self.intrate()
            interval = 1
        if count > maxcount:
            return None

        name = self.recent_name(name)
        update = self['update']
        check = '--update' if update else '--rcheck'

        uofs: list[OptFrag] = []
        sofs: list[OptFrag] = []
        for family in self.context.families:
            rec = self.recent_match(family, name)
            if rec is None:
                return None
            uofs.extend(
                combine(
                    [rec],
                    [OptFrag(match=f'{check} --hitcount {count} --seconds {interval}')],
                )
            )
            if update:
                sofs.extend(combine([rec], [OptFrag(match='--set')]))
            else:
                sofs.append(OptFrag(family=family))
        return uofs, sofs

    def setofrags(self, name: str) -> list[OptFrag]:
        """Return fragments recording an event in the recent list."""
        name = self.recent_name(name)
        res = []
        for family in self.context.families:
            rec = self.recent_match(family, name)
            if rec is None:
                self.error('Limit update requires a single address selector')
            res.extend(combine([rec], [OptFrag(match='--set')]))
        return res


class LimitUpdate(TranslatingRule):
    """Records matching traffic in a named limit."""

    attributes = frozenset({'limit', 'measure', 'addr'})

    def init(self) -> None:
        super().init()
        if 'limit' not in self:
            self.error('Limit name not defined')
        self.attrs.setdefault('measure', 'conn')
        self.attrs.setdefault('addr', 'src')
        if self['measure'] not in ('conn', 'flow'):
            self.error(f'Invalid limit measure: {self["measure"]}')

    def servoptfrags(self) -> list[OptFrag] | None:
        ofrags = super().servoptfrags()
        if self['measure'] != 'conn':
            return ofrags
        return combine(ofrags, [OptFrag(match='-m conntrack --ctstate NEW')])

    def mangleoptfrags(self, ofrags: list[OptFrag]) -> list[OptFrag]:
        limit = self.create(
            FilterLimit, {'name': self['limit'], 'addr': self['addr']}, 'limit'
        )
        return combine(ofrags, limit.setofrags(self['limit']))


class Filter(LoggingRule):
    attributes = frozenset(
        {'conn-limit', 'flow-limit', 'no-track', 'related', 'update-limit'}
    )

    def init(self) -> None:
        action = self.get('action')
        if action in ACTION_ALIASES:
            self.warning(f'Deprecated action: {action}')
            self['action'] = ACTION_ALIASES[action]

        super().init()

        limit = self.limit()
        if limit:
            if limit == 'conn-limit' and self.get('no-track'):
                self.error('Tracking required with connection limit')
            spec = self[limit]
            spec = dict(spec) if isinstance(spec, dict) else {'count': spec}
            spec['log'] = Log.get(self, spec.get('log'), True)
            self[limit] = spec

        self.target()

    def limit(self) -> str | None:
        res = None
        for limit in LIMITS:
            if limit in self:
                if res:
                    self.error('Cannot specify multiple limits for a single filter rule')
                res = limit
        return res

    def position(self) -> str:
        if not self.get('no-track') and self.limit() == 'flow-limit':
            return 'prepend'
        return 'append'

    def logdefault(self) -> bool:
        return self.action in ('drop', 'reject', 'tarpit')

    def target(self) -> str | None:
        if self.action == 'pass':
            return None
        if self.customtarget():
            return self.action
        if self.action != 'accept' and not self.logdefault():
            self.error(f'Invalid filter action: {self.action}')
        if self.action == 'tarpit':
            return 'tarpit'
        return self.action.upper()

    def trules(self) -> list[OptFrag]:
        res = []
        spec = self.get('update-limit')
        if spec is not None:
            if not isinstance(spec, dict):
                spec = {'name': spec}
            if 'name' not in spec:
                self.error('update-limit name not defined')
            update = {'limit': spec['name']}
            update.update({k: spec[k] for k in ('measure', 'addr') if k in spec})
            res.extend(self.extrarules('update-limit', LimitUpdate, update=update))
        return res + super().trules()

    def extratrules(self) -> list[OptFrag]:
        res = super().extratrules()

        def extrarules(label, cls, **kwargs):
            if isinstance(cls, str):
                cls = self.context.section_class(cls) or cls
            if isinstance(cls, type) and issubclass(cls, TranslatingRule):
                kwargs['attrs'] = ('dnat',)
            res.extend(self.extrarules(label, cls, **kwargs))

        if self.get('dnat'):
            if self.action != 'accept':
                self.error(f'dnat option not allowed with {self.action} action')
            if self.get('no-track'):
                self.error('dnat option not allowed with no-track')
            if self.get('ipset'):
                self.error('dnat and ipset options cannot be used simultaneously')

            extrarules(
                'dnat',
                'dnat',
                update={'to-addr': self.dnat_address(), 'to-port': self['dnat'].get('port')},
                discard=('out',),
            )

        if self.action == 'tarpit' or self.get('no-track'):
            extrarules('no-track', 'no-track')

        if self.action == 'accept':
            # Traffic within a flow limit returns from the limit chain
            if self.limit() == 'flow-limit':
                extrarules('final', LoggingRule, update={'log': self.log})

            count = len(res)

            if self.get('related') is not None:
                for i, rule in enumerate(as_list(self['related'])):
                    extrarules(
                        'related',
                        RelatedRule,
                        index=i,
                        src=rule,
                        update={'service': self.get('service')},
                    )
            else:
                extrarules('related', RelatedRule)
                extrarules('related-reply', RelatedRule, update={'reverse': True})

            if self.get('no-track'):
                if len(res) > count:
                    self.error('Tracking required by service')
                extrarules('no-track-reply', 'no-track', update={'reverse': True})
                extrarules('reply', 'filter', update={'reverse': True})

        return res

    def mangleoptfrags(self, ofrags: list[OptFrag]) -> list[OptFrag]:
        limit = self.limit()
        if not limit:
            return super().mangleoptfrags(ofrags)

        if self.action not in ('accept', 'pass'):
            self.error(f'Cannot specify limit for {self.action} filter')

        limitchain = self.uniqueid('limit')
        limitlog = self[limit]['log']
        limitobj = self.create(FilterLimit, self[limit], 'limit')
        conn = limit == 'conn-limit'
        # Traffic within the limit of a pass rule falls off the end of the chain
        passing = self.target() is None

        recent = limitobj.recentofrags(limitchain)
        if recent:
            logger.debug('%s: recent limit', self.location)
            uofs, sofs = recent
            ofs = self.combinelog(uofs, limitlog, 'drop', 'DROP')
            if conn or passing:
                ofs.extend(self.actofrags(self.log))
            ofs.extend(combine(sofs, [OptFrag(target=self.target() if conn else None)]))
        elif passing:
            logger.debug('%s: hashlimit limit', self.location)
            aofs = limitobj.limitofrags(limitchain, above=True)
            ofs = self.combinelog(aofs, limitlog, 'drop', 'DROP')
            ofs.extend(self.actofrags(self.log))
        else:
            logger.debug('%s: hashlimit limit', self.location)
            limofs = limitobj.limitofrags(limitchain)
            if conn:
                ofs = super().mangleoptfrags(limofs)
            else:
                ofs = combine(limofs, [OptFrag(target='RETURN')])
            ofs.extend(self.actofrags(limitlog, 'DROP'))

        return self.combine(ofrags, ofs, 'limit', unique=True)


class Policy(Filter):
    """Default disposition between zones; has no service dimension."""

    def servoptfrags(self) -> list[OptFrag] | None:
        return None


def stateful(context) -> list[OptFrag]:
    res = []
    filters = values(context.objects.get('filter'))

    for family in context.families:
        established = combine(
            FILTER_CHAINS, [OptFrag(match='-m conntrack --ctstate ESTABLISHED')]
        )
        established.extend(
            frags({'chain': 'INPUT', 'match': '-i lo'}, {'chain': 'OUTPUT', 'match': '-o lo'})
        )
        res.extend(
            combine(
                established,
                [OptFrag(family=family, table='filter', target='ACCEPT')],
            )
        )

        visited = set()
        helpers = []
        for rule in filters:
            for service in rule.services():
                if id(service) in visited:
                    continue
                visited.add(id(service))
                for sdef in service.definitions:
                    helper = sdef.get('ct-helper')
                    if not helper:
                        continue
                    ofrags = combine(sdef.optfrags(), [OptFrag(family=family)])
                    helpers.extend(
                        ofrag.replace(target=f'CT --helper {helper}') for ofrag in ofrags
                    )
        res.extend(
            combine(
                [OptFrag(table='raw')],
                frags({'chain': 'PREROUTING'}, {'chain': 'OUTPUT'}),
                helpers,
            )
        )

    return res


def _icmprules() -> list[OptFrag]:
    icmp = [OptFrag(family='inet', table='filter', match='-p icmp')]
    icmp6 = [OptFrag(family='inet6', table='filter', match='-p icmpv6')]

    res = combine(
        icmp6, frags({'chain': 'INPUT'}, {'chain': 'OUTPUT'}), [OptFrag(target='ACCEPT')]
    )
    res.extend(combine(icmp6, [OptFrag(chain='FORWARD', target='icmp-routing')]))
    res.extend(combine(icmp, FILTER_CHAINS, [OptFrag(target='icmp-routing')]))

    routing = [OptFrag(chain='icmp-routing', target='ACCEPT')]
    for ofrags, option, types in (
        (icmp, '--icmp-type', (3, 11, 12)),
        (icmp6, '--icmpv6-type', (1, 2, 3, 4)),
    ):
        res.extend(
            combine(ofrags, routing, [OptFrag(match=f'{option} {t}') for t in types])
        )
    return res


ICMP_RULES = _icmprules()


def icmprules(context) -> list[OptFrag]:
    return [ofrag for ofrag in ICMP_RULES if ofrag.family in context.families]


MODULE = Module(
    name='filter',
    sections=[
        Section('filter', cls=Filter, before=['dnat', 'no-track']),
        Section('policy', cls=Policy, after=['%filter-after']),
        Section('%filter-before', rules=stateful, before=['filter']),
        Section('%filter-after', rules=icmprules, after=['filter']),
    ],
    achains=combine(
        [OptFrag(chain='tarpit')],
        frags({'match': '-p tcp', 'target': 'TARPIT'}, {'target': 'DROP'}),
    ),
)
