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

"""Rate limit specifications and address masks.

A limit allows ``count`` events per ``interval`` seconds, tracked per
source (``addr: src``, the default) or destination address.  The
per-family ``mask`` gives the prefix lengths that group addresses into
one tracking entry, e.g. ``mask: {inet: {src: 24}}`` limits whole /24
networks.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from fractions import Fraction

from policyfabrik.compiler._optfrag import OptFrag
from policyfabrik.model._base import ConfigObject, format_number

ADDRESS_BITS = {'inet': 32, 'inet6': 128}

_HASHLIMIT_MODES = {'src': 'srcip', 'dest': 'dstip'}
_HASHLIMIT_MASKS = {'src': '--hashlimit-srcmask', 'dest': '--hashlimit-dstmask'}

_RATE_UNITS = (('second', 1), ('minute', 60), ('hour', 3600), ('day', 86400))


def inet_mask(length: int) -> str:
    """Return the dotted-quad IPv4 netmask of a prefix length."""
    octets = []
    for i in range(4):
        if length <= i * 8:
            octets.append(0)
        elif length >= i * 8 + 8:
            octets.append(255)
        else:
            octets.append(256 - 2 ** (8 - length % 8))
    return '.'.join(str(octet) for octet in octets)


def inet6_mask(length: int) -> str:
    """Return the IPv6 netmask of a prefix length.

    Full groups are written out; trailing zero groups are abbreviated
    with ``::``.
    """
    nibbles = ''
    while length > 0:
        nibbles += f'{16 - 2 ** max(0, 4 - length):x}'
        length -= 4
    nibbles += '0' * (-len(nibbles) % 4)
    groups = [nibbles[i : i + 4] for i in range(0, len(nibbles), 4)] or ['0000']
    mask = ':'.join(groups)
    if len(groups) < 8:
        mask += '::'
    return mask


def netmask(family: str, length: int) -> str:
    return inet_mask(length) if family == 'inet' else inet6_mask(length)


class Limit(ConfigObject):
    attributes = frozenset(
        {'count', 'interval', 'name', 'addr', 'mask', 'measure', 'log', 'update'}
    )

    def init(self) -> None:
        self.attrs.setdefault('count', 1)
        self.attrs.setdefault('interval', 1)
        self.attrs.setdefault('addr', 'src')
        self.attrs.setdefault('update', True)

        for attr in ('count', 'interval'):
            value = self[attr]
            if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
                self.error(f'Invalid limit {attr}: {value}')
        if self['addr'] not in ('src', 'dest'):
            self.error(f'Invalid limit address selector: {self["addr"]}')
        if self.get('measure') not in (None, 'conn', 'flow'):
            self.error(f'Invalid limit measure: {self["measure"]}')

        masks = {}
        given = self.get('mask') or {}
        if not isinstance(given, Mapping):
            self.error('Limit mask must be a mapping')
        for family, bits in ADDRESS_BITS.items():
            fmask = dict(given.get(family) or {})
            if not fmask:
                fmask[self['addr']] = bits
            for attr in ('src', 'dest'):
                length = fmask.setdefault(attr, 0)
                if not isinstance(length, int) or not 0 <= length <= bits:
                    self.error(f'Invalid {family} {attr} mask: {length}')
            masks[family] = fmask
        self['mask'] = masks

    @property
    def count(self):
        return self['count']

    @property
    def interval(self):
        return self['interval']

    def maskmode(self, family: str) -> tuple[str, int] | None:
        """Return (attr, length) if exactly one address is tracked."""
        active = [(attr, length) for attr, length in self['mask'][family].items() if length]
        if len(active) != 1:
            return None
        return active[0]

    def rate(self) -> Fraction:
        """Events per second."""
        return Fraction(self.count) / Fraction(self.interval)

    def intrate(self) -> int:
        return math.ceil(self.rate())

    def recent_name(self, default: str) -> str:
        if 'name' in self:
            return f'user:{self["name"]}'
        return default

    def hashlimit_rate(self) -> str:
        """Return the rate in the coarsest unit that keeps it integral."""
        rate = self.rate()
        for unit, seconds in _RATE_UNITS:
            value = rate * seconds
            if unit == 'day':
                return f'{math.ceil(value)}/{unit}'
            if value >= 1 and value.denominator == 1:
                return f'{value}/{unit}'
        raise AssertionError('unreachable')

    def limitofrags(self, name: str, above: bool = False) -> list[OptFrag]:
        """Return hashlimit fragments matching traffic within the limit.

        With *above*, the fragments match traffic exceeding the limit.
        """
        res = []
        for family in self.context.families:
            match = [
                '-m hashlimit',
                f'--hashlimit-{"above" if above else "upto"} {self.hashlimit_rate()}',
                f'--hashlimit-burst {format_number(self.count)}',
            ]
            fmask = self['mask'][family]
            modes = [attr for attr in ('src', 'dest') if fmask[attr]]
            if modes:
                match.append(
                    '--hashlimit-mode ' + ','.join(_HASHLIMIT_MODES[m] for m in modes)
                )
                match.extend(f'{_HASHLIMIT_MASKS[m]} {fmask[m]}' for m in modes)
            match.append(f'--hashlimit-name {name}')
            res.append(OptFrag(family=family, match=tuple(match)))
        return res
