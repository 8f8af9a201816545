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

"""Zones: named sets of interfaces and addresses."""

from __future__ import annotations

from policyfabrik.compiler._optfrag import OptFrag, combine
from policyfabrik.model._base import ConfigObject, as_list

# Pseudo zone denoting the firewall host itself
FW_ZONE = '_fw'

_DIRECTIONS = {
    'in': ('-i', '-s'),
    'out': ('-o', '-d'),
}


class Zone(ConfigObject):
    """Zone selector with optional ``iface`` and ``addr`` lists.

    ``route-back`` allows traffic to be forwarded back out of the
    interface it arrived on.
    """

    attributes = frozenset({'iface', 'addr', 'route-back'})

    def ifaces(self) -> list[str]:
        return [str(iface) for iface in as_list(self.get('iface'))]

    def optfrags(self, direction: str, ifaces=None) -> list[OptFrag]:
        """Return match fragments for traffic entering or leaving the zone.

        *ifaces* restricts the interface list; ``False`` suppresses
        interface matches, for chains that cannot see that direction.
        """
        iopt, aopt = _DIRECTIONS[direction]

        if ifaces is None:
            ifaces = self.ifaces()
        iofrags = None
        if ifaces:
            iofrags = [OptFrag(match=f'{iopt} {iface}') for iface in ifaces]

        aofrags = None
        if 'addr' in self:
            aofrags = []
            for hostdef in as_list(self['addr']):
                for family, addr in self.context.hosts.resolve(hostdef, self):
                    aofrags.append(OptFrag(family=family, match=f'{aopt} {addr}'))

        if iofrags is None and aofrags is None:
            return [OptFrag()]
        return combine(iofrags, aofrags)
