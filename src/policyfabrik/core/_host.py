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

"""Host name resolution for zone and rule address selectors.

Literal IPv4/IPv6 addresses and networks are parsed with
:mod:`ipaddress`.  Anything else is looked up through a pluggable
resolver callable, ``socket.getaddrinfo`` by default.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
from collections.abc import Callable

logger = logging.getLogger(__name__)

# resolver(name) -> [(family, address), ...]
Resolver = Callable[[str], list[tuple[str, str]]]

FAMILIES = {4: 'inet', 6: 'inet6'}


def parse_literal(hostdef: str) -> tuple[str, str] | None:
    """Return (family, address) for a literal address or network."""
    try:
        if '/' in hostdef:
            net = ipaddress.ip_network(hostdef, strict=False)
            return FAMILIES[net.version], str(net)
        addr = ipaddress.ip_address(hostdef)
    except ValueError:
        return None
    return FAMILIES[addr.version], str(addr)


def getaddrinfo_resolver(name: str) -> list[tuple[str, str]]:
    """Resolve *name* via DNS. Raises OSError on lookup failure."""
    infos = socket.getaddrinfo(name, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    result = []
    for info in infos:
        family = {socket.AF_INET: 'inet', socket.AF_INET6: 'inet6'}.get(info[0])
        if family:
            result.append((family, info[4][0]))
    return result


class HostResolver:
    """Caching resolver used by one compilation run."""

    def __init__(self, resolver: Resolver | None = None) -> None:
        self._resolver: Resolver = resolver or getaddrinfo_resolver
        self._cache: dict[str, list[tuple[str, str]]] = {}

    def resolve(self, hostdef: str, obj) -> list[tuple[str, str]]:
        """Return the sorted, de-duplicated (family, address) pairs of *hostdef*.

        *obj* is the requesting policy object; resolution failures are
        reported through its ``error()`` method.
        """
        hostdef = str(hostdef)
        literal = parse_literal(hostdef)
        if literal:
            return [literal]
        if '/' in hostdef:
            obj.error(f'Invalid network address: {hostdef}')

        if hostdef not in self._cache:
            logger.debug('Resolving host name %s', hostdef)
            try:
                entries = self._resolver(hostdef)
            except OSError:
                obj.error(f'Invalid host name: {hostdef}')
            seen = set()
            pairs = []
            for entry in entries:
                if entry not in seen:
                    seen.add(entry)
                    pairs.append(tuple(entry))
            self._cache[hostdef] = sorted(pairs, key=_sort_key)

        if not self._cache[hostdef]:
            obj.error(f'Invalid host name: {hostdef}')
        return list(self._cache[hostdef])


def _sort_key(pair: tuple[str, str]):
    family, address = pair
    return (family, ipaddress.ip_address(address))
