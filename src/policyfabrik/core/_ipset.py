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

"""Address-set (ipset) definitions produced alongside the rule tree."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from pathlib import Path

from policyfabrik.core._errors import PolicyError

_SET_TYPES = frozenset(
    {
        'bitmap:ip',
        'bitmap:ip,mac',
        'bitmap:port',
        'hash:ip',
        'hash:ip,mark',
        'hash:ip,port',
        'hash:ip,port,ip',
        'hash:ip,port,net',
        'hash:mac',
        'hash:net',
        'hash:net,iface',
        'hash:net,net',
        'hash:net,port',
        'hash:net,port,net',
        'list:set',
    }
)


@dataclasses.dataclass(frozen=True)
class IPSetDefinition:
    """Single address-set definition."""

    name: str
    type: str
    family: str | None = None
    options: tuple[str, ...] = ()

    @property
    def create_command(self) -> str:
        parts = ['create', self.name, self.type]
        if self.family:
            parts.extend(['family', self.family])
        parts.extend(self.options)
        return ' '.join(parts)


class IPSet:
    """Collection of address-set definitions keyed by name."""

    def __init__(self, config: Mapping | None = None) -> None:
        self.definitions: dict[str, IPSetDefinition] = {}
        for name, params in sorted((config or {}).items()):
            self.definitions[name] = _definition(name, params)

    def __iter__(self):
        return iter(self.definitions.values())

    def __len__(self) -> int:
        return len(self.definitions)

    def __contains__(self, name: str) -> bool:
        return name in self.definitions

    def print(self) -> str:
        return ''.join(f'{d.create_command}\n' for d in self)

    def dump(self, prefix: str | Path) -> list[Path]:
        """Write one ``<prefix><name>`` file per set and return the paths."""
        paths = []
        for d in self:
            path = Path(f'{prefix}{d.name}')
            path.write_text(f'{d.create_command}\n', encoding='utf-8')
            paths.append(path)
        return paths


def _definition(name: str, params) -> IPSetDefinition:
    location = f'ipset {name}'
    params = getattr(params, 'attrs', params)
    if not isinstance(params, Mapping):
        raise PolicyError('Invalid ipset definition', location)
    set_type = params.get('type')
    if set_type not in _SET_TYPES:
        raise PolicyError(f'Invalid ipset type: {set_type}', location)
    family = params.get('family')
    if family is not None and family not in ('inet', 'inet6'):
        raise PolicyError(f'Invalid ipset family: {family}', location)
    if family is None and set_type.startswith('hash:') and 'mac' not in set_type:
        raise PolicyError('Family must be defined for hash sets', location)
    options = params.get('options') or []
    if isinstance(options, str):
        options = options.split()
    return IPSetDefinition(name, set_type, family, tuple(str(o) for o in options))
