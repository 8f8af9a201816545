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

"""Typed option schema with shared defaults.

:class:`CompilerDefaults` is the single source of truth for which
options exist, their types and their default values.
"""

import dataclasses
from collections.abc import Mapping
from typing import Any

from policyfabrik.core._errors import PolicyError
from policyfabrik.core.options._keys import CompilerOption

_BOOL_STRINGS = {'true': True, 'yes': True, '1': True, 'false': False, 'no': False, '0': False}


@dataclasses.dataclass
class CompilerDefaults:
    """Default values for compiler options."""

    ipv4: bool = True
    ipv6: bool = True

    # The recent match keeps a bounded hit list per address
    recent_max_count: int = 20

    filter_chain_policy: str = 'DROP'

    # 'log', 'nflog', 'ulog' or 'none'
    log_mode: str = 'log'
    log_level: str = ''

    @property
    def families(self) -> tuple[str, ...]:
        res = []
        if self.ipv4:
            res.append('inet')
        if self.ipv6:
            res.append('inet6')
        return tuple(res)

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any] | None) -> 'CompilerDefaults':
        """Build options from a raw mapping, coercing value types.

        Unknown keys and uncoercible values are configuration errors.
        """
        from policyfabrik.core.options._migration import migrate_options

        fields = {f.name: f for f in dataclasses.fields(cls)}
        values = {}
        for key, value in migrate_options(options).items():
            if key not in fields:
                raise PolicyError(f'Unknown option: {key}', 'options')
            values[key] = _coerce(key, value, type(fields[key].default))
        result = cls(**values)
        if not result.families:
            raise PolicyError('Both IPv4 and IPv6 are disabled', 'options')
        return result

    def get(self, key: CompilerOption) -> Any:
        return getattr(self, str(key))


def _coerce(key: str, value: Any, col_type: type) -> Any:
    if col_type is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in _BOOL_STRINGS:
            return _BOOL_STRINGS[value.lower()]
    elif col_type is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
    elif col_type is str and isinstance(value, str):
        return value
    raise PolicyError(f'Invalid value for option {key}: {value!r}', 'options')


COMPILER_DEFAULTS = CompilerDefaults()
