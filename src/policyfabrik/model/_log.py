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

"""Log classes: how matching packets are logged.

Logs are declared in the ``log`` section and referenced by name from
rules and limits.  ``log: true`` selects the default log, which is
``log._default`` when the policy declares one and is otherwise built from
the ``log_mode``/``log_level`` compiler options.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from policyfabrik.compiler._optfrag import OptFrag
from policyfabrik.model._base import ConfigObject, format_number

logger = logging.getLogger(__name__)

DEFAULT_LOG = '_default'

# mode -> (target, {attribute: option})
LOG_MODES = {
    'log': ('LOG', {'prefix': '--log-prefix', 'level': '--log-level'}),
    'nflog': (
        'NFLOG',
        {
            'group': '--nflog-group',
            'prefix': '--nflog-prefix',
            'range': '--nflog-range',
            'threshold': '--nflog-threshold',
        },
    ),
    'ulog': (
        'ULOG',
        {
            'group': '--ulog-nlgroup',
            'prefix': '--ulog-prefix',
            'range': '--ulog-cprange',
            'threshold': '--ulog-qthreshold',
        },
    ),
    'none': (None, {}),
}


class Log(ConfigObject):
    attributes = frozenset(
        {
            'mode',
            'prefix',
            'level',
            'limit',
            'every',
            'probability',
            'group',
            'range',
            'threshold',
        }
    )

    def init(self) -> None:
        # Numeric names would clash with per-rule chains such as logdrop-0
        if self.key is not None and str(self.key).isdigit():
            self.error(f'Invalid log name: {self.key}')
        self.attrs.setdefault('mode', self.context.options.log_mode)
        if self['mode'] not in LOG_MODES:
            self.error(f'Invalid logging mode: {self["mode"]}')
        if 'every' in self and 'probability' in self:
            self.error('Cannot specify both every and probability')

    @property
    def name(self) -> str | None:
        """Log class name; '' for the default log, None for inline logs."""
        return self.key

    @property
    def enabled(self) -> bool:
        return self['mode'] != 'none'

    def optfrags(self) -> list[OptFrag]:
        target, options = LOG_MODES[self['mode']]
        if target is None:
            return []

        match = []
        if 'every' in self:
            match.append(f'-m statistic --mode nth --every {self["every"]} --packet 0')
        elif 'probability' in self:
            match.append(
                f'-m statistic --mode random --probability {self["probability"]}'
            )
        if 'limit' in self:
            match.append(f'-m limit --limit {format_number(self["limit"])}/second')

        for attr, option in options.items():
            if attr not in self:
                continue
            value = self[attr]
            if attr == 'prefix':
                value = f'"{value}"'
            target += f' {option} {value}'

        return [OptFrag(match=tuple(match), target=target)]

    @classmethod
    def default(cls, rule: ConfigObject) -> Log:
        context = rule.context
        if context.default_log is None:
            logs = rule.root.get('log') or {}
            if DEFAULT_LOG in logs:
                log = cls.lookup(rule, DEFAULT_LOG)
            else:
                attrs = {'mode': context.options.log_mode}
                if context.options.log_level:
                    attrs['level'] = context.options.log_level
                log = cls.morph(attrs, context, 'default log')
            log.key = ''
            context.default_log = log
        return context.default_log

    @classmethod
    def lookup(cls, rule: ConfigObject, name: str) -> Log:
        logs = rule.root.get('log') or {}
        if name not in logs:
            rule.error(f'Invalid log: {name}')
        log = logs[name]
        if not isinstance(log, Log):
            log = logs[name] = cls.morph(log, rule.context, f'log {name}', key=name)
        return log

    @classmethod
    def get(cls, rule: ConfigObject, spec: Any, default: Any) -> Log | None:
        """Resolve a rule's log directive into a :class:`Log` or None.

        *spec* is a log name, an inline mapping, True (default log), False
        (no logging) or None, in which case *default* applies.
        """
        if spec is None:
            spec = default
        if spec is None or spec is False:
            return None

        if isinstance(spec, Log):
            log = spec
        elif spec is True:
            log = cls.default(rule)
        elif isinstance(spec, Mapping):
            log = rule.create(cls, spec, 'log')
        elif spec == 'none':
            return None
        else:
            log = cls.lookup(rule, str(spec))

        return log if log.enabled else None
