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

"""Policy document reader.

Loads one or more YAML (or JSON, which is a YAML subset) policy files
and merges them into a single :class:`PolicyConfig`.  List sections
(e.g. ``filter``) are concatenated in load order; mapping sections
(e.g. ``zone``) are merged by key, later files overriding earlier ones.
"""

from __future__ import annotations

import dataclasses
import logging
import pathlib
from collections.abc import Iterable

import yaml

from policyfabrik.core._errors import PolicyError

logger = logging.getLogger(__name__)

POLICY_SUFFIXES = ('.json', '.yaml', '.yml')

# Top-level keys that are not object sections
OPTIONS_KEY = 'options'
_IGNORED_KEYS = frozenset({'description'})


@dataclasses.dataclass
class PolicyConfig:
    """Merged policy: raw objects per section, their sources, and options."""

    objects: dict = dataclasses.field(default_factory=dict)
    source: dict = dataclasses.field(default_factory=dict)
    options: dict = dataclasses.field(default_factory=dict)

    def expand(self) -> dict:
        """Return a fresh copy of the section objects for one compilation."""
        result = {}
        for section, objs in self.objects.items():
            result[section] = list(objs) if isinstance(objs, list) else dict(objs)
        return result

    def add(self, data: dict, source: str) -> None:
        """Merge one parsed policy document."""
        if data is None:
            return
        if not isinstance(data, dict):
            raise PolicyError('Policy document must be a mapping', source)

        for section, value in data.items():
            if section in _IGNORED_KEYS:
                continue
            if section == OPTIONS_KEY:
                if not isinstance(value, dict):
                    raise PolicyError('Options must be a mapping', source)
                self.options.update(value)
                continue
            self._add_section(str(section), value, source)

    def _add_section(self, section: str, value, source: str) -> None:
        sources = self.source.setdefault(section, {})
        if isinstance(value, list):
            objs = self.objects.setdefault(section, [])
            if not isinstance(objs, list):
                raise PolicyError(f'Section {section} must be a mapping', source)
            for item in value:
                sources[len(objs)] = source
                objs.append(item)
        elif isinstance(value, dict):
            objs = self.objects.setdefault(section, {})
            if not isinstance(objs, dict):
                raise PolicyError(f'Section {section} must be a list', source)
            for key, item in value.items():
                if key in objs:
                    logger.debug('%s: overriding %s %s', source, section, key)
                sources[key] = source
                objs[key] = item
        else:
            raise PolicyError(f'Invalid section: {section}', source)


class PolicyReader:
    """Parses policy files into a :class:`PolicyConfig`."""

    def __init__(self) -> None:
        self._config = PolicyConfig()

    def parse(self, paths: Iterable[str | pathlib.Path]) -> PolicyConfig:
        self._config = PolicyConfig()
        for path in paths:
            path = pathlib.Path(path)
            if path.is_dir():
                for child in sorted(path.iterdir()):
                    if child.suffix in POLICY_SUFFIXES and child.is_file():
                        self._load(child)
            else:
                self._load(path)
        return self._config

    def parse_string(self, text: str, source: str = '<string>') -> PolicyConfig:
        self._config = PolicyConfig()
        self._config.add(_safe_load(text, source), source)
        return self._config

    def _load(self, path: pathlib.Path) -> None:
        logger.debug('Loading policy from %s', path)
        try:
            with pathlib.Path.open(path, encoding='utf-8') as f:
                text = f.read()
        except OSError as e:
            raise PolicyError(f'Cannot read policy file: {e.strerror}', str(path)) from e
        self._config.add(_safe_load(text, str(path)), path.name)


def _safe_load(text: str, source: str):
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise PolicyError(f'Invalid policy document: {e}', source) from e
