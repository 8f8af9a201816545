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

"""ConfigObject: base class of all morphed policy objects.

A declarative object arrives from the policy document as a plain
mapping.  ``SomeClass.morph(raw, context, location)`` validates its keys
against the attributes the class (and its bases) accept and returns an
instance that keeps the attribute record in ``attrs`` and adds the
class's behavior on top of it.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, ClassVar

from policyfabrik.core._errors import PolicyError

if TYPE_CHECKING:
    from policyfabrik.compiler._context import CompilationContext


def as_list(value) -> list:
    """Return *value* as a list; None becomes an empty list."""
    if value is None:
        return []
    if isinstance(value, list | tuple):
        return list(value)
    return [value]


def values(objs) -> list:
    """Return the objects of a section, which is either a list or a mapping."""
    if objs is None:
        return []
    if isinstance(objs, Mapping):
        return list(objs.values())
    return list(objs)


def format_number(value) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


class ConfigObject:
    """Policy object with an attribute record and a source location."""

    # Attribute keys accepted in addition to those of the base classes
    attributes: ClassVar[frozenset[str]] = frozenset()

    def __init__(
        self,
        context: CompilationContext,
        location: str,
        attrs: Mapping[str, Any],
        key: Any = None,
    ) -> None:
        self.context = context
        self.location = location
        self.key = key
        self.attrs: dict[str, Any] = dict(attrs)
        self._uniqueids: dict[str, str] = {}

        unknown = sorted(str(k) for k in set(self.attrs) - self.known_attributes())
        if unknown:
            self.error(f'Invalid attribute: {unknown[0]}')
        self.init()

    @classmethod
    def known_attributes(cls) -> frozenset[str]:
        known: set[str] = set()
        for klass in cls.__mro__:
            known.update(vars(klass).get('attributes', ()))
        return frozenset(known)

    @classmethod
    def morph(
        cls,
        raw: Any,
        context: CompilationContext,
        location: str,
        key: Any = None,
    ) -> ConfigObject:
        """Create an instance of *cls* from a raw mapping or another object."""
        if isinstance(raw, ConfigObject):
            raw = raw.attrs
        if not isinstance(raw, Mapping):
            raise PolicyError('Object must be a mapping', location)
        return cls(context, location, raw, key=key)

    def init(self) -> None:
        """Validate and normalize attributes. Extended by subclasses."""

    # -- Attribute record access --

    def get(self, name: str, default: Any = None) -> Any:
        return self.attrs.get(name, default)

    def __getitem__(self, name: str) -> Any:
        return self.attrs[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.attrs[name] = value

    def __contains__(self, name: str) -> bool:
        return self.attrs.get(name) is not None

    @property
    def root(self) -> dict[str, Any]:
        """Object map of the current compilation."""
        return self.context.objects

    # -- Helpers --

    def error(self, msg: str) -> None:
        self.context.error(self.location, msg)

    def warning(self, msg: str) -> None:
        self.context.warning(self.location, msg)

    def create(self, cls: type, attrs: Mapping[str, Any], label: str) -> Any:
        """Morph *attrs* into a helper object derived from this one."""
        return cls.morph(attrs, self.context, f'{self.location} {label}')

    def uniqueid(self, key: str) -> str:
        """Return a chain name unique to this object for *key*."""
        if key not in self._uniqueids:
            self._uniqueids[key] = self.context.uniqueid(key)
        return self._uniqueids[key]

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.location}>'
