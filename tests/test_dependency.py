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

"""Unit tests for section ordering."""

import pytest

from policyfabrik.compiler import (
    MODULES_LOADED,
    CompilationContext,
    DependencyError,
    Module,
    Section,
    resolve,
)
from policyfabrik.modules import MODULES


def _sections(*sections):
    return {section.name: section for section in sections}


class TestResolve:
    def test_before_and_after(self):
        order = resolve(
            _sections(
                Section('a', after=['c']),
                Section('b', before=['c']),
                Section('c'),
            )
        )
        assert order.index('b') < order.index('c') < order.index('a')

    def test_unconstrained_names_are_lexical(self):
        assert resolve(_sections(Section('z'), Section('m'), Section('a'))) == ['a', 'm', 'z']

    def test_deterministic(self):
        sections = _sections(
            Section('filter', before=['dnat']),
            Section('%x', before=['filter']),
            Section('dnat'),
            Section('policy', after=['%y']),
            Section('%y', after=['filter']),
        )
        assert resolve(sections) == resolve(sections)

    def test_unknown_names_are_ignored(self):
        assert resolve(_sections(Section('a', before=['missing']))) == ['a']

    def test_cycle_fails(self):
        with pytest.raises(DependencyError) as exc:
            resolve(_sections(Section('a', before=['b']), Section('b', before=['a'])))
        assert exc.value.cycle == ['a', 'b', 'a']
        assert 'Circular ordering directives: a -> b -> a' in str(exc.value)

    def test_longer_cycle(self):
        with pytest.raises(DependencyError) as exc:
            resolve(
                _sections(
                    Section('a', after=['c']),
                    Section('b', after=['a']),
                    Section('c', after=['b']),
                )
            )
        assert set(exc.value.cycle) == {'a', 'b', 'c'}


class TestBuiltinOrder:
    def test_builtin_module_order(self):
        order = CompilationContext(MODULES).order

        for core in ('zone', 'service', 'log'):
            assert order.index(core) < order.index(MODULES_LOADED)
        assert order.index(MODULES_LOADED) < order.index('%filter-before')
        assert order.index('%filter-before') < order.index('filter')
        assert order.index('filter') < order.index('%filter-after')
        assert order.index('%filter-after') < order.index('policy')
        assert order.index('filter') < order.index('dnat')
        assert order.index('filter') < order.index('no-track')

    def test_duplicate_section_is_rejected(self):
        from policyfabrik.core import PolicyError

        duplicate = Module('dup', sections=[Section('filter')])
        with pytest.raises(PolicyError, match='Duplicate section: filter'):
            CompilationContext([*MODULES, duplicate])

    def test_uniqueid(self):
        context = CompilationContext()
        assert context.uniqueid('limit') == 'limit-0'
        assert context.uniqueid('limit') == 'limit-1'
        assert context.uniqueid('logdrop') == 'logdrop-0'
