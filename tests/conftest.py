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

"""Shared pytest fixtures for policy compilation tests."""

import textwrap

import pytest

from policyfabrik.compiler import CompilationContext, Compiler
from policyfabrik.core import PolicyReader
from policyfabrik.core.options import CompilerDefaults
from policyfabrik.modules import MODULES

# Host names known to the fake resolver
HOSTS = {
    'web.example.com': [('inet', '192.0.2.10'), ('inet6', '2001:db8::10')],
    'dual.example.com': [('inet', '192.0.2.20'), ('inet', '192.0.2.21')],
    'v6only.example.com': [('inet6', '2001:db8::30')],
}


def fake_resolver(name):
    if name not in HOSTS:
        raise OSError(f'unknown host {name}')
    return list(HOSTS[name])


def compile_text(text, **kwargs):
    """Compile a YAML policy given as (indented) text."""
    policy = PolicyReader().parse_string(textwrap.dedent(text), 'test')
    kwargs.setdefault('resolver', fake_resolver)
    return Compiler(policy, **kwargs)


def chain_rules(compiler, chain, family='inet', table='filter'):
    """Return the rule texts of one chain."""
    return [rule.text for rule in compiler.iptables.rules(family, table, chain)]


# Rules every compilation adds to the builtin filter chains
BUILTIN_RULES = frozenset(
    {
        '-m conntrack --ctstate ESTABLISHED -j ACCEPT',
        '-i lo -j ACCEPT',
        '-o lo -j ACCEPT',
        '-p icmp -j icmp-routing',
        '-p icmpv6 -j ACCEPT',
        '-p icmpv6 -j icmp-routing',
    }
)


def policy_rules(compiler, chain, family='inet', table='filter'):
    """Return the rule texts of one chain, without the builtin rules."""
    rules = chain_rules(compiler, chain, family, table)
    return [text for text in rules if text not in BUILTIN_RULES]


@pytest.fixture
def context():
    """Compilation context with all built-in modules and default options."""
    return CompilationContext(MODULES, options=CompilerDefaults(), resolver=fake_resolver)


@pytest.fixture
def ipv4_context():
    return CompilationContext(
        MODULES, options=CompilerDefaults(ipv6=False), resolver=fake_resolver
    )
