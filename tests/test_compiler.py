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

"""Tests for rule tree assembly: builtin rules, auxiliary chains, NAT."""

import pytest

from policyfabrik.compiler import Compiler, CompilerStatus, OptFrag
from policyfabrik.core import PolicyError, PolicyReader
from policyfabrik.core.options import CompilerDefaults

from .conftest import chain_rules, compile_text, policy_rules

ZONES = """
options:
  ipv6: false
zone:
  A: {iface: eth0}
  B: {iface: eth1}
service:
  http: {proto: tcp, port: 80}
  ftp: {proto: tcp, port: 21, ct-helper: ftp}
"""


class TestBuiltinRules:
    def test_stateful_rules(self):
        c = compile_text('options: {ipv6: false}')
        assert chain_rules(c, 'INPUT') == [
            '-m conntrack --ctstate ESTABLISHED -j ACCEPT',
            '-i lo -j ACCEPT',
            '-p icmp -j icmp-routing',
        ]
        assert chain_rules(c, 'OUTPUT') == [
            '-m conntrack --ctstate ESTABLISHED -j ACCEPT',
            '-o lo -j ACCEPT',
            '-p icmp -j icmp-routing',
        ]
        assert chain_rules(c, 'FORWARD') == [
            '-m conntrack --ctstate ESTABLISHED -j ACCEPT',
            '-p icmp -j icmp-routing',
        ]

    def test_icmp_routing(self):
        c = compile_text('options: {ipv6: false}')
        assert chain_rules(c, 'icmp-routing') == [
            '-p icmp --icmp-type 3 -j ACCEPT',
            '-p icmp --icmp-type 11 -j ACCEPT',
            '-p icmp --icmp-type 12 -j ACCEPT',
        ]

    def test_icmpv6(self):
        c = compile_text('')
        assert chain_rules(c, 'INPUT', family='inet6')[-1] == '-p icmpv6 -j ACCEPT'
        assert chain_rules(c, 'FORWARD', family='inet6')[-1] == '-p icmpv6 -j icmp-routing'
        assert chain_rules(c, 'icmp-routing', family='inet6') == [
            f'-p icmpv6 --icmpv6-type {t} -j ACCEPT' for t in (1, 2, 3, 4)
        ]

    def test_ipv6_disabled(self):
        c = compile_text('options: {ipv6: false}')
        assert c.iptables.families() == ['inet']

    def test_ipv4_disabled(self):
        c = compile_text('options: {ipv4: false}')
        assert c.iptables.families() == ['inet6']

    def test_helper_rules(self):
        c = compile_text(ZONES + 'filter:\n  - {in: A, out: _fw, service: ftp}\n')
        for chain in ('PREROUTING', 'OUTPUT'):
            assert chain_rules(c, chain, table='raw') == ['-p tcp --dport 21 -j CT --helper ftp']

    def test_helper_rules_once_per_service(self):
        c = compile_text(
            ZONES
            + 'filter:\n'
            + '  - {in: A, out: _fw, service: ftp}\n'
            + '  - {in: B, out: _fw, service: ftp}\n'
        )
        assert chain_rules(c, 'PREROUTING', table='raw') == [
            '-p tcp --dport 21 -j CT --helper ftp'
        ]


class TestSections:
    def test_unknown_section_warns(self):
        c = compile_text('options: {ipv6: false}\nfoo: {a: 1}\n')
        assert c.warnings == ['foo: Unknown section ignored']
        assert c.context.status == CompilerStatus.FWCOMPILER_WARNING

    def test_no_warnings(self):
        c = compile_text(ZONES + 'filter:\n  - {in: A, out: _fw}\n')
        assert c.warnings == []
        assert c.context.status == CompilerStatus.FWCOMPILER_SUCCESS

    def test_policy_after_filter(self):
        c = compile_text(
            ZONES
            + 'policy:\n  - {in: A, out: B, action: drop, log: false}\n'
            + 'filter:\n  - {in: A, out: B, service: http}\n'
        )
        assert policy_rules(c, 'FORWARD') == [
            '-i eth0 -o eth1 -p tcp --dport 80 -j ACCEPT',
            '-i eth0 -o eth1 -j DROP',
        ]

    def test_rule_count(self):
        c = compile_text('options: {ipv6: false}')
        # 3 ESTABLISHED, 2 loopback, 3 icmp jumps, 3 icmp-routing
        assert len(c.iptables) == 11

    def test_to_dict(self):
        c = compile_text('options: {ipv6: false}')
        tree = c.iptables.to_dict()
        assert tree['inet']['filter']['icmp-routing'][0] == '-p icmp --icmp-type 3 -j ACCEPT'

    def test_explicit_options_override_policy(self):
        policy = PolicyReader().parse_string('options: {ipv6: true}', 'test')
        c = Compiler(policy, options=CompilerDefaults(ipv6=False))
        assert c.iptables.families() == ['inet']

    @pytest.mark.parametrize('section', ['zone', 'service', 'log', 'ipset', 'custom'])
    def test_named_section_must_be_mapping(self, section):
        with pytest.raises(PolicyError, match=f'Section {section} must be a mapping'):
            compile_text(f'{section}:\n  - {{iface: eth0}}\n')

    def test_incomplete_rule_location(self):
        c = compile_text('options: {ipv6: false}')
        with pytest.raises(PolicyError, match='Incomplete rule location'):
            c.insertrules([OptFrag(family='inet', chain='INPUT', target='ACCEPT')])


class TestAuxiliaryChains:
    CUSTOM = """
custom:
  trap:
    - {match: -p tcp, target: DROP}
  empty: []
  v6:
    - {family: inet6, target: DROP}
"""

    def test_custom_chain_inserted_once(self):
        c = compile_text(
            ZONES
            + self.CUSTOM
            + 'filter:\n'
            + '  - {in: A, out: _fw, action: "custom:trap"}\n'
            + '  - {in: B, out: _fw, action: "custom:trap"}\n'
        )
        assert policy_rules(c, 'INPUT') == ['-i eth0 -j custom:trap', '-i eth1 -j custom:trap']
        assert chain_rules(c, 'custom:trap') == ['-p tcp -j DROP']
        assert ('inet', 'filter', 'custom:trap') in c.action_chains

    def test_empty_custom_chain_is_declared(self):
        c = compile_text(ZONES + self.CUSTOM + 'filter:\n  - {in: A, action: "custom:empty"}\n')
        assert c.iptables.tables('inet')['filter']['custom:empty'] == []

    def test_custom_rule_family(self):
        c = compile_text(
            ZONES.replace('ipv6: false', 'ipv6: true')
            + self.CUSTOM
            + 'filter:\n  - {in: A, action: "custom:v6"}\n'
        )
        assert chain_rules(c, 'custom:v6') == []
        assert chain_rules(c, 'custom:v6', family='inet6') == ['-j DROP']

    def test_invalid_custom_rule(self):
        with pytest.raises(PolicyError, match='Invalid attribute: chain') as exc:
            compile_text(
                ZONES
                + 'custom:\n  bad:\n    - {chain: INPUT, target: DROP}\n'
                + 'filter:\n  - {in: A, action: "custom:bad"}\n'
            )
        assert exc.value.location == 'custom bad'

    def test_tarpit_chain_inserted_once_per_family(self):
        c = compile_text(
            ZONES.replace('ipv6: false', 'ipv6: true')
            + 'filter:\n'
            + '  - {in: A, out: _fw, action: tarpit, log: false}\n'
            + '  - {in: B, out: _fw, action: tarpit, log: false}\n'
        )
        for family in ('inet', 'inet6'):
            assert chain_rules(c, 'tarpit', family=family) == ['-p tcp -j TARPIT', '-j DROP']

    def test_each_rule_prepends_to_top(self):
        c = compile_text(
            ZONES
            + 'filter:\n'
            + '  - {in: A, out: _fw, flow-limit: 150}\n'
            + '  - {in: B, out: _fw, flow-limit: 150}\n'
        )
        rules = chain_rules(c, 'INPUT')
        assert rules[:2] == ['-i eth1 -j limit-1', '-i eth0 -j limit-0']


class TestNat:
    def test_masquerade(self):
        c = compile_text(ZONES + 'snat:\n  - {out: B}\n')
        assert chain_rules(c, 'POSTROUTING', table='nat') == ['-o eth1 -j MASQUERADE']

    def test_snat(self):
        c = compile_text(ZONES + 'snat:\n  - {out: B, to-addr: 198.51.100.1}\n')
        assert chain_rules(c, 'POSTROUTING', table='nat') == [
            '-o eth1 -j SNAT --to-source 198.51.100.1'
        ]

    def test_nat_is_ipv4_only(self):
        c = compile_text(ZONES.replace('ipv6: false', 'ipv6: true') + 'snat:\n  - {out: B}\n')
        assert 'nat' not in c.iptables.tables('inet6')

    def test_redirect(self):
        c = compile_text(
            ZONES + 'dnat:\n  - {in: A, dest: 198.51.100.1, to-port: 8080, service: http}\n'
        )
        assert chain_rules(c, 'PREROUTING', table='nat') == [
            '-i eth0 -d 198.51.100.1 -p tcp --dport 80 -j REDIRECT --to-ports 8080'
        ]

    def test_local_dnat(self):
        c = compile_text(ZONES + 'dnat:\n  - {in: _fw, to-addr: 10.0.0.5, service: http}\n')
        assert chain_rules(c, 'OUTPUT', table='nat') == [
            '-p tcp --dport 80 -j DNAT --to-destination 10.0.0.5'
        ]

    def test_dnat_requires_translation(self):
        with pytest.raises(PolicyError, match='Translation address or port required'):
            compile_text(ZONES + 'dnat:\n  - {in: A}\n')


class TestIpset:
    def test_ipset_match_and_definition(self):
        c = compile_text(
            ZONES
            + 'ipset:\n  blocked: {type: "hash:net", family: inet}\n'
            + 'filter:\n  - {in: A, out: _fw, ipset: blocked, action: drop, log: false}\n'
        )
        assert policy_rules(c, 'INPUT') == ['-i eth0 -m set --match-set blocked src -j DROP']
        assert c.ipset.print() == 'create blocked hash:net family inet\n'

    def test_ipset_args(self):
        c = compile_text(
            ZONES
            + 'filter:\n'
            + '  - {in: A, out: _fw, ipset: {name: pairs, args: [src, dst]}}\n'
        )
        assert policy_rules(c, 'INPUT') == [
            '-i eth0 -m set --match-set pairs src,dst -j ACCEPT'
        ]

    def test_invalid_ipset_type(self):
        with pytest.raises(PolicyError, match='Invalid ipset type: hash:foo'):
            compile_text('ipset:\n  x: {type: "hash:foo", family: inet}\n')

    def test_hash_set_requires_family(self):
        with pytest.raises(PolicyError, match='Family must be defined for hash sets'):
            compile_text('ipset:\n  x: {type: "hash:ip"}\n')

    def test_dump(self, tmp_path):
        c = compile_text('ipset:\n  x: {type: "bitmap:port", options: range 0-1024}\n')
        (path,) = c.ipset.dump(tmp_path / 'ipset-')
        assert path.name == 'ipset-x'
        assert path.read_text() == 'create x bitmap:port range 0-1024\n'
