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

"""Unit tests for rate limits: netmasks and strategy selection."""

import ipaddress

import pytest

from policyfabrik.compiler import OptFrag
from policyfabrik.core import PolicyError
from policyfabrik.model import inet6_mask, inet_mask
from policyfabrik.modules._filter import FilterLimit


def _limit(context, **attrs):
    return FilterLimit.morph(attrs, context, 'limit')


class TestNetmask:
    @pytest.mark.parametrize(
        ('length', 'expected'),
        [
            (0, '0.0.0.0'),
            (8, '255.0.0.0'),
            (20, '255.255.240.0'),
            (24, '255.255.255.0'),
            (31, '255.255.255.254'),
            (32, '255.255.255.255'),
        ],
    )
    def test_inet(self, length, expected):
        assert inet_mask(length) == expected

    def test_inet6_full(self):
        mask = inet6_mask(128)
        assert mask == 'ffff:ffff:ffff:ffff:ffff:ffff:ffff:ffff'
        assert ipaddress.IPv6Address(mask) == ipaddress.IPv6Network('::/128').netmask

    def test_inet6_64(self):
        assert inet6_mask(64) == 'ffff:ffff:ffff:ffff::'

    @pytest.mark.parametrize('length', [0, 1, 7, 48, 56, 63, 64, 65, 127])
    def test_inet6_matches_ipaddress(self, length):
        expected = ipaddress.IPv6Network(f'::/{length}').netmask
        assert ipaddress.IPv6Address(inet6_mask(length)) == expected


class TestLimitAttributes:
    def test_defaults(self, context):
        limit = _limit(context)
        assert limit.count == 1
        assert limit.interval == 1
        assert limit['addr'] == 'src'
        assert limit.maskmode('inet') == ('src', 32)
        assert limit.maskmode('inet6') == ('src', 128)

    def test_dest_mask(self, context):
        limit = _limit(context, addr='dest', mask={'inet': {'dest': 24}})
        assert limit.maskmode('inet') == ('dest', 24)
        assert limit.maskmode('inet6') == ('dest', 128)

    def test_two_addresses_have_no_mask_mode(self, context):
        limit = _limit(context, mask={'inet': {'src': 32, 'dest': 32}})
        assert limit.maskmode('inet') is None

    def test_invalid_count(self, context):
        with pytest.raises(PolicyError, match='Invalid limit count'):
            _limit(context, count=0)

    def test_invalid_attribute(self, context):
        with pytest.raises(PolicyError, match='Invalid attribute: burst'):
            _limit(context, burst=5)

    def test_intrate_rounds_up(self, context):
        assert _limit(context, count=150).intrate() == 150
        assert _limit(context, count=10, interval=3).intrate() == 4

    def test_recent_name(self, context):
        assert _limit(context).recent_name('limit-0') == 'limit-0'
        assert _limit(context, name='ssh').recent_name('limit-0') == 'user:ssh'


class TestStrategySelection:
    def test_small_count_selects_recent(self, context):
        res = _limit(context, count=10).recentofrags('limit-0')
        assert res is not None

        uofs, sofs = res
        assert [o.family for o in uofs] == ['inet', 'inet6']
        assert uofs[0].match_text == (
            '-m recent --name limit-0 --rsource --mask 255.255.255.255 '
            '--update --hitcount 10 --seconds 1'
        )
        assert sofs[0].match_text == (
            '-m recent --name limit-0 --rsource --mask 255.255.255.255 --set'
        )
        assert sofs[1].match_text == (
            '-m recent --name limit-0 --rsource '
            '--mask ffff:ffff:ffff:ffff:ffff:ffff:ffff:ffff --set'
        )

    def test_count_above_cap_selects_fallback(self, context):
        assert _limit(context, count=25).recentofrags('limit-0') is None

    def test_high_rate_selects_fallback(self, context):
        limit = _limit(context, count=150)
        assert limit.recentofrags('limit-0') is None
        assert limit.intrate() == 150

    def test_count_above_cap_with_slow_interval_uses_rate(self, context):
        # 30 per 10 seconds is 3 per second
        uofs, _ = _limit(context, count=30, interval=10).recentofrags('limit-0')
        assert uofs[0].match[-1] == '--update --hitcount 3 --seconds 1'

    def test_mask_without_mode_selects_fallback(self, context):
        limit = _limit(context, count=5, mask={'inet': {'src': 0}})
        assert limit.recentofrags('limit-0') is None

    def test_cap_is_configurable(self):
        from policyfabrik.compiler import CompilationContext
        from policyfabrik.core.options import CompilerDefaults

        context = CompilationContext(options=CompilerDefaults(recent_max_count=5))
        assert _limit(context, count=10).recentofrags('limit-0') is None

    def test_check_only(self, ipv4_context):
        uofs, sofs = _limit(ipv4_context, count=3, name='A', update=False).recentofrags(
            'limit-0'
        )
        assert uofs[0].match_text == (
            '-m recent --name user:A --rsource --mask 255.255.255.255 '
            '--rcheck --hitcount 3 --seconds 1'
        )
        assert sofs == [OptFrag(family='inet')]


class TestHashlimit:
    def test_rate_per_second(self, ipv4_context):
        (ofrag,) = _limit(ipv4_context, count=150).limitofrags('limit-0')
        assert ofrag.family == 'inet'
        assert ofrag.match_text == (
            '-m hashlimit --hashlimit-upto 150/second --hashlimit-burst 150 '
            '--hashlimit-mode srcip --hashlimit-srcmask 32 --hashlimit-name limit-0'
        )

    def test_above(self, ipv4_context):
        (ofrag,) = _limit(ipv4_context, count=150).limitofrags('limit-0', above=True)
        assert ofrag.match[1] == '--hashlimit-above 150/second'

    @pytest.mark.parametrize(
        ('count', 'interval', 'expected'),
        [
            (150, 1, '150/second'),
            (150, 60, '150/minute'),
            (180, 60, '3/second'),
            (25, 3600, '25/hour'),
            (7, 86400 * 3, '3/day'),
        ],
    )
    def test_rate_units(self, ipv4_context, count, interval, expected):
        assert _limit(ipv4_context, count=count, interval=interval).hashlimit_rate() == expected

    def test_no_address_mode(self, ipv4_context):
        limit = _limit(ipv4_context, count=50, mask={'inet': {'src': 0}})
        (ofrag,) = limit.limitofrags('limit-0')
        assert '--hashlimit-mode' not in ofrag.match_text
