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

"""Canonical compiler option keys using StrEnum.

Keys are used directly as dict keys in the policy document's top-level
``options`` mapping::

    options:
      recent_max_count: 20
      ipv6: false
"""

from enum import StrEnum


class CompilerOption(StrEnum):
    """Policy-wide compiler option keys."""

    # Address families to generate rules for
    IPV4 = 'ipv4'
    IPV6 = 'ipv6'

    # Highest per-address count handled by the recent match
    RECENT_MAX_COUNT = 'recent_max_count'

    # Policy of the builtin chains of the filter table
    FILTER_CHAIN_POLICY = 'filter_chain_policy'

    # Default log class
    LOG_MODE = 'log_mode'
    LOG_LEVEL = 'log_level'
