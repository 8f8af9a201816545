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

"""No-track module: exempt traffic from connection tracking."""

from __future__ import annotations

from policyfabrik.compiler._section import Module, Section
from policyfabrik.model import Rule


class NoTrackRule(Rule):
    table_name = 'raw'
    chain_map = {'INPUT': 'PREROUTING', 'FORWARD': 'PREROUTING', 'OUTPUT': 'OUTPUT'}

    def target(self) -> str | None:
        return 'CT --notrack'


MODULE = Module(
    name='notrack',
    sections=[Section('no-track', cls=NoTrackRule)],
)
