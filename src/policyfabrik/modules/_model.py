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

"""Core object sections referenced by all other modules."""

from __future__ import annotations

from policyfabrik.compiler._section import Module, Section
from policyfabrik.model import Log, Service, Zone

MODULE = Module(
    name='model',
    sections=[
        Section('zone', cls=Zone, keyed=True),
        Section('service', cls=Service, keyed=True),
        Section('log', cls=Log, keyed=True),
        # Consumed as raw data by the compiler
        Section('ipset', keyed=True),
        Section('custom', keyed=True),
    ],
    core=True,
)
