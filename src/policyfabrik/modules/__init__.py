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

"""Built-in section providers.

Each module exports a :class:`~policyfabrik.compiler.Module` describing
the sections it registers.  The model module holds the object sections
all rule modules refer to.
"""

from ._filter import MODULE as FILTER_MODULE
from ._model import MODULE as MODEL_MODULE
from ._nat import MODULE as NAT_MODULE
from ._notrack import MODULE as NOTRACK_MODULE

MODULES = [MODEL_MODULE, FILTER_MODULE, NAT_MODULE, NOTRACK_MODULE]

__all__ = [
    'FILTER_MODULE',
    'MODEL_MODULE',
    'MODULES',
    'NAT_MODULE',
    'NOTRACK_MODULE',
]
