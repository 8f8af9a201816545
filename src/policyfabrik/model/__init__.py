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

"""Policy object model: zones, services, logs, limits and rules."""

from ._base import ConfigObject, as_list, values
from ._limit import Limit, inet6_mask, inet_mask, netmask
from ._log import Log
from ._rules import (
    IFACE_DIRECTIONS,
    LoggingRule,
    RelatedRule,
    Rule,
    TranslatingRule,
)
from ._services import Service, ServiceDefinition
from ._zones import FW_ZONE, Zone

__all__ = [
    'FW_ZONE',
    'IFACE_DIRECTIONS',
    'ConfigObject',
    'Limit',
    'Log',
    'LoggingRule',
    'RelatedRule',
    'Rule',
    'Service',
    'ServiceDefinition',
    'TranslatingRule',
    'Zone',
    'as_list',
    'inet6_mask',
    'inet_mask',
    'netmask',
    'values',
]
