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

"""Typed option keys and schema for compiler configuration.

Usage in the compiler::

    from policyfabrik.core.options import CompilerOption

    cap = context.options.get(CompilerOption.RECENT_MAX_COUNT)
"""

from policyfabrik.core.options._keys import CompilerOption
from policyfabrik.core.options._migration import (
    get_canonical_key,
    migrate_options,
)
from policyfabrik.core.options._schemas import (
    COMPILER_DEFAULTS,
    CompilerDefaults,
)

__all__ = [
    'COMPILER_DEFAULTS',
    'CompilerDefaults',
    'CompilerOption',
    'get_canonical_key',
    'migrate_options',
]
