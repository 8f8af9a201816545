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

"""Legacy key migration for backward compatibility.

Older policy files spell option keys with hyphens
(``recent-max-count``).  They are mapped to their canonical keys on
load, so the compiler only ever sees canonical keys.
"""

from policyfabrik.core.options._keys import CompilerOption

LEGACY_KEY_MAP: dict[str, str] = {
    'recent-max-count': CompilerOption.RECENT_MAX_COUNT,
    'filter-chain-policy': CompilerOption.FILTER_CHAIN_POLICY,
    'log-mode': CompilerOption.LOG_MODE,
    'log-level': CompilerOption.LOG_LEVEL,
}


def migrate_options(options: dict | None) -> dict:
    """Return a new dict with legacy keys replaced by canonical keys.

    If both a legacy and a canonical key are present, the canonical one
    wins.
    """
    if not options:
        return {}

    result = {}
    for key, value in options.items():
        canonical_key = LEGACY_KEY_MAP.get(key, key)
        if canonical_key in result and canonical_key != key:
            continue
        result[str(canonical_key)] = value
    return result


def get_canonical_key(key: str) -> str:
    """Return the canonical key for a possibly-legacy key."""
    return LEGACY_KEY_MAP.get(key, key)
