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

"""Exception types for fatal policy configuration errors."""


class PolicyError(Exception):
    """Fatal configuration error, optionally attributed to a policy object.

    *location* identifies the originating object, typically
    ``"<section> <key> (<source file>)"``.
    """

    def __init__(self, message: str, location: str = '') -> None:
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self) -> str:
        if self.location:
            return f'{self.location}: {self.message}'
        return self.message


class DependencyError(PolicyError):
    """Section ordering directives cannot be satisfied."""

    def __init__(self, cycle: list[str]) -> None:
        super().__init__('Circular ordering directives: ' + ' -> '.join(cycle))
        self.cycle = cycle
