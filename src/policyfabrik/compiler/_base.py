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

"""BaseCompiler: error/warning tracking for the policy compiler."""

from __future__ import annotations

import logging
from enum import IntEnum

from policyfabrik.core._errors import DependencyError, PolicyError

logger = logging.getLogger(__name__)

__all__ = ['BaseCompiler', 'CompilerStatus', 'DependencyError', 'PolicyError']


class CompilerStatus(IntEnum):
    """Compiler exit status codes."""

    FWCOMPILER_SUCCESS = 0
    FWCOMPILER_WARNING = 1
    FWCOMPILER_ERROR = 2


class BaseCompiler:
    """Base class providing error/warning tracking.

    Errors are fatal: :meth:`error` records the message and raises
    :class:`PolicyError`.  Warnings are collected and compilation goes on.
    """

    def __init__(self) -> None:
        self._status: CompilerStatus = CompilerStatus.FWCOMPILER_SUCCESS
        self._errors: list[str] = []
        self._warnings: list[str] = []

    @property
    def status(self) -> CompilerStatus:
        return self._status

    def error(self, location: str, msg: str) -> None:
        """Record an error attributed to *location* and abort."""
        exc = PolicyError(msg, location)
        self._errors.append(str(exc))
        self._status = CompilerStatus.FWCOMPILER_ERROR
        raise exc

    def warning(self, location: str, msg: str) -> None:
        """Record a warning attributed to *location*."""
        text = f'{location}: {msg}' if location else msg
        logger.debug('Warning: %s', text)
        self._warnings.append(text)
        if self._status == CompilerStatus.FWCOMPILER_SUCCESS:
            self._status = CompilerStatus.FWCOMPILER_WARNING

    def get_errors(self) -> list[str]:
        return list(self._errors)

    def get_warnings(self) -> list[str]:
        return list(self._warnings)
