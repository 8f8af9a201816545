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

"""Policy compiler: fragment algebra, section ordering and rule tree assembly."""

from ._base import BaseCompiler, CompilerStatus, DependencyError, PolicyError
from ._compiler import Compiler
from ._context import CompilationContext
from ._dependency import resolve
from ._optfrag import OptFrag, RuleCommand, combine, command, frags, location
from ._rule_tree import RuleTree
from ._section import MODULES_LOADED, VIRTUAL_PREFIX, Module, Section

__all__ = [
    'MODULES_LOADED',
    'VIRTUAL_PREFIX',
    'BaseCompiler',
    'CompilationContext',
    'Compiler',
    'CompilerStatus',
    'DependencyError',
    'Module',
    'OptFrag',
    'PolicyError',
    'RuleCommand',
    'RuleTree',
    'Section',
    'combine',
    'command',
    'frags',
    'location',
    'resolve',
]
