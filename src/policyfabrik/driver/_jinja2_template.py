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

"""Jinja2 template loader for the rule file writers.

Templates are looked up in an explicit template directory (if given),
then in ``~/policyfabrik/templates/<backend>/`` and finally in the
package's ``resources/templates/<backend>/`` directory.
"""

from __future__ import annotations

import importlib.resources
from pathlib import Path

import jinja2


def _package_templates_dir() -> Path:
    ref = importlib.resources.files('policyfabrik') / 'resources' / 'templates'
    return Path(str(ref))


class Jinja2Template:
    """Load and render one template of a backend."""

    def __init__(
        self,
        backend: str,
        template_name: str,
        template_dir: str | Path | None = None,
    ) -> None:
        search_paths: list[str] = []

        if template_dir is not None:
            search_paths.append(str(Path(template_dir) / backend))

        user_dir = Path.home() / 'policyfabrik' / 'templates' / backend
        if user_dir.is_dir():
            search_paths.append(str(user_dir))

        search_paths.append(str(_package_templates_dir() / backend))

        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(search_paths),
            undefined=jinja2.StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self._template = self._env.get_template(template_name)

    def render(self, context: dict) -> str:
        return self._template.render(context)
