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

from setuptools import find_packages, setup

setup(
    name='policyfabrik',
    version='0.1.0',
    description='Compile declarative firewall policies into iptables rule sets',
    license='GPL-2.0-or-later',
    python_requires='>=3.11',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    package_data={'policyfabrik': ['resources/templates/*/*.j2']},
    include_package_data=True,
    install_requires=[
        'jinja2',
        'PyYAML',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'pfab-ipt=policyfabrik.cli.pfab_ipt:main',
        ],
    },
)
