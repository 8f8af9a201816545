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

"""CLI entry point: translate a policy into iptables and ipset files."""

import argparse
import logging
import sys
import time
from pathlib import Path

import policyfabrik
from policyfabrik.compiler import Compiler
from policyfabrik.core import PolicyError, PolicyReader
from policyfabrik.driver import IptablesWriter

__author__ = 'Linuxfabrik GmbH, Zurich/Switzerland'

DESCRIPTION = """policyfabrik policy compiler for iptables. Loads declarative policy files
(YAML or JSON) and translates them into iptables-restore and ipset files."""

DEFAULT_INPUT = '/etc/policyfabrik'


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='pfab-ipt',
        description=DESCRIPTION,
    )

    parser.add_argument(
        '-i',
        '--input',
        action='append',
        default=None,
        dest='INPUT',
        help='policy file or directory; may be repeated. Default: ' + DEFAULT_INPUT,
    )

    parser.add_argument(
        '-o',
        '--output-dir',
        default='',
        dest='OUTPUT_DIR',
        help='write rules-save, rules6-save and ipset-* files to this directory '
        'instead of printing them',
    )

    parser.add_argument(
        '-T',
        '--template-dir',
        default=None,
        dest='TEMPLATE_DIR',
        help='directory with template overrides',
    )

    parser.add_argument(
        '-v',
        '--verbose',
        action='count',
        default=0,
        dest='VERBOSE',
        help='verbose output (repeat for higher verbosity)',
    )

    parser.add_argument(
        '-V',
        '--version',
        action='version',
        version=f'%(prog)s: v{policyfabrik.__version__} by {__author__}',
    )

    return parser.parse_args(argv)


def _log_level(verbose):
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=_log_level(args.VERBOSE),
        format='%(levelname)s %(name)s: %(message)s',
    )
    t_start = time.monotonic()

    inputs = args.INPUT or [DEFAULT_INPUT]
    print(f'Loading policy from {", ".join(inputs)} ...', file=sys.stderr)

    try:
        policy = PolicyReader().parse(inputs)
        compiler = Compiler(policy)
        writer = IptablesWriter(
            compiler.iptables,
            compiler.context.options,
            template_dir=args.TEMPLATE_DIR,
        )

        if args.OUTPUT_DIR:
            paths = writer.dump(args.OUTPUT_DIR)
            paths += compiler.ipset.dump(Path(args.OUTPUT_DIR) / 'ipset-')
            for path in paths:
                print(f'Wrote {path}', file=sys.stderr)
        else:
            if len(compiler.ipset):
                print(compiler.ipset.print())
            print(writer.print(), end='')
    except PolicyError as e:
        print(f'Error: {e}', file=sys.stderr)
        return 1
    except OSError as e:
        print(f'Error: {e}', file=sys.stderr)
        return 1

    for warning in compiler.warnings:
        print(f'Warning: {warning}', file=sys.stderr)

    elapsed = time.monotonic() - t_start
    print(f'Compiled {len(compiler.iptables)} rules in {elapsed:.3f}s', file=sys.stderr)
    return 0


if __name__ == '__main__':
    sys.exit(main())
