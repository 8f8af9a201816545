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

"""Tests for the pfab-ipt command line interface."""

import pytest

from policyfabrik.cli.pfab_ipt import main

POLICY = """\
options:
  ipv6: false
zone:
  lan: {iface: eth1}
ipset:
  blocked: {type: "hash:net", family: inet}
filter:
  - {in: lan, out: _fw, service: {proto: tcp, port: 22}}
"""


@pytest.fixture
def policy_file(tmp_path):
    path = tmp_path / 'policy.yaml'
    path.write_text(POLICY, encoding='utf-8')
    return path


def test_print(policy_file, capsys):
    assert main(['-i', str(policy_file)]) == 0

    out, err = capsys.readouterr()
    assert out.startswith('create blocked hash:net family inet\n')
    assert '# rules-save\n' in out
    assert '-A INPUT -i eth1 -p tcp --dport 22 -j ACCEPT\n' in out
    assert 'rules6-save' not in out
    assert 'Compiled ' in err


def test_output_dir(policy_file, tmp_path, capsys):
    out_dir = tmp_path / 'out'
    assert main(['-i', str(policy_file), '-o', str(out_dir)]) == 0

    assert sorted(p.name for p in out_dir.iterdir()) == ['ipset-blocked', 'rules-save']
    _, err = capsys.readouterr()
    assert f'Wrote {out_dir / "rules-save"}' in err


def test_multiple_inputs(policy_file, tmp_path, capsys):
    extra = tmp_path / 'extra.yaml'
    extra.write_text('filter:\n  - {in: _fw, out: lan}\n', encoding='utf-8')

    assert main(['-i', str(policy_file), '-i', str(extra)]) == 0
    out, _ = capsys.readouterr()
    assert '-A OUTPUT -o eth1 -j ACCEPT\n' in out


def test_policy_error(tmp_path, capsys):
    path = tmp_path / 'bad.yaml'
    path.write_text('filter:\n  - {in: nowhere}\n', encoding='utf-8')

    assert main(['-i', str(path)]) == 1
    _, err = capsys.readouterr()
    assert 'Error: filter 0 (bad.yaml): Invalid zone: nowhere' in err


def test_missing_input(tmp_path, capsys):
    assert main(['-i', str(tmp_path / 'missing.yaml')]) == 1
    _, err = capsys.readouterr()
    assert 'Error: ' in err
    assert 'Cannot read policy file' in err


def test_warnings_are_printed(tmp_path, capsys):
    path = tmp_path / 'policy.yaml'
    path.write_text('options: {ipv6: false}\nunknown: {}\n', encoding='utf-8')

    assert main(['-i', str(path)]) == 0
    _, err = capsys.readouterr()
    assert 'Warning: unknown: Unknown section ignored' in err


def test_version(capsys):
    with pytest.raises(SystemExit) as exc:
        main(['-V'])
    assert exc.value.code == 0
    assert 'pfab-ipt: v' in capsys.readouterr().out
