import pytest

from svcrest.__main__ import get_parser, main


def test_parser():
    args = get_parser().parse_args(['--solicit', 'svc/Ping', '--payload', '{"n": 1}', '--timeout', '2'])

    assert args.solicit == 'svc/Ping'
    assert args.notify is None
    assert args.payload == {'n': 1}
    assert args.timeout == 2.0


@pytest.mark.parametrize("argv", [
    [],
    ['--notify', 'a', '--solicit', 'b'],
    ['--notify', 'a', '--payload', '[1, 2]'],
    ['--notify', 'a', '--payload', 'not json'],
])
def test_parser_rejects(argv):
    with pytest.raises(SystemExit):
        get_parser().parse_args(argv)


def test_malformed_base_exits_with_failure(tmp_path, restore_constants, capsys):
    status = main(['--root', str(tmp_path), '--base', 'ws://:8000', '--href', 'svc', '--notify', 'svc/Hello'])

    assert status == 1
    assert "Invalid websocket" in capsys.readouterr().err
    assert (tmp_path / 'configs' / 'default_config.ini').exists()
