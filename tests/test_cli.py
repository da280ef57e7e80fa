import pytest

from nginx_echo import cli


@pytest.fixture
def served(monkeypatch):
    configs = []
    monkeypatch.setattr(cli, "serve", configs.append)
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)
    return configs


def test_flags_override_config(served, tmp_path):
    path = tmp_path / "echo.yml"
    path.write_text("listen_port: 8080\nip_header: X-Client-Ip\n", encoding="utf-8")

    assert cli.main(["--config", str(path), "--port", "9000", "--log-level", "debug"]) == 0

    (config,) = served
    assert config.listen_port == 9000
    assert config.ip_header == "X-Client-Ip"
    assert config.log_level == "debug"


def test_bad_config_exits_with_status_2(served, tmp_path, capsys):
    path = tmp_path / "echo.yml"
    path.write_text("nope: 1\n", encoding="utf-8")

    assert cli.main(["--config", str(path)]) == 2
    assert served == []
    assert "nope" in capsys.readouterr().err


def test_rejects_unknown_log_level():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["--log-level", "loud"])
