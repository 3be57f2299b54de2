import threading
from pathlib import Path

from nginx_harness import main as console
from nginx_harness.deploy.errors import LaunchError


def test_parse_args():
    options = console.parse_args(
        ["nginx.conf.template", "app", "--base-uri", "http://localhost:9000/", "--verbose",
         "--", "python", "-m", "app", "--urls", "{url}"]
    )

    assert options["template"] == Path("nginx.conf.template")
    assert options["application_path"] == Path("app")
    assert options["base_uri"] == "http://localhost:9000/"
    assert options["verbose"] is True
    assert options["backend_cmd"] == ["python", "-m", "app", "--urls", "{url}"]


def test_parse_args_rejects_incomplete_command_lines():
    assert console.parse_args(["tpl", "app"]) is None
    assert console.parse_args(["tpl", "--", "python"]) is None
    assert console.parse_args(["tpl", "app", "--"]) is None
    assert console.parse_args(["tpl", "app", "--base-uri", "--", "python"]) is None


def test_main_prints_usage_on_bad_arguments(capsys):
    assert console.main(["only-one"]) == 2
    assert "usage:" in capsys.readouterr().err


class _FailingDeployer:
    disposed = False

    def __init__(self, parameters, backend):
        self.parameters = parameters

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        _FailingDeployer.disposed = True

    def deploy(self):
        raise LaunchError("Failed to start nginx")


class _ExitingDeployer(_FailingDeployer):
    def deploy(self):
        event = threading.Event()
        event.set()
        return type("Result", (), {"application_base_uri": "http://localhost:1/", "host_shutdown_event": event})


def _template(tmp_path):
    path = tmp_path / "nginx.conf.template"
    path.write_text("events {}")
    return path


def test_main_reports_deployment_failure(tmp_path, monkeypatch, restore_root_logging):
    monkeypatch.setattr(console, "NginxDeployer", _FailingDeployer)
    _FailingDeployer.disposed = False

    code = console.main([str(_template(tmp_path)), str(tmp_path), "--", "python", "app.py"])

    assert code == 1
    assert _FailingDeployer.disposed


def test_main_tears_down_when_backend_exits(tmp_path, monkeypatch, restore_root_logging, capsys):
    monkeypatch.setattr(console, "NginxDeployer", _ExitingDeployer)
    _FailingDeployer.disposed = False

    code = console.main([str(_template(tmp_path)), str(tmp_path), "--", "python", "app.py"])

    assert code == 0
    assert _FailingDeployer.disposed
    assert "http://localhost:1/" in capsys.readouterr().out
