"""
Tests for the uactl command line.
"""

import yaml

from opcua_sentinel import __version__
from opcua_sentinel.cli import uactl
from opcua_sentinel.core.exceptions import SessionConnectionError
from opcua_sentinel.monitor import service as service_module
from opcua_sentinel.monitor.models import ReadOutcome
from opcua_sentinel.session.status import STATUS_BAD_NODE_ID_UNKNOWN

from conftest import FakeSession, good


def patch_session(monkeypatch, session):
    created = []

    def factory(**kwargs):
        created.append(kwargs)
        return session

    monkeypatch.setattr(service_module, "GatewaySession", factory)
    return created


class TestInfoCommands:

    def test_version(self, capsys):
        assert uactl.main(["version"]) == uactl.EXIT_OK
        assert __version__ in capsys.readouterr().out

    def test_describe(self, capsys):
        assert uactl.main(["describe"]) == uactl.EXIT_OK
        assert capsys.readouterr().out.strip() == "Monitor nodes on an OPC-UA Server"

    def test_sample_config(self, capsys):
        assert uactl.main(["sample-config"]) == uactl.EXIT_OK
        data = yaml.safe_load(capsys.readouterr().out)
        assert len(data["nodes"]) == 2

    def test_no_command_prints_help(self, capsys):
        assert uactl.main([]) == uactl.EXIT_OK
        assert "uactl" in capsys.readouterr().out


class TestRun:

    def test_missing_nodes_file(self, tmp_path):
        code = uactl.main(["run", "--once", "--nodes", str(tmp_path / "missing.yaml")])
        assert code == uactl.EXIT_CONFIG_ERROR

    def test_run_once_dry_run(self, monkeypatch, sample_nodes_yaml):
        session = FakeSession([[good(1.0), good(2.0), good(3.0)]])
        created = patch_session(monkeypatch, session)

        code = uactl.main(["run", "--once", "--dry-run", "--nodes", str(sample_nodes_yaml)])

        assert code == uactl.EXIT_OK
        assert created[0]["endpoint_url"] == "opc.tcp://plc-01:4840/endpoint"
        assert session.requests == [[
            "ns=2;s=TE-800-07/AI1/PV.CV",
            "ns=2;i=1234",
            "ns=2;s=LT-101/AI1/PV.CV",
        ]]
        assert session.closed is True

    def test_connection_failure(self, monkeypatch, sample_nodes_yaml):
        session = FakeSession(connect_error=SessionConnectionError("refused"))
        patch_session(monkeypatch, session)

        code = uactl.main(["run", "--once", "--dry-run", "--nodes", str(sample_nodes_yaml)])

        assert code == uactl.EXIT_CONNECTION_ERROR
        assert session.requests == []

    def test_build_service_uses_nodes_file_server_name(self, monkeypatch, sample_nodes_yaml):
        patch_session(monkeypatch, FakeSession())

        service = service_module.build_service(
            uactl.get_config(), nodes_file=str(sample_nodes_yaml), dry_run=True
        )

        assert service.server_name == "Plant-A"
        assert len(service.registry) == 3
        assert type(service.sink).__name__ == "LoggingSink"


class CheckSession(FakeSession):

    def __init__(self, batches=None, reachable=True, **kwargs):
        super().__init__(batches, **kwargs)
        self.reachable = reachable

    async def check_connection(self):
        return self.reachable


class TestCheck:

    def test_check_reports_each_node(self, monkeypatch, sample_nodes_yaml, capsys):
        session = CheckSession([[
            good(1.0),
            ReadOutcome(value=None, status=STATUS_BAD_NODE_ID_UNKNOWN),
            good(3.0),
        ]])
        patch_session(monkeypatch, session)

        code = uactl.main(["check", "--nodes", str(sample_nodes_yaml)])

        out = capsys.readouterr().out
        assert code == uactl.EXIT_FAILURE
        assert "[OK]" in out
        assert "BadNodeIdUnknown" in out
        assert session.closed is True

    def test_unreachable_gateway_still_closes_session(self, monkeypatch, sample_nodes_yaml, capsys):
        session = CheckSession(reachable=False)
        patch_session(monkeypatch, session)

        code = uactl.main(["check", "--nodes", str(sample_nodes_yaml)])

        assert code == uactl.EXIT_FAILURE
        assert "not reachable" in capsys.readouterr().out
        assert session.requests == []
        assert session.closed is True

    def test_short_read_is_reported(self, monkeypatch, sample_nodes_yaml, capsys):
        session = CheckSession([[good(1.0), good(2.0)]])
        patch_session(monkeypatch, session)

        code = uactl.main(["check", "--nodes", str(sample_nodes_yaml)])

        out = capsys.readouterr().out
        assert code == uactl.EXIT_FAILURE
        assert "2 result(s) for 3 node(s)" in out
        assert "ns=2;i=1234" not in out
        assert session.closed is True
