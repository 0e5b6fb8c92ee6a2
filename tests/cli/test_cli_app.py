import os
import signal
import threading
from pathlib import Path
from uuid import UUID

import pytest
from typer.testing import CliRunner

from plugin_activator.cli.app import app
from plugin_activator.config import loader
from plugin_activator.dataverse.client import DataverseClient

GUID_A = "3f2504e0-4f89-11d3-9a0c-0305e82c3301"

ENV = {
    "CLIENT_ID": "cid",
    "CLIENT_SECRET": "csecret",
    "DYNAMICS_URL": "https://org.crm.dynamics.com",
    "SOLUTION_UNIQUE_NAME": "SampleSolution",
    "ENABLE_PLUGIN_STEPS": "false",
}


class RecordingClient:
    def __init__(self, records, connect_error=None):
        self.records = records
        self.connect_error = connect_error
        self.updates = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True

    def connect(self):
        if self.connect_error:
            raise self.connect_error
        return {}

    def retrieve_multiple(self, query):
        return self.records

    def update_state_and_status(self, entity_name, record_id, state_code, status_code):
        self.updates.append((record_id, state_code, status_code))
        return True


class TerminatedDuringQueryClient(RecordingClient):
    """Sends SIGTERM to this process from inside the query, then waits to be closed."""

    def __init__(self, records):
        super().__init__(records)
        self.exited = threading.Event()

    def __exit__(self, *exc):
        super().__exit__(*exc)
        self.exited.set()

    def retrieve_multiple(self, query):
        os.kill(os.getpid(), signal.SIGTERM)
        self.exited.wait(5)
        return self.records


@pytest.fixture
def env(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(loader, "DEFAULT_SECRETS_FILE", tmp_path / "none.yaml")
    monkeypatch.delenv("PLUGIN_ACTIVATOR_SECRETS_FILE", raising=False)
    monkeypatch.delenv("TENANT_ID", raising=False)
    for k, v in ENV.items():
        monkeypatch.setenv(k, v)
    return monkeypatch


@pytest.fixture
def client(env):
    c = RecordingClient([{"componenttype": 92, "objectid": GUID_A}])
    created = []

    def factory(connection_string):
        created.append(connection_string)
        return c

    env.setattr(DataverseClient, "from_connection_string", factory)
    c.created = created
    return c


def test_run_disables_steps_from_environment(client):
    result = CliRunner().invoke(app, ["run", "--no-log-file"])

    assert result.exit_code == 0
    assert client.updates == [(UUID(GUID_A), 1, 2)]
    assert client.closed
    assert "ClientSecret=csecret" in client.created[0]


def test_enable_flag_overrides_environment(client):
    result = CliRunner().invoke(app, ["run", "--no-log-file", "--enable"])

    assert result.exit_code == 0
    assert client.updates == [(UUID(GUID_A), 0, 1)]


def test_dry_run_sends_nothing(client):
    result = CliRunner().invoke(app, ["run", "--no-log-file", "--dry-run"])

    assert result.exit_code == 0
    assert client.updates == []


def test_missing_solution_name_fails_before_connecting(client, env):
    env.delenv("SOLUTION_UNIQUE_NAME")

    result = CliRunner().invoke(app, ["run", "--no-log-file"])

    assert result.exit_code == -1
    assert client.created == []


def test_solution_option_supplies_missing_name(client, env):
    env.delenv("SOLUTION_UNIQUE_NAME")

    result = CliRunner().invoke(app, ["run", "--no-log-file", "--solution", "FromCli"])

    assert result.exit_code == 0
    assert len(client.updates) == 1


def test_connection_failure_exits_nonzero(client):
    client.connect_error = RuntimeError("no route to host")

    result = CliRunner().invoke(app, ["run", "--no-log-file"])

    assert result.exit_code == -1
    assert client.updates == []
    assert client.closed


def test_log_file_written_to_log_dir(client, tmp_path: Path):
    logs = tmp_path / "logs"

    result = CliRunner().invoke(app, ["run", "--log-dir", str(logs)])

    assert result.exit_code == 0
    files = list(logs.glob("plugin_activator-*.log"))
    assert len(files) == 1
    assert f"Successfully updated plugin step with Id {GUID_A} to be disabled" in files[0].read_text()


def test_sigterm_during_query_exits_cleanly(env):
    c = TerminatedDuringQueryClient([{"componenttype": 92, "objectid": GUID_A}])
    env.setattr(DataverseClient, "from_connection_string", lambda connection_string: c)

    result = CliRunner().invoke(app, ["run", "--no-log-file"])

    assert result.exit_code == 0
    assert c.updates == []
    assert c.closed
    assert "Critical error" not in result.output
