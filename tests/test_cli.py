"""
Tests for CLI tool.
"""
import pytest
import json
from click.testing import CliRunner

from clientdesk.cli import cli


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the CLI at a temporary data directory."""
    monkeypatch.setenv("CLIENTDESK_AUTO_SAVE", "false")
    monkeypatch.delenv("CLIENTDESK_WEBHOOK_URL", raising=False)
    return str(tmp_path / "data")


@pytest.fixture
def invoke(runner, data_dir):
    """Invoke the CLI against the temporary data directory."""
    def _invoke(*args, **kwargs):
        return runner.invoke(cli, ["--data-dir", data_dir, *args], **kwargs)
    return _invoke


def add_client(invoke, email="minji@acme.example", company="Acme Industrial"):
    """Helper to add a client and return its record."""
    result = invoke(
        "clients", "add",
        "--company", company,
        "--contact", "Kim Minji",
        "--email", email,
        "--phone", "02-555-0100",
    )
    assert result.exit_code == 0, result.output
    clients = json.loads(invoke("clients", "list", "--format", "json").output)
    return next(c for c in clients if c["email"] == email)


def add_project(invoke, client_id, *extra):
    """Helper to add a project and return its record."""
    result = invoke(
        "projects", "add",
        "--client-id", client_id,
        "--title", "Sensor housing",
        "--description", "Enclosure design",
        "--type", "product_design",
        *extra
    )
    assert result.exit_code == 0, result.output
    projects = json.loads(invoke("projects", "list", "--format", "json").output)
    return projects[-1]


class TestClients:
    """Tests for clients commands."""

    def test_add_and_list(self, invoke):
        client = add_client(invoke)
        assert client["companyName"] == "Acme Industrial"
        assert client["clientType"] == "corporate"

        result = invoke("clients", "list")
        assert result.exit_code == 0
        assert "Acme Industrial" in result.output
        assert client["id"] in result.output

    def test_list_empty(self, invoke):
        result = invoke("clients", "list")
        assert result.exit_code == 0
        assert "No clients found." in result.output

    def test_list_query(self, invoke):
        add_client(invoke)
        add_client(invoke, email="jun@blueharbor.example", company="Blue Harbor")

        result = invoke("clients", "list", "--query", "harbor", "--format", "json")
        assert [c["companyName"] for c in json.loads(result.output)] == ["Blue Harbor"]

    def test_add_invalid_email(self, invoke):
        result = invoke(
            "clients", "add",
            "--company", "Acme",
            "--contact", "Kim",
            "--email", "not-an-email",
            "--phone", "02-555-0100",
        )
        assert result.exit_code == 1
        assert "Error: Invalid email address" in result.output

    def test_add_duplicate_email(self, invoke):
        add_client(invoke)
        result = invoke(
            "clients", "add",
            "--company", "Other",
            "--contact", "Lee",
            "--email", "minji@acme.example",
            "--phone", "010-1234-5678",
        )
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_show(self, invoke):
        client = add_client(invoke)

        result = invoke("clients", "show", client["id"])
        assert result.exit_code == 0
        assert "Kim Minji" in result.output
        assert "Projects: 0" in result.output

        result = invoke("clients", "show", client["id"], "--format", "json")
        data = json.loads(result.output)
        assert data["client"]["id"] == client["id"]
        assert data["stats"]["totalProjects"] == 0

    def test_show_missing(self, invoke):
        result = invoke("clients", "show", "missing")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_remove_blocked_by_active_project(self, invoke):
        client = add_client(invoke)
        add_project(invoke, client["id"])

        result = invoke("clients", "remove", client["id"])
        assert result.exit_code == 1
        assert "cannot be deleted" in result.output

    def test_remove(self, invoke):
        client = add_client(invoke)
        result = invoke("clients", "remove", client["id"])
        assert result.exit_code == 0
        assert json.loads(invoke("clients", "list", "--format", "json").output) == []


class TestProjects:
    """Tests for projects commands."""

    def test_add_unknown_client(self, invoke):
        result = invoke(
            "projects", "add",
            "--client-id", "nope",
            "--title", "T",
            "--description", "D",
            "--type", "consulting",
        )
        assert result.exit_code == 1
        assert "Client with ID 'nope' not found" in result.output

    def test_add_and_list(self, invoke):
        client = add_client(invoke)
        project = add_project(invoke, client["id"], "--assignee", "lee", "--budget", "2500000")

        assert project["status"] == "received"
        assert project["assignee"] == "lee"
        assert project["budget"] == 2500000

        result = invoke("projects", "list", "--assignee", "lee")
        assert result.exit_code == 0
        assert project["projectNumber"] in result.output

    def test_status_and_progress(self, invoke):
        client = add_client(invoke)
        project = add_project(invoke, client["id"])

        result = invoke("projects", "status", project["id"], "in_progress")
        assert result.exit_code == 0
        assert "in_progress" in result.output

        result = invoke("projects", "progress", project["id"], "100")
        assert result.exit_code == 0
        assert "completed" in result.output

        projects = json.loads(invoke("projects", "list", "--status", "completed", "--format", "json").output)
        assert [p["id"] for p in projects] == [project["id"]]

    def test_progress_out_of_range(self, invoke):
        client = add_client(invoke)
        project = add_project(invoke, client["id"])

        result = invoke("projects", "progress", project["id"], "150")
        assert result.exit_code == 1
        assert "Progress must be between 0 and 100" in result.output

    def test_remove_missing(self, invoke):
        result = invoke("projects", "remove", "missing")
        assert result.exit_code == 1


class TestDataCommands:
    """Tests for export, import, clear and stats."""

    def test_export_clear_import(self, invoke, tmp_path):
        client = add_client(invoke)
        add_project(invoke, client["id"])
        export_file = str(tmp_path / "backup.json")

        result = invoke("export", "--output", export_file)
        assert result.exit_code == 0
        with open(export_file, encoding="utf-8") as f:
            snapshot = json.load(f)
        assert len(snapshot["storages"]["clients"]["data"]) == 1

        result = invoke("clear", "--yes")
        assert result.exit_code == 0
        assert json.loads(invoke("clients", "list", "--format", "json").output) == []

        result = invoke("import", export_file)
        assert result.exit_code == 0
        assert "clients: 1 imported" in result.output
        assert "projects: 1 imported" in result.output

        clients = json.loads(invoke("clients", "list", "--format", "json").output)
        assert clients == snapshot["storages"]["clients"]["data"]

    def test_merge_import_reports_conflicts(self, invoke, tmp_path):
        add_client(invoke)
        export_file = str(tmp_path / "backup.json")
        invoke("export", "--output", export_file)

        result = invoke("import", export_file, "--merge")
        assert result.exit_code == 0
        assert "clients: 0 imported, 1 conflict(s) skipped" in result.output

    def test_export_to_stdout(self, invoke):
        add_client(invoke)
        result = invoke("export")
        assert result.exit_code == 0
        assert "storages" in json.loads(result.output)

    def test_import_invalid_json(self, invoke, tmp_path):
        bad_file = tmp_path / "bad.json"
        bad_file.write_text("{not json", encoding="utf-8")

        result = invoke("import", str(bad_file))
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_import_not_utf8(self, invoke, tmp_path):
        bad_file = tmp_path / "bad.json"
        bad_file.write_bytes(b'{"storages": "\xff\xfe"}')

        result = invoke("import", str(bad_file))
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_import_wrong_shape(self, invoke, tmp_path):
        bad_file = tmp_path / "bad.json"
        bad_file.write_text(json.dumps({"clients": []}), encoding="utf-8")

        result = invoke("import", str(bad_file))
        assert result.exit_code == 1
        assert "Invalid data format" in result.output

    def test_clear_requires_confirmation(self, invoke):
        add_client(invoke)

        result = invoke("clear", input="n\n")
        assert result.exit_code == 1
        assert len(json.loads(invoke("clients", "list", "--format", "json").output)) == 1

    def test_stats(self, invoke):
        client = add_client(invoke)
        add_project(invoke, client["id"], "--assignee", "lee")

        result = invoke("stats")
        assert result.exit_code == 0
        stats = json.loads(result.output)
        assert stats["clients"]["totalClients"] == 1
        assert stats["projects"]["totalProjects"] == 1
        assert stats["workload"]["lee"]["totalProjects"] == 1


class TestBackends:
    """Tests for the --backend option."""

    @pytest.mark.parametrize("backend", ["directory", "sqlite"])
    def test_records_persist_between_invocations(self, invoke, backend):
        invoke_with_backend = lambda *args: invoke("--backend", backend, *args)
        result = invoke_with_backend(
            "clients", "add",
            "--company", "Acme",
            "--contact", "Kim",
            "--email", "kim@acme.example",
            "--phone", "02-555-0100",
        )
        assert result.exit_code == 0, result.output

        clients = json.loads(invoke_with_backend("clients", "list", "--format", "json").output)
        assert [c["email"] for c in clients] == ["kim@acme.example"]

    def test_memory_backend_does_not_persist(self, invoke):
        add = invoke(
            "--backend", "memory",
            "clients", "add",
            "--company", "Acme",
            "--contact", "Kim",
            "--email", "kim@acme.example",
            "--phone", "02-555-0100",
        )
        assert add.exit_code == 0
        result = invoke("--backend", "memory", "clients", "list")
        assert "No clients found." in result.output
