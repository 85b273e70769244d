"""
Tests for the command-line interface.

The DHIS2 client is replaced with the in-memory API so commands run
without a server.
"""

import json

import pytest
from typer.testing import CliRunner

from transdedup import cli
from transdedup.api.memory import InMemoryApi
from transdedup.pipeline import ScanResult

runner = CliRunner()


def tr(locale, prop, value):
    return {"locale": locale, "property": prop, "value": value}


@pytest.fixture
def api(monkeypatch):
    api = InMemoryApi({
        "dataElements": [
            {"id": "de1", "name": "First", "translations": [tr("fr", "NAME", "A"), tr("fr", "NAME", "B")]},
            {"id": "de2", "name": "Second", "translations": [tr("pt", "NAME", "x"), tr("pt", "NAME", "y")]},
        ],
    })
    monkeypatch.setattr(cli, "_make_client", lambda *args: api)
    return api


@pytest.fixture
def report(api, tmp_path):
    result = runner.invoke(cli.app, ["scan", "--output", str(tmp_path / "report.json")])
    assert result.exit_code == 0, result.output
    return tmp_path / "report.json"


class TestScanCommand:
    """Tests for `transdedup scan`."""

    def test_lists_duplicates(self, api):
        """Duplicate groups and stats are printed."""
        result = runner.invoke(cli.app, ["scan"])

        assert result.exit_code == 0, result.output
        assert "de1" in result.output
        assert "de2" in result.output
        assert "Scan Statistics" in result.output

    def test_saves_report(self, report):
        """The report file contains every group."""
        data = json.loads(report.read_text())
        assert [g["object_id"] for g in data["groups"]] == ["de1", "de2"]

    def test_type_listing_failure(self, api):
        """A failing schema request exits with an error."""
        api.fail_type_listing = True
        result = runner.invoke(cli.app, ["scan"])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_no_duplicates(self, monkeypatch):
        """A clean server reports nothing to fix."""
        clean = InMemoryApi({"dataElements": [{"id": "ok", "translations": [tr("fr", "NAME", "A")]}]})
        monkeypatch.setattr(cli, "_make_client", lambda *args: clean)
        result = runner.invoke(cli.app, ["scan"])

        assert result.exit_code == 0
        assert "No duplicate translations found" in result.output


class TestFixCommand:
    """Tests for `transdedup fix`."""

    def test_fix_all_with_default_winners(self, api, report):
        """--all writes the first value of every group."""
        result = runner.invoke(cli.app, ["fix", "--report", str(report), "--all", "--yes"])

        assert result.exit_code == 0, result.output
        assert api.get("dataElements", "de1")["translations"] == [tr("fr", "NAME", "A")]
        assert api.get("dataElements", "de2")["translations"] == [tr("pt", "NAME", "x")]
        assert ScanResult.load(report).groups == []

    def test_choose_winner(self, api, report):
        """--choose picks a 1-based candidate."""
        result = runner.invoke(cli.app, [
            "fix", "--report", str(report), "--object", "de1", "--choose", "de1:fr:NAME=2", "--yes",
        ])

        assert result.exit_code == 0, result.output
        assert api.get("dataElements", "de1")["translations"] == [tr("fr", "NAME", "B")]
        assert api.writes == [("dataElements", "de1")]
        assert [g.object_id for g in ScanResult.load(report).groups] == ["de2"]

    def test_choose_zero_drops_key(self, api, report):
        """Choosing 0 removes the key from the object."""
        result = runner.invoke(cli.app, [
            "fix", "--report", str(report), "--object", "de1", "--choose", "de1:fr:NAME=0", "--yes",
        ])

        assert result.exit_code == 0, result.output
        assert api.get("dataElements", "de1")["translations"] == []

    def test_failed_object_kept_in_report(self, api, report):
        """A failed write exits non-zero and stays in the report for a retry."""
        api.failing_writes.add("de2")
        result = runner.invoke(cli.app, ["fix", "--report", str(report), "--all", "--yes"])

        assert result.exit_code == 1
        assert "1 updates failed" in result.output
        assert [g.object_id for g in ScanResult.load(report).groups] == ["de2"]

    def test_dry_run(self, api, report):
        """--dry-run writes nothing and keeps the report."""
        result = runner.invoke(cli.app, ["fix", "--report", str(report), "--all", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert api.writes == []
        assert len(ScanResult.load(report).groups) == 2
        assert "updated successfully" not in result.output
        assert "Dry run: 2 translation strings would be updated." in result.output

    def test_nothing_selected(self, api, report):
        """Without --all/--object/--interactive nothing is written."""
        result = runner.invoke(cli.app, ["fix", "--report", str(report), "--yes"])

        assert result.exit_code == 1
        assert "Nothing selected" in result.output
        assert api.writes == []

    def test_invalid_choice(self, api, report):
        """A choice outside the group is rejected."""
        result = runner.invoke(cli.app, [
            "fix", "--report", str(report), "--all", "--choose", "de1:fr:NAME=5", "--yes",
        ])

        assert result.exit_code == 1
        assert "Invalid selection" in result.output
        assert api.writes == []

    def test_malformed_choice(self, api, report):
        """A choice that doesn't parse is a usage error."""
        result = runner.invoke(cli.app, ["fix", "--report", str(report), "--all", "--choose", "de1=1"])
        assert result.exit_code == 2

    def test_interactive(self, api, report):
        """Interactive mode asks per object and per group."""
        # de1: fix, keep value 2; de2: skip
        result = runner.invoke(
            cli.app,
            ["fix", "--report", str(report), "--interactive", "--yes"],
            input="y\n2\nn\n",
        )

        assert result.exit_code == 0, result.output
        assert api.get("dataElements", "de1")["translations"] == [tr("fr", "NAME", "B")]
        assert api.writes == [("dataElements", "de1")]

    def test_scan_when_no_report(self, api):
        """Without --report the server is scanned first."""
        result = runner.invoke(cli.app, ["fix", "--all", "--yes"])

        assert result.exit_code == 0, result.output
        assert len(api.writes) == 2


class TestOtherCommands:
    """Tests for demo, version and info."""

    def test_demo(self):
        """The demo fixes the built-in sample."""
        result = runner.invoke(cli.app, ["demo"])

        assert result.exit_code == 0, result.output
        assert "translation strings updated successfully" in result.output

    def test_demo_dry_run(self):
        """A dry-run demo reports planned updates, not written ones."""
        result = runner.invoke(cli.app, ["demo", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "updated successfully" not in result.output
        assert "would be updated" in result.output

    def test_version(self):
        """--version prints the version."""
        result = runner.invoke(cli.app, ["--version"])
        assert result.exit_code == 0
        assert "transdedup v" in result.output

    def test_info(self, monkeypatch, tmp_path):
        """info shows the resolved server settings."""
        monkeypatch.setenv("DHIS2_BASE_URL", "https://dhis.example.org")
        monkeypatch.setattr(cli, "KeyManager", lambda: _NoKeys())
        result = runner.invoke(cli.app, ["info"])

        assert result.exit_code == 0, result.output
        assert "https://dhis.example.org" in result.output


class _NoKeys:
    def list_keys(self):
        return []


class TestKeysCommand:
    """Tests for `transdedup keys`."""

    @pytest.fixture
    def km(self, monkeypatch, tmp_path):
        from transdedup.keys import KeyManager

        monkeypatch.delenv("DHIS2_PASSWORD", raising=False)
        monkeypatch.delenv("DHIS2_TOKEN", raising=False)
        manager = KeyManager(config_dir=tmp_path / "cfg")
        manager._keyring_available = False
        monkeypatch.setattr(cli, "KeyManager", lambda: manager)
        return manager

    def test_set_then_list(self, km):
        """A stored token shows up masked in the listing."""
        result = runner.invoke(cli.app, ["keys", "set", "token"], input="d2p_0123456789abcdef\n")
        assert result.exit_code == 0, result.output
        assert km.get_key("token") == "d2p_0123456789abcdef"

        result = runner.invoke(cli.app, ["keys", "list"])
        assert result.exit_code == 0, result.output
        assert "d2p_...cdef" in result.output

    def test_unknown_credential(self, km):
        """Only password and token are accepted."""
        result = runner.invoke(cli.app, ["keys", "set", "apikey"])
        assert result.exit_code == 1
        assert "Credential required" in result.output
