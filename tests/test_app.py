"""
Tests for the command line entry point, run against a local store.
"""

import functools
import json
import sys

import pytest

from crmdedupe import app
from crmdedupe.database import LocalStore
from crmdedupe.dedupe import dedupe_contact


@pytest.fixture
def records_file(tmp_path):
    path = tmp_path / "records.json"
    path.write_text(json.dumps({"records": [
        {"id": "1", "kind": "person", "properties": {
            "firstname": "Jane", "lastname": "Doe", "phone": "305-555-1234",
            "hs_analytics_last_timestamp": "2024-01-01T00:00:00Z"}},
        {"id": "2", "kind": "person", "properties": {
            "firstname": "Jane", "lastname": "Doe", "phone": "(305) 555 1234",
            "hs_analytics_last_timestamp": "2024-03-01T00:00:00Z"}},
        {"id": "3", "kind": "unknown", "properties": {}},
    ]}))
    return path


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["crmdedupe", *argv])
    monkeypatch.setattr(app, "dedupe_contact", functools.partial(dedupe_contact, sleep=lambda s: None))
    app.main()


class TestCli:
    """Test the subcommands end to end."""

    def test_version(self, monkeypatch, capsys):
        run_cli(monkeypatch, "--version")
        assert capsys.readouterr().out.strip() == "0.1.0"

    def test_load_records_reports_errors(self, monkeypatch, capsys, tmp_path, records_file):
        db = tmp_path / "crm.db"

        run_cli(monkeypatch, "--db", str(db), "load-records", "--input", str(records_file))

        out = capsys.readouterr().out
        assert "Loaded: 2" in out
        assert " - 3:" in out

    def test_load_records_requires_db(self, monkeypatch, records_file):
        with pytest.raises(SystemExit):
            run_cli(monkeypatch, "load-records", "--input", str(records_file))

    def test_missing_token_without_db(self, monkeypatch):
        monkeypatch.delenv("HUBSPOT_TOKEN", raising=False)
        with pytest.raises(SystemExit):
            run_cli(monkeypatch, "dedupe-contact", "--id", "1")

    def test_dedupe_contact_against_local_store(self, monkeypatch, tmp_path, records_file):
        db = tmp_path / "crm.db"
        run_cli(monkeypatch, "--db", str(db), "load-records", "--input", str(records_file))

        run_cli(monkeypatch, "--db", str(db), "dedupe-contact", "--id", "1")

        assert LocalStore(db).merged_into("1") == "2"
