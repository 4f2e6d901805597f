"""
Tests for the command-line entry point.
"""

import csv
import json

import os

import pytest

from inventory_harmonizer.cli import build_parser, main
from inventory_harmonizer.storage import SqliteStore

from factories import VM, XDR


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep source API settings from the host environment out of the tests."""
    for name in list(os.environ):
        if name.endswith(("_BASE_URL", "_API_TOKEN")) or name.startswith("HARMONIZER_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def inputs(tmp_path):
    vm = tmp_path / "vm.json"
    vm.write_text(json.dumps([
        {"hostname": "srv-01", "ip": "10.0.0.1"},
        {"hostname": "exa-sp-001", "userEmail": "gone@co.com"},
    ]))
    xdr = tmp_path / "xdr.csv"
    xdr.write_text("hostname,ip\nsrv-01,\n")
    roster = tmp_path / "roster.json"
    roster.write_text(json.dumps([
        {"id": "1", "name": "Gone", "email": "gone@co.com", "terminationDate": "2024-01-01"},
    ]))
    return vm, xdr, roster


class TestParser:

    def test_source_argument(self):
        args = build_parser().parse_args(["--source", "zero_trust_network=ztn.json"])
        source, path = args.source[0]
        assert source.value == "zero-trust-network"
        assert path.name == "ztn.json"

    def test_bad_source_name(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--source", "antivirus=av.json"])

    def test_missing_path(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--source", "xdr"])


class TestMain:
    """End-to-end runs through main()."""

    def test_run_with_export(self, inputs, tmp_path, capsys):
        vm, xdr, roster = inputs
        export = tmp_path / "out.csv"

        code = main([
            "--source", f"vulnerability-mgmt={vm}",
            "--source", f"xdr={xdr}",
            "--roster", str(roster),
            "--export", str(export),
        ])

        assert code == 0
        out = capsys.readouterr().out
        assert "Sync status: success" in out
        assert "Terminated employees with active endpoints" in out
        assert "[INFO] Endpoints synchronized" in out

        rows = list(csv.DictReader(export.open()))
        by_host = {r["hostname"]: r for r in rows}
        assert by_host["srv-01"]["sources"] == "vulnerability-mgmt, xdr"
        assert by_host["srv-01"]["ip"] == "10.0.0.1"
        assert by_host["exa-sp-001"]["riskLevel"] == "high"

    def test_state_dir_persists(self, inputs, tmp_path):
        vm, _, roster = inputs
        state_dir = tmp_path / "state"

        assert main(["--source", f"vulnerability-mgmt={vm}", "--roster", str(roster),
                     "--state-dir", str(state_dir)]) == 0

        store = SqliteStore(state_dir / "harmonizer.db")
        assert store.get_last_sync() is not None
        assert store.load_terminated_employees()[0].email == "gone@co.com"
        assert len(store.get_sync_logs()) == 1

    def test_no_sources_fails(self, capsys):
        assert main([]) == 1

    def test_bad_source_file_fails(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{nope")
        assert main(["--source", f"xdr={bad}"]) == 1

    def test_bad_config_file_fails(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("request_timeout: 1\n")
        assert main(["--config", str(config)]) == 1

    def test_config_file(self, inputs, tmp_path, capsys):
        vm, _, _ = inputs
        config = tmp_path / "config.yaml"
        config.write_text("log_level: WARNING\n")

        assert main(["--config", str(config), "--source", f"vulnerability-mgmt={vm}"]) == 0
        assert "Endpoints:        2" in capsys.readouterr().out
