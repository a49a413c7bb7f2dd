from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import psycopg2

from rentroll.cli.__main__ import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL, main
from tests.helpers import write_csv


def test_exit_code_values():
    assert (EXIT_SUCCESS_ALL, EXIT_FATAL, EXIT_PARTIAL_FAILURE) == (0, 1, 2)


def test_missing_explicit_config_is_fatal(happy_csv: Path, temp_workdir: Path, capsys):
    code = main([str(happy_csv), "--dry-run", "--config", str(temp_workdir / "config" / "missing.yml")])
    assert code == 1
    assert "ERROR config: config file not found" in capsys.readouterr().out


def test_unsupported_file_is_fatal(temp_workdir: Path, capsys):
    bad = temp_workdir / "data" / "roll.pdf"
    bad.write_bytes(b"%PDF-1.4")
    assert main([str(bad), "--dry-run"]) == 1
    assert "ERROR file:" in capsys.readouterr().out


def test_missing_file_is_fatal(temp_workdir: Path, capsys):
    assert main([str(temp_workdir / "data" / "nope.csv"), "--dry-run"]) == 1


def test_header_only_file_is_fatal(temp_workdir: Path, capsys):
    path = write_csv(temp_workdir / "data" / "empty.csv", [["Name", "Email", "Address", "Rent"]])
    assert main([str(path), "--dry-run"]) == 1


def test_incomplete_mapping_is_fatal(temp_workdir: Path, capsys):
    path = write_csv(
        temp_workdir / "data" / "roll.csv",
        [["Tenant", "Contact", "Where", "Monthly"], ["Alice", "alice@example.com", "12 Oak St", "1200"]],
    )
    assert main([str(path), "--dry-run"]) == 1
    out = capsys.readouterr().out
    assert "ERROR mapping: required fields not mapped: name, email, property_address, rent_amount" in out


def test_override_to_unknown_header_is_fatal(happy_csv: Path, capsys):
    assert main([str(happy_csv), "--dry-run", "--map", "rent_amount=Nope"]) == 1
    assert "ERROR mapping: header not found in file" in capsys.readouterr().out


def test_db_connection_failure_is_fatal(happy_csv: Path, capsys):
    with patch("rentroll.cli.__main__._db_connection", side_effect=psycopg2.OperationalError("could not connect")):
        code = main([str(happy_csv)])
    assert code == 1
    assert "ERROR db: connection failed: could not connect" in capsys.readouterr().out


def test_all_valid_is_success(happy_csv: Path, capsys):
    assert main([str(happy_csv), "--dry-run"]) == 0
