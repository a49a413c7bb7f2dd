# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from rentroll.logging.init import reset_logging
from tests.helpers import write_csv


@pytest.fixture(autouse=True)
def _fresh_logging():
    # ハンドラは setup 時点の sys.stdout を掴むため、テスト毎に作り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """timezone: UTC
logs_dir: logs
call_timeout_sec: 5
update_existing: false
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def happy_rows() -> list[list[object]]:
    return [
        ["Full Name", "Email", "Property", "Rent", "Due"],
        ["Alice Smith", "alice@example.com", "12 Oak St", "$1,200.00", "2024-07-01"],
        ["Bob Jones", "bob@example.com", "14 Oak St", "950", "2024-07-05"],
        ["Carol White", "carol@example.com", "16 Oak St", "$1,050.50", "2024-07-01"],
    ]


@pytest.fixture()
def happy_csv(temp_workdir: Path, happy_rows) -> Path:
    return write_csv(temp_workdir / "data" / "rent_roll.csv", happy_rows)
