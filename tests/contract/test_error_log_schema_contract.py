from __future__ import annotations

import json
import re
from pathlib import Path
from unittest.mock import patch

from rentroll.cli.__main__ import main
from rentroll.db.store import InMemoryTenantStore

EXPECTED_KEYS = {"timestamp", "file", "row", "email", "error_type", "message"}


def test_error_log_lines_follow_schema(happy_csv: Path, temp_workdir: Path, capsys):
    store = InMemoryTenantStore(fail_tenant_emails={"alice@example.com", "bob@example.com"})
    with patch("rentroll.cli.__main__.InMemoryTenantStore", return_value=store):
        main([str(happy_csv), "--dry-run"])

    [log_file] = list((temp_workdir / "logs").glob("errors-*.log"))
    assert re.match(r"^errors-\d{8}-\d{6}\.log$", log_file.name)
    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    for line in lines:
        entry = json.loads(line)
        assert set(entry) == EXPECTED_KEYS
        assert entry["timestamp"].endswith("Z")
        assert isinstance(entry["row"], int)
        assert re.match(r"^[A-Z_]+$", entry["error_type"])
        assert entry["message"]
