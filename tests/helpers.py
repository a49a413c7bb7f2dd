from __future__ import annotations

from pathlib import Path

import pandas as pd

"""File builders shared by the test suites."""


def write_csv(path: Path, rows: list[list[object]]) -> Path:
    text = "\n".join(",".join(f'"{c}"' if "," in str(c) else str(c) for c in r) for r in rows)
    path.write_text(text + "\n", encoding="utf-8")
    return path


def write_xlsx(path: Path, rows: list[list[object]], sheet_name: str = "Rent Roll") -> Path:
    df = pd.DataFrame(rows[1:], columns=rows[0])
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return path
