from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the rent-roll import tool.

Built by rentroll.config.loader from config/import.yml. Environment variables
take precedence over the database section at connection time.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback used when no DATABASE_URL / PG* variables are set."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for an import run."""
    timezone: str = "UTC"  # default due date の「今日」判定に使用
    logs_dir: str = "logs"
    call_timeout_sec: float = 30.0  # per datastore call (statement_timeout)
    update_existing: bool = False  # force-import rows whose email already exists
    column_overrides: dict[str, str] = field(default_factory=dict)  # field -> header
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
