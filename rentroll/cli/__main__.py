from __future__ import annotations

import argparse
import os
import signal
import sys
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from rentroll.config.loader import ConfigError, load_config
from rentroll.db.store import InMemoryTenantStore, PostgresTenantStore, StoreError
from rentroll.excel.reader import IntakeError, describe_cell
from rentroll.logging.error_log import ErrorLogBuffer
from rentroll.logging.init import log_summary, set_debug, setup_logging
from rentroll.models.column_mapping import ALL_FIELDS, FIELD_LABELS, UNMAPPED, MappingError
from rentroll.models.config_models import ImportConfig
from rentroll.services.column_mapper import apply_overrides
from rentroll.services.executor import CancellationToken
from rentroll.services.pipeline import PreviewState, RentRollImport
from rentroll.services.summary import render_preview_line, render_summary_line, write_outcome_report

"""CLI entrypoint.

Flow: load config -> read file -> auto-map columns (+ overrides) -> validate
-> import row by row -> SUMMARY line.

Exit codes:
    0  every row valid and every submitted row written
    2  partial: invalid, failed or cancelled rows
    1  fatal: config / file / mapping / database connection error
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper; tested via integration)
    """Provide an autocommit psycopg2 connection.

    接続情報の解決優先順位:
        1. `.env` で読み込まれた環境変数 (main() 冒頭で上書き読込済み)
           - DATABASE_URL / PGDSN があれば DSN 全体をそのまま使用
           - 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        2. config/import.yml の database セクション (不足分のフォールバック)
    """

    db_cfg = cfg.database
    dsn_env = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn_env:
        dsn = dsn_env
    else:
        host = os.getenv("PGHOST", db_cfg.host or "localhost")
        port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
        user = os.getenv("PGUSER", db_cfg.user or "postgres")
        password = os.getenv("PGPASSWORD", db_cfg.password or "")
        database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"

    timeout_ms = int(cfg.call_timeout_sec * 1000)
    conn = psycopg2.connect(
        dsn,
        connect_timeout=max(1, int(cfg.call_timeout_sec)),
        options=f"-c statement_timeout={timeout_ms}",
    )
    try:
        # 1 呼び出し = 1 トランザクション (補償は executor 側)
        conn.autocommit = True
        yield conn
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv (values override the process environment)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_mapping_arg(value: str) -> tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError(f"expected FIELD=HEADER, got '{value}'")
    field_name, header = value.split("=", 1)
    field_name = field_name.strip()
    if field_name not in ALL_FIELDS:
        raise argparse.ArgumentTypeError(f"unknown field '{field_name}' (choose from {', '.join(ALL_FIELDS)})")
    return field_name, header.strip()


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="rentroll-import", description="Rent-roll spreadsheet -> tenants & leases importer")
    p.add_argument("file", type=Path, help="Rent roll file (.xlsx, .xls or .csv)")
    p.add_argument("--config", type=Path, default=None, help="Config YAML (default: config/import.yml if present)")
    p.add_argument(
        "--map",
        dest="mappings",
        action="append",
        default=[],
        type=_parse_mapping_arg,
        metavar="FIELD=HEADER",
        help="Override the column for a field (empty HEADER skips an optional field)",
    )
    p.add_argument("--dry-run", action="store_true", help="Import into an in-memory store (no database)")
    p.add_argument("--preview", action="store_true", help="Validate and print the preview, then exit")
    p.add_argument("--inspect-data", action="store_true", help="Print headers, mapping & first rows then exit")
    p.add_argument("--update-existing", action="store_true", help="Update tenants whose email already exists")
    p.add_argument("--report", type=Path, default=None, help="Write per-row outcomes to this CSV file")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _print_mapping(logger, headers: list[str], mapping) -> None:
    logger.info(f"headers={headers}")
    for f in ALL_FIELDS:
        header = mapping.header_for(f)
        logger.info(f"map {f} ({FIELD_LABELS[f]}) <- {header if header != UNMAPPED else '<skip>'}")


def _inspect_data(logger, importer: RentRollImport) -> int:
    state = importer.state
    intake = state.intake  # type: ignore[union-attr]
    _print_mapping(logger, intake.headers, state.mapping)  # type: ignore[union-attr]
    for row in intake.rows[:3]:
        safe = {k: describe_cell(v) for k, v in row.values.items()}
        print(f"  row {row.row_number}: {safe}")
    return EXIT_SUCCESS_ALL


def _log_invalid_rows(logger, preview: PreviewState) -> None:
    for c in preview.candidates:
        if not c.is_valid:
            logger.warning(f"row={c.row_number} invalid: {'; '.join(c.errors)}")
        elif c.is_duplicate and not c.force_import:
            logger.info(f"row={c.row_number} email={c.email} exists (skipped; use --update-existing)")


@contextmanager
def _cancel_on_sigint(token: CancellationToken) -> Iterator[None]:
    """Ctrl-C finishes the current row, then marks the rest cancelled."""
    def _handler(signum, frame):  # noqa: ARG001
        token.cancel()

    try:
        previous = signal.signal(signal.SIGINT, _handler)
    except ValueError:  # not in main thread
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _run(logger, args: argparse.Namespace, cfg: ImportConfig, importer: RentRollImport, store) -> int:
    try:
        existing = store.fetch_tenant_emails()
    except StoreError as e:
        logger.error(f"db: failed to check for existing tenants: {e}")
        return EXIT_FATAL

    preview = importer.advance_to_preview(existing_tenants=existing)
    if args.update_existing or cfg.update_existing:
        preview = importer.force_all(True)
    _log_invalid_rows(logger, preview)
    logger.info(render_preview_line(preview.candidates))

    if args.preview:
        return EXIT_SUCCESS_ALL if preview.invalid_count == 0 else EXIT_PARTIAL_FAILURE

    error_log = ErrorLogBuffer(Path(cfg.logs_dir))
    token = CancellationToken()
    with _cancel_on_sigint(token):
        complete = importer.start_import(store, cancel_token=token, error_log=error_log)
    result = complete.result

    log_path = error_log.flush()
    if log_path is not None and result.failed_count:
        logger.info(f"error log: {log_path} ({len(error_log)} rows, {error_log.counts_by_type()})")
    if args.report is not None:
        write_outcome_report(args.report, result)
        logger.info(f"report: {args.report}")

    summary_line = render_summary_line(complete.candidates, result)
    # log_summary が "SUMMARY " を付与するため先頭を除去
    log_summary(summary_line[len("SUMMARY "):])

    if preview.invalid_count or result.failed_count or result.cancelled_count:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む ([] はそのまま空引数として扱う)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    importer = RentRollImport(timezone=cfg.timezone)
    logger.info(f"Reading rent roll: {args.file}")
    try:
        state = importer.load_file(args.file)
    except IntakeError as e:
        logger.error(f"file: {e}")
        return EXIT_FATAL
    logger.info(f"sheet={state.intake.sheet_name} rows={len(state.intake.rows)}")

    overrides = dict(cfg.column_overrides)
    overrides.update(dict(args.mappings))
    try:
        mapping = apply_overrides(state.mapping, overrides, state.intake.headers)
    except MappingError as e:
        logger.error(f"mapping: {e}")
        return EXIT_FATAL
    state = importer.replace_mapping(mapping)

    if args.inspect_data:
        return _inspect_data(logger, importer)

    _print_mapping(logger, state.intake.headers, state.mapping)
    if not state.can_advance:
        missing = ", ".join(state.mapping.missing_required())
        logger.error(f"mapping: required fields not mapped: {missing} (use --map FIELD=HEADER)")
        return EXIT_FATAL

    if args.dry_run:
        logger.info("mode=dry-run (in-memory store)")
        return _run(logger, args, cfg, importer, InMemoryTenantStore())

    with ExitStack() as stack:
        try:
            conn = stack.enter_context(_db_connection(cfg))
        except psycopg2.Error as e:
            logger.error(f"db: connection failed: {str(e).strip()}")
            return EXIT_FATAL
        logger.info("mode=live")
        return _run(logger, args, cfg, importer, PostgresTenantStore(conn))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
