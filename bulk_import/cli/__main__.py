from __future__ import annotations

import argparse
import sys
from pathlib import Path

import httpx
from dotenv import load_dotenv

from bulk_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from bulk_import.delimited.reader import SourceReadError, preview_frame, read_source_text, records_to_csv
from bulk_import.logging.error_log import ErrorLogBuffer
from bulk_import.logging.init import log_summary, set_debug, setup_logging
from bulk_import.services.header_mapper import MappingError, merge_aliases
from bulk_import.services.session import ImportSession, SubmissionBlockedError, ValidationError
from bulk_import.services.summary import render_summary_line

"""CLI entrypoint: import one CSV of users through the upsert endpoint.

Flow:
- load .env, then config/import.yml
- read the file, propose a header mapping, apply --map overrides, confirm
- validate, submit in batches, print per-row failures and a SUMMARY line
- optionally write the failed rows to --failed-out for correction and rerun
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _build_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for the upsert client; None uses the default network transport."""
    return None


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv; .env values win over the process env."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_map_option(values: list[str]) -> list[tuple[str, str | None]]:
    pairs: list[tuple[str, str | None]] = []
    for raw in values:
        if "=" not in raw:
            raise MappingError(f"--map expects field=column, got {raw!r}")
        field, column = raw.split("=", 1)
        column = column.strip()
        pairs.append((field.strip(), None if column.lower() in ("", "none") else column))
    return pairs


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Bulk user CSV importer")
    p.add_argument("file", type=Path, help="CSV file to import (UTF-8, comma delimited)")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument(
        "--map",
        action="append",
        default=[],
        metavar="FIELD=COLUMN",
        help="Override the guessed column for a field (name|email|role|department|phone); COLUMN=none unmaps",
    )
    p.add_argument("--company-id", type=int, default=None, help="Company all users are assigned to")
    p.add_argument("--batch-size", type=int, default=None, help="Rows per request (1-50)")
    p.add_argument("--failed-out", type=Path, default=None, help="Write failed rows (with errors) to this CSV")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print headers, proposed mapping & first rows then exit")
    return p.parse_args(argv)


def _inspect_data(session: ImportSession, text: str) -> int:
    headers, frame = preview_frame(text)
    mapping = session.mapping_session.mapping
    print(f"FILE: {session.source_name}")
    print(f"  headers={headers}")
    if mapping is not None:
        print(f"  proposed_mapping={mapping.as_dict()}")
    if frame.empty:
        print("  (no data rows)")
    else:
        print(frame.to_string(index=False))
    return EXIT_SUCCESS_ALL


def _write_failed(session: ImportSession, path: Path | None, logger) -> None:
    if path is None or not session.working_set:
        return
    out = records_to_csv(session.working_set, path)
    logger.info(f"wrote {len(session.working_set)} failed rows to {out}")


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # 空リスト [] が渡された場合に sys.argv が混入しないよう None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        text = read_source_text(args.file)
    except SourceReadError as e:
        logger.error(f"source: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer(Path(cfg.error_log_dir))
    try:
        aliases = merge_aliases(cfg.aliases)
    except ValueError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    session = ImportSession(
        cfg.api,
        company_id=args.company_id if args.company_id is not None else cfg.company_id,
        batch_size=args.batch_size if args.batch_size is not None else cfg.batch_size,
        aliases=aliases,
        error_log=error_log,
        source_name=args.file.name,
    )

    session.begin_mapping(text)
    if args.inspect_data:
        return _inspect_data(session, text)

    try:
        for field, column in _parse_map_option(args.map):
            session.override_mapping(field, column)
        mapping = session.mapping_session.mapping
        logger.info(f"mapping: {mapping.as_dict() if mapping else {}}")
        session.confirm_mapping()
    except MappingError as e:
        logger.error(f"mapping: {e}")
        session.cancel_mapping()
        return EXIT_FATAL

    if not session.working_set:
        logger.info("no data rows to import")
        return EXIT_SUCCESS_ALL

    try:
        reconciliation = session.submit(transport=_build_transport())
    except SubmissionBlockedError as e:
        for pos, problems in sorted(e.issues.items()):
            rec = session.working_set[pos]
            logger.error(f"row {rec.source_row or pos}: {', '.join(problems)}")
        logger.error(f"validation: {e}; nothing was submitted")
        _write_failed(session, args.failed_out, logger)
        error_log.flush()
        return EXIT_FATAL
    except ValidationError as e:
        logger.error(f"validation: {e}")
        return EXIT_FATAL

    for rec in reconciliation.working_set:
        logger.warning(f"row {rec.source_row} ({rec.email or '<no email>'}): {'; '.join(rec.errors)}")
    _write_failed(session, args.failed_out, logger)
    if reconciliation.failed or reconciliation.unmatched:
        path = error_log.flush()
        logger.info(f"error log: {path}")

    if session.last_result is not None:
        summary_line = render_summary_line(session.last_result)
        log_summary(summary_line[len("SUMMARY "):])

    if reconciliation.failed:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
