"""
main.py
-------
Command-line entry point for SqlBridge.

Responsibilities:
    - Parse the sub-command and its options.
    - Hand the query, connection string and parameters to the db layer.
    - Print the result on stdout and map failures to exit codes.

Usage:
    sqlbridge scalar "SELECT count(*) FROM users WHERE id > @id" -p id=3
    sqlbridge query  "SELECT * FROM users" --format csv
    sqlbridge update "DELETE FROM users WHERE id = @id" -p id=3
    sqlbridge test   -c "host=db.internal dbname=app user=report"
    sqlbridge self-update [--check] [--force]
"""

import argparse
import sys
from typing import Optional

import pandas as pd
import psycopg2
import requests

from config import APP_NAME, APP_VERSION
from db.commands import invoke_query, invoke_scalar, invoke_update, test_connection
from db.params import normalize_parameter_name
from services.update_service import UpdateService
from utils.logger import get_logger, set_level

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def _parse_param(text: str) -> tuple[str, str]:
    """argparse type for ``-p NAME=VALUE``."""
    name, sep, value = text.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {text!r}")
    return name.strip(), value


def _collect_params(parser: argparse.ArgumentParser, pairs: list[tuple[str, str]]) -> dict[str, str]:
    """Turn repeated -p options into a dict, rejecting names given twice."""
    params: dict[str, str] = {}
    seen: set[str] = set()
    for name, value in pairs:
        try:
            key = normalize_parameter_name(name)
        except ValueError as e:
            parser.error(str(e))
        if key in seen:
            parser.error(f"duplicate parameter: {key}")
        seen.add(key)
        params[name] = value
    return params


def _format_frame(frame: pd.DataFrame, fmt: str) -> str:
    if fmt == "csv":
        return frame.to_csv(index=False).rstrip("\n")
    if fmt == "json":
        return frame.to_json(orient="records", date_format="iso", default_handler=str)
    if frame.empty:
        return ", ".join(map(str, frame.columns)) if len(frame.columns) else "(no rows)"
    return frame.to_string(index=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Run scalar, row-set and update statements against PostgreSQL.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug messages")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")

    # Options shared by every database command
    db_opts = argparse.ArgumentParser(add_help=False)
    db_opts.add_argument("-c", "--connection", help="libpq connection string or URL (default: DATABASE_URL)")
    db_opts.add_argument("--timeout", type=int, help="Connect timeout in seconds")

    stmt_opts = argparse.ArgumentParser(add_help=False, parents=[db_opts])
    stmt_opts.add_argument("sql", nargs="?", help="SQL text, parameters written as @name")
    stmt_opts.add_argument("-f", "--file", help="Read the SQL text from a file")
    stmt_opts.add_argument("-p", "--param", dest="params", action="append", default=[],
                           type=_parse_param, metavar="NAME=VALUE",
                           help="Bind a parameter (repeatable)")
    stmt_opts.add_argument("--command-timeout", type=int, help="Statement timeout in seconds")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("scalar", parents=[stmt_opts], help="Return the first column of the first row")
    query = sub.add_parser("query", parents=[stmt_opts], help="Return all rows")
    query.add_argument("--format", choices=("table", "csv", "json"), default="table")
    sub.add_parser("update", parents=[stmt_opts], help="Return the number of affected rows")
    sub.add_parser("test", parents=[db_opts], help="Check that the server is reachable")

    upd = sub.add_parser("self-update", help=f"Install the latest {APP_NAME} release")
    upd.add_argument("--check", action="store_true", help="Only report whether an update exists")
    upd.add_argument("--force", action="store_true", help="Reinstall even if already up to date")
    upd.add_argument("--url", help="Release metadata URL (default: UPDATE_METADATA_URL)")
    return parser


def _read_sql(parser: argparse.ArgumentParser, args: argparse.Namespace) -> str:
    if args.file and args.sql:
        parser.error("give either SQL text or --file, not both")
    if args.file:
        try:
            with open(args.file, encoding="utf-8") as fh:
                return fh.read()
        except OSError as e:
            parser.error(f"cannot read {args.file}: {e.strerror or e}")
    if not args.sql:
        parser.error("SQL text or --file is required")
    return args.sql


def _run_self_update(args: argparse.Namespace) -> int:
    service = UpdateService(metadata_url=args.url)
    if args.check:
        try:
            release = service.check_for_update()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Update check failed: {e}")
            return EXIT_FAILURE
        if release:
            print(f"Update available: {release.version} (installed {APP_VERSION})")
        else:
            print(f"No update available (installed {APP_VERSION})")
        return EXIT_OK

    result = service.self_update(force=args.force)
    print(f"{result.status}: {result.version or APP_VERSION} ({result.files_copied} file(s) replaced)")
    for error in result.errors:
        print(f"  ! {error}", file=sys.stderr)
    return EXIT_OK if result.ok else EXIT_FAILURE


def main(argv: Optional[list[str]] = None) -> int:
    """Parse arguments, run one command and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        set_level("DEBUG")
    elif args.quiet:
        set_level("WARNING")

    if args.command == "self-update":
        return _run_self_update(args)

    if args.command == "test":
        ok = test_connection(args.connection, args.timeout)
        print("True" if ok else "False")
        return EXIT_OK if ok else EXIT_FAILURE

    sql = _read_sql(parser, args)
    params = _collect_params(parser, args.params)
    common = dict(
        connection_string=args.connection,
        parameters=params,
        timeout=args.timeout,
        command_timeout=args.command_timeout,
    )

    try:
        if args.command == "scalar":
            value = invoke_scalar(sql, **common)
            print("" if value is None else value)
        elif args.command == "query":
            print(_format_frame(invoke_query(sql, **common), args.format))
        elif args.command == "update":
            print(invoke_update(sql, **common))
    except (psycopg2.Error, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return EXIT_FAILURE

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
