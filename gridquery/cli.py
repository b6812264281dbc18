"""Command line entry point: evaluate one request against a configured table."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .config import load_config
from .errors import GridQueryError
from .loader import TableLoader
from .logging_setup import start_log
from .query_engine import QueryEngine


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gridquery",
        description="Filter, sort and page a table for a DataTables server-side request",
    )
    parser.add_argument("--config", required=True, help="YAML configuration with data and columns sections")
    parser.add_argument(
        "--request", default="-", help="URL-encoded or JSON request body file, '-' reads stdin"
    )
    parser.add_argument("--output", default="-", help="Where to write the JSON response, '-' for stdout")
    parser.add_argument("--log-level", default=None, help="Overrides the configured log level")
    return parser


def _read_body(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    start_log(
        app_name="gridquery",
        log_dir=config.logging.dir,
        level=args.log_level or config.logging.level,
        to_console=config.logging.to_console,
    )
    if not config.data:
        print("Configuration is missing the 'data' section.", file=sys.stderr)
        return 2

    loader = TableLoader(config.data, config.columns)
    engine = QueryEngine(loader.build_table(rownames=config.engine.rownames), config.engine)
    try:
        response = engine.handle_body(_read_body(args.request))
    except GridQueryError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    text = response.to_json()
    if args.output == "-":
        sys.stdout.write(text + "\n")
    else:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
