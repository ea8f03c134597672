#!/usr/bin/env python3
"""
Classify column names from a text file and export them as CSV.
Usage:
  classify-columns <names.txt> [--output FILE] [--db-url URL] [--workers N]

  names.txt:  one column name per line ("-" reads stdin)
  --output:   CSV destination (default: stdout)
  --db-url:   also batch-insert the classified columns into this database
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import actions, classifier, config, csv_io
from .keyvault_loader import load_env
from .models import parse_column_names

logger = logging.getLogger(__name__)


def _read_names(source: str) -> List[str]:
    if source == "-":
        return parse_column_names(sys.stdin.read())
    return parse_column_names(Path(source).read_text(encoding="utf-8"))


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Classify column names with the hosted model.")
    parser.add_argument("names_file", help="Text file with one column name per line, or - for stdin")
    parser.add_argument("--output", "-o", help="Write the CSV here instead of stdout")
    parser.add_argument("--db-url", help="Batch-insert classified columns into this database")
    parser.add_argument("--workers", type=int, help="Concurrent classification requests")
    args = parser.parse_args(argv)

    load_env()
    config.configure_logging()

    try:
        names = _read_names(args.names_file)
    except OSError as e:
        print(f"ERROR: cannot read {args.names_file}: {e}", file=sys.stderr)
        return 1
    if not names:
        print("ERROR: no column names found", file=sys.stderr)
        return 1

    outcomes = classifier.classify_columns(names, max_workers=args.workers)
    for name, result in outcomes:
        if not result.success:
            print(f"  {name}: FAILED - {result.message}", file=sys.stderr)
    records = classifier.build_classified_records(outcomes)
    logger.info(f"Successfully classified {len(records)} out of {len(names)} columns.")

    if args.db_url and records:
        stored = actions.batch_insert_columns(args.db_url, records)
        if not stored.success:
            print(f"ERROR: {stored.message} {stored.error or ''}".rstrip(), file=sys.stderr)
            return 1
        logger.info(stored.message)

    output = csv_io.columns_to_csv(records)
    if args.output:
        Path(args.output).write_text(output, encoding="utf-8", newline="")
    else:
        sys.stdout.write(output)
    return 0 if len(records) == len(names) else 2


if __name__ == "__main__":
    sys.exit(main())
