"""Command-line scan: ``jobtrack-scan --days-back 14``.

Prints the same JSON result as ``POST /api/scan``. Exit status is 0 on
success, 2 when the mailbox needs (re)authorization and 1 on any other error.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from typing import Optional, Sequence

from jobtrack.config import get_config
from jobtrack.database import get_session_factory, init_db
from jobtrack.errors import AuthorizationRequiredError
from jobtrack.extraction.pipeline import scan_mailbox
from jobtrack.logging_config import setup_logging

EXIT_AUTH_REQUIRED = 2


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobtrack-scan",
        description="Scan the mailbox and record job-application emails.",
    )
    parser.add_argument(
        "--days-back",
        type=_positive_int,
        default=None,
        help="How many days back to scan (default: DEFAULT_DAYS_BACK, 7)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = get_config()
        setup_logging(level=cfg.log_level, log_file=cfg.log_file)
        init_db(cfg)

        started = datetime.now(timezone.utc)
        summary = scan_mailbox(cfg, get_session_factory(), args.days_back)
        elapsed = (datetime.now(timezone.utc) - started).total_seconds()

        print(
            json.dumps(
                {
                    "success": True,
                    "count": summary.persisted,
                    "filtered_out": summary.filtered_out,
                    "days_back": summary.days_back,
                }
            )
        )
        print(
            f"Scanned {summary.candidates} candidate(s) in {elapsed:.1f}s; "
            f"failed={summary.failed}, "
            f"LLM tokens prompt={summary.prompt_tokens} completion={summary.completion_tokens}, "
            f"estimated_cost=${summary.estimated_cost_usd:.6f}",
            file=sys.stderr,
        )
        return 0
    except AuthorizationRequiredError as exc:
        print(f"Authorization required: {exc}", file=sys.stderr)
        return EXIT_AUTH_REQUIRED
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
