"""Run recurring invoice generation and the overdue sweep once.

Usage:
    python -m backend.app.scripts.run_billing_jobs [--date YYYY-MM-DD]

Cron example (daily at 06:00 UTC):
    0 6 * * * cd /path/to/app && python -m backend.app.scripts.run_billing_jobs
"""

import argparse
import logging
import sys
from datetime import date

from backend.app.core.settings import get_settings
from backend.app.db import base  # noqa: F401  registers every model
from backend.app.services.scheduler import run_daily_billing_jobs

logger = logging.getLogger("backend.app.scripts.run_billing_jobs")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate due recurring invoices and mark overdue invoices.")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Reference date (UTC, YYYY-MM-DD). Defaults to today.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    report = run_daily_billing_jobs(args.date)
    logger.info(
        "Done: %d generated, %d skipped, %d failed, %d send failure(s)",
        len(report.invoices),
        len(report.skipped_template_ids),
        len(report.errors),
        len(report.send_failures),
    )
    return 1 if report.errors else 0


if __name__ == "__main__":
    sys.exit(main())
