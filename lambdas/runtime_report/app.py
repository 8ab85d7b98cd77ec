# cloudtrail_runtime_report/lambdas/runtime_report/app.py
import argparse
import json
import sys
import time
from dataclasses import dataclass
from datetime import date
from functools import partial
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from pydantic import ValidationError

from .aggregator import RunDeadlineExceeded, ScanSummary, scan_objects
from .db_writer import persist_runtime_counts
from .extractor import extract_runtimes
from .key_prefix import determine_key_prefix
from .models import AppSettings, PersistReport, get_settings
from .s3_lister import ListingError, list_log_keys


@dataclass
class RunReport:
    """Everything one run produced: where it looked, what it found, what it stored."""
    prefix: str
    scan: ScanSummary
    persisted: PersistReport

    @property
    def ok(self) -> bool:
        return self.persisted.ok

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prefix": self.prefix,
            "objects_processed": self.scan.objects_processed,
            "failed_objects": [result.key for result in self.scan.failures],
            "create_function_calls": self.scan.tally.total(),
            "runtimes": {str(runtime): count for runtime, count in self.scan.tally.items()},
            "persist_failures": {str(runtime): error for runtime, error in self.persisted.failed.items()},
        }


def with_overrides(settings: AppSettings, **overrides) -> AppSettings:
    """Returns a validated copy of the settings with the given fields replaced."""
    overrides = {name: value for name, value in overrides.items() if value is not None}
    if not overrides:
        return settings
    return AppSettings(**{**settings.model_dump(), **overrides})


def build_clients(settings: AppSettings):
    """
    Creates the S3 client and the report Table resource. Every network call
    made through them is bounded by the configured connect/read timeouts.
    """
    boto_config = Config(
        region_name=settings.aws_region,
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
    )
    s3_client = boto3.client('s3', config=boto_config)
    dynamodb = boto3.resource('dynamodb', config=boto_config)
    return s3_client, dynamodb.Table(settings.report_table_name)


def run_report(settings: AppSettings, s3_client, table, today: Optional[date] = None) -> RunReport:
    """
    Scans one day of CloudTrail logs and adds the CreateFunction counts per
    runtime to the report table.

    Raises:
        ListingError: If the bucket listing fails. Nothing is persisted.
        RunDeadlineExceeded: If the run deadline passes. Nothing is persisted.
    """
    deadline = None
    if settings.run_deadline_seconds:
        deadline = time.monotonic() + settings.run_deadline_seconds

    # Step 1: Pick the day to scan
    prefix = determine_key_prefix(settings, today)

    # Step 2: List, extract and tally
    keys = list_log_keys(s3_client, settings.log_bucket, prefix)
    extract = partial(extract_runtimes, s3_client, settings.log_bucket)
    scan = scan_objects(keys, extract, max_workers=settings.max_workers, deadline=deadline)

    print(f"Scanned {scan.objects_processed} objects under {prefix}: "
          f"{scan.tally.total()} CreateFunction calls across {len(scan.tally)} runtimes.")
    if scan.failures:
        print(f"⚠️ {len(scan.failures)} objects could not be processed and were left out of the counts.")

    # Step 3: Add the counts to the report table
    persisted = persist_runtime_counts(table, scan.tally, settings.no_runtime_key)
    return RunReport(prefix=prefix, scan=scan, persisted=persisted)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Counts Lambda CreateFunction calls per runtime in a day of CloudTrail logs "
                    "and adds the counts to a DynamoDB table."
    )
    parser.add_argument(
        '--day-offset',
        type=int,
        help='Scan the logs of this many days ago. Overrides JOB_ARRAY_INDEX.'
    )
    parser.add_argument(
        '--workers',
        type=int,
        help='Number of log objects processed in parallel. Overrides MAX_WORKERS.'
    )
    parser.add_argument(
        '--fallback-date',
        type=date.fromisoformat,
        metavar='YYYY-MM-DD',
        help='Day scanned when no day offset is given. Overrides FALLBACK_DATE.'
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point. Returns the process exit code."""
    args = parse_args(argv)

    try:
        settings = with_overrides(
            get_settings(),
            day_offset=args.day_offset,
            max_workers=args.workers,
            fallback_date=args.fallback_date,
        )
    except ValidationError as e:
        print(f"❌ FATAL: Invalid configuration: {e}", file=sys.stderr)
        return 2

    s3_client, table = build_clients(settings)

    try:
        report = run_report(settings, s3_client, table)
    except (ListingError, RunDeadlineExceeded) as e:
        print(f"❌ FATAL: {e}", file=sys.stderr)
        return 1

    if not report.ok:
        print(f"❌ {len(report.persisted.failed)} of {report.persisted.attempted} runtime updates failed.",
              file=sys.stderr)
        return 1

    print("✅ Runtime report complete.")
    return 0


def build_response(status_code: int, body: dict) -> dict:
    """Helper function to build the Lambda response."""
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body)
    }


def handler(event: dict, context: object) -> dict:
    """
    Lambda entry point for scheduled runs. The event may carry a 'day_offset'
    to scan an earlier day than the configured one.
    """
    print(f"Received event: {json.dumps(event)}")

    try:
        settings = with_overrides(get_settings(), day_offset=(event or {}).get('day_offset'))
    except ValidationError as e:
        print(f"Validation Error: {e}")
        return build_response(400, {'message': 'Invalid configuration or day_offset.'})

    try:
        s3_client, table = build_clients(settings)
        report = run_report(settings, s3_client, table)
    except (ListingError, RunDeadlineExceeded) as e:
        print(f"❌ FATAL: {e}")
        return build_response(500, {'message': str(e)})

    return build_response(200 if report.ok else 500, report.to_dict())


if __name__ == "__main__":
    sys.exit(main())
