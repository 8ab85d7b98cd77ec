# cloudtrail_runtime_report/lambdas/runtime_report/db_writer.py
import sys

from botocore.exceptions import BotoCoreError, ClientError

from .aggregator import RuntimeTally
from .models import NoRuntime, PersistReport, RuntimeId

PARTITION_KEY = "Runtime"
COUNTER_ATTRIBUTE = "Creates"


def storage_key(runtime: RuntimeId, no_runtime_key: str) -> str:
    """Maps a runtime onto the string partition key it is stored under."""
    if isinstance(runtime, NoRuntime):
        return no_runtime_key
    return runtime


def _error_message(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.response['Error']['Message']
    return str(e)


def persist_runtime_counts(table, tally: RuntimeTally, no_runtime_key: str = "(none)") -> PersistReport:
    """
    Adds this run's counts to the report table, one atomic ADD per runtime.
    Counts are never overwritten, so overlapping runs compose instead of
    losing updates.

    A failed update is reported and the remaining runtimes are still attempted;
    the caller decides how to surface the failures.

    Args:
        table: A boto3 DynamoDB Table resource.
        tally: The counts gathered by this run.
        no_runtime_key: Partition key used for calls that carried no runtime.

    Returns:
        A PersistReport listing the updated and failed runtimes.
    """
    report = PersistReport()
    if not len(tally):
        print("ℹ️ No CreateFunction calls found. Nothing to persist.")
        return report

    print(f" -> Adding counts for {len(tally)} runtimes to table '{table.name}'...")
    for runtime, count in tally.items():
        try:
            table.update_item(
                Key={PARTITION_KEY: storage_key(runtime, no_runtime_key)},
                UpdateExpression="ADD #a :increment",
                ExpressionAttributeNames={'#a': COUNTER_ATTRIBUTE},
                ExpressionAttributeValues={':increment': count},
            )
            report.updated.append(runtime)
        except (ClientError, BotoCoreError) as e:
            message = _error_message(e)
            print(f" -> ❌ DynamoDB update failed for runtime '{runtime}': {message}", file=sys.stderr)
            report.failed[runtime] = message

    print(f" -> ✅ Updated {len(report.updated)} of {report.attempted} runtimes.")
    return report
