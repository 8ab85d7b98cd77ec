# cloudtrail_runtime_report/lambdas/runtime_report/extractor.py
import gzip
import json
import sys
from typing import Any, Dict, List, Optional

from .models import NO_RUNTIME, ExtractionResult, RuntimeId

LAMBDA_EVENT_SOURCE = "lambda.amazonaws.com"
# Prefix match: also picks up versioned names such as CreateFunction20150331
CREATE_FUNCTION_PREFIX = "CreateFunction"


def read_trail_records(s3_client, bucket: str, key: str) -> List[Any]:
    """
    Downloads a CloudTrail log object, decompresses it as it streams and
    returns its 'Records' list.

    Raises:
        ValueError: If the document has no top-level 'Records' list.
        ClientError, OSError, EOFError: If the object cannot be fetched or decompressed.
    """
    response = s3_client.get_object(Bucket=bucket, Key=key)
    body = response["Body"]
    try:
        # CloudTrail always delivers gzip-compressed UTF-8 JSON
        with gzip.GzipFile(fileobj=body, mode="rb") as stream:
            document = json.load(stream)
    finally:
        body.close()

    records = document.get("Records") if isinstance(document, dict) else None
    if not isinstance(records, list):
        raise ValueError("log document has no 'Records' list")
    return records


def is_create_function_call(record: Dict[str, Any]) -> bool:
    """True for Lambda control-plane events whose name starts with 'CreateFunction'."""
    event_source = record.get("eventSource")
    event_name = record.get("eventName")
    if not isinstance(event_source, str) or not isinstance(event_name, str):
        return False
    return event_source == LAMBDA_EVENT_SOURCE and event_name.startswith(CREATE_FUNCTION_PREFIX)


def runtime_of(record: Dict[str, Any]) -> Optional[RuntimeId]:
    """
    Returns the runtime requested by a CreateFunction call, NO_RUNTIME when the
    request did not name one, or None when the record has no request parameters
    at all (failed calls are logged that way) and should be skipped.
    """
    request_parameters = record.get("requestParameters")
    if not isinstance(request_parameters, dict):
        return None

    runtime = request_parameters.get("runtime")
    if runtime is None:
        return NO_RUNTIME
    return str(runtime)


def extract_runtimes(s3_client, bucket: str, key: str) -> ExtractionResult:
    """
    Turns one compressed log object into the runtimes of the CreateFunction
    calls it contains. Any failure is contained to this object: it is logged
    and reported as a failed result with no observations.
    """
    print(f"Processing {key}")
    try:
        records = read_trail_records(s3_client, bucket, key)

        runtimes: List[RuntimeId] = []
        for record in records:
            if not isinstance(record, dict) or not is_create_function_call(record):
                continue

            runtime = runtime_of(record)
            if runtime is None:
                continue

            print(f"Found {record['eventName']} call with runtime {runtime}")
            runtimes.append(runtime)

        return ExtractionResult.success(key, runtimes)

    except Exception as e:
        print(f"❌ Error processing object {key}: {e}", file=sys.stderr)
        return ExtractionResult.failure(key, f"{type(e).__name__}: {e}")
