import os
import gzip
import json
import uuid
import argparse
from datetime import datetime, timezone
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

from lambdas.runtime_report.extractor import LAMBDA_EVENT_SOURCE
from lambdas.runtime_report.key_prefix import determine_key_prefix
from lambdas.runtime_report.models import get_settings

# Load environment variables from a .env file for local testing
load_dotenv()

SAMPLE_RUNTIMES = ["python3.12", "nodejs20.x", "java21", None]


def create_trail_record(event_name: str, runtime: Optional[str] = None,
                        event_source: str = LAMBDA_EVENT_SOURCE) -> dict:
    """
    Creates a single CloudTrail-shaped record. A runtime of None leaves it out
    of the request parameters, as CloudTrail does for container image functions.
    """
    request_parameters = {"functionName": f"sample-{uuid.uuid4().hex[:8]}"}
    if runtime is not None:
        request_parameters["runtime"] = runtime

    return {
        "eventVersion": "1.08",
        "eventID": str(uuid.uuid4()),
        "eventTime": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "eventSource": event_source,
        "eventName": event_name,
        "awsRegion": os.environ.get("AWS_REGION", "us-east-1"),
        "requestParameters": request_parameters,
    }


def build_trail_object(records: List[dict]) -> bytes:
    """Wraps records in a CloudTrail log document and gzips it."""
    return gzip.compress(json.dumps({"Records": records}).encode('utf-8'))


def push_sample_trail(s3_client, bucket: str, prefix: str, records: List[dict]) -> str:
    """
    Uploads one synthetic CloudTrail log object under the given prefix.

    Returns:
        The key of the uploaded object.
    """
    key = f"{prefix}/sample_CloudTrail_{uuid.uuid4().hex}.json.gz"
    s3_client.put_object(Bucket=bucket, Key=key, Body=build_trail_object(records))
    print(f"✅ Uploaded {len(records)} records to s3://{bucket}/{key}")
    return key


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Uploads a synthetic CloudTrail log object for exercising the runtime report."
    )
    parser.add_argument(
        '--count',
        type=int,
        default=10,
        help='Number of CreateFunction records to generate.'
    )
    args = parser.parse_args()

    settings = get_settings()
    records = [
        create_trail_record("CreateFunction20150331", SAMPLE_RUNTIMES[i % len(SAMPLE_RUNTIMES)])
        for i in range(args.count)
    ]
    # Noise the report must ignore
    records.append(create_trail_record("Invoke", "python3.12"))
    records.append(create_trail_record("CreateBucket", event_source="s3.amazonaws.com"))

    try:
        push_sample_trail(
            boto3.client('s3', region_name=settings.aws_region),
            settings.log_bucket,
            determine_key_prefix(settings),
            records,
        )
    except (BotoCoreError, ClientError) as e:
        print(f"❌ Failed to upload sample trail: {e}")
