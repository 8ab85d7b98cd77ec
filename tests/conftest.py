# cloudtrail-runtime-report/tests/conftest.py
import io
import gzip
import json
from datetime import date

import pytest
from botocore.exceptions import ClientError

from lambdas.runtime_report.models import AppSettings, get_settings

TEST_BUCKET = "test-trail-bucket"
TEST_PREFIX = "logs/AWSLogs/111122223333/CloudTrail/us-east-1/2024/03/02"


def trail_record(event_name="CreateFunction20150331", runtime="python3.12",
                 event_source="lambda.amazonaws.com", **request_parameters) -> dict:
    """Builds a minimal CloudTrail record. Pass runtime=None to leave the runtime out."""
    if runtime is not None:
        request_parameters["runtime"] = runtime
    return {
        "eventSource": event_source,
        "eventName": event_name,
        "requestParameters": request_parameters,
    }


def gzip_document(records) -> bytes:
    return gzip.compress(json.dumps({"Records": records}).encode("utf-8"))


class FakeS3Client:
    """
    In-memory stand-in for the boto3 S3 client covering list_objects and
    get_object. Listings are paged the way S3 pages ListObjects (V1).
    """

    def __init__(self, objects: dict, page_size: int = 1000, use_next_marker: bool = True):
        self.objects = objects
        self.page_size = page_size
        self.use_next_marker = use_next_marker
        self.list_calls = []

    def list_objects(self, Bucket, Prefix, Marker=None):
        self.list_calls.append({"Bucket": Bucket, "Prefix": Prefix, "Marker": Marker})
        keys = sorted(k for k in self.objects if k.startswith(Prefix))
        if Marker:
            keys = [k for k in keys if k > Marker]

        page = keys[:self.page_size]
        truncated = len(keys) > self.page_size
        response = {"IsTruncated": truncated}
        if page:
            response["Contents"] = [{"Key": k, "Size": len(self.objects[k])} for k in page]
        if truncated and self.use_next_marker:
            response["NextMarker"] = page[-1]
        return response

    def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}},
                "GetObject",
            )
        return {"Body": io.BytesIO(self.objects[Key])}


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Every test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        aws_region="us-east-1",
        log_bucket=TEST_BUCKET,
        report_table_name="CloudTrailRuntimeReport",
        trail_account_id="111122223333",
        trail_region="us-east-1",
        day_offset=3,
        fallback_date=date(2018, 5, 29),
        max_workers=1,
    )


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS Credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_PROFILE", raising=False)
