# cloudtrail-runtime-report/tests/test_db_writer.py
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from lambdas.runtime_report.aggregator import RuntimeTally
from lambdas.runtime_report.db_writer import persist_runtime_counts, storage_key
from lambdas.runtime_report.models import NO_RUNTIME

TABLE_NAME = "CloudTrailRuntimeReport"


def make_tally(*runtimes) -> RuntimeTally:
    tally = RuntimeTally()
    for runtime in runtimes:
        tally.record(runtime)
    return tally


@pytest.fixture
def report_table(aws_credentials):
    """A real (moto) DynamoDB table with the report's key schema."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[{'AttributeName': 'Runtime', 'KeyType': 'HASH'}],
            AttributeDefinitions=[{'AttributeName': 'Runtime', 'AttributeType': 'S'}],
            BillingMode='PAY_PER_REQUEST',
        )
        yield table


def stored_creates(table, key: str):
    item = table.get_item(Key={'Runtime': key}).get('Item')
    return None if item is None else int(item['Creates'])


def test_storage_key_maps_no_runtime_to_placeholder():
    assert storage_key("python3.8", "(none)") == "python3.8"
    assert storage_key(NO_RUNTIME, "(none)") == "(none)"
    assert storage_key(NO_RUNTIME, "NO_RUNTIME") == "NO_RUNTIME"


def test_persisting_twice_adds_instead_of_overwriting(report_table):
    """Running the same tally twice doubles the stored count: 2 + 2 == 4."""
    tally = make_tally("python3.8", "python3.8")

    persist_runtime_counts(report_table, tally)
    assert stored_creates(report_table, "python3.8") == 2

    persist_runtime_counts(report_table, tally)
    assert stored_creates(report_table, "python3.8") == 4


def test_counts_add_to_existing_records(report_table):
    report_table.put_item(Item={'Runtime': 'nodejs20.x', 'Creates': 10})

    report = persist_runtime_counts(report_table, make_tally("nodejs20.x", "java21"))

    assert report.ok
    assert set(report.updated) == {"nodejs20.x", "java21"}
    assert stored_creates(report_table, "nodejs20.x") == 11
    assert stored_creates(report_table, "java21") == 1


def test_no_runtime_is_persisted_separately(report_table):
    tally = make_tally("python3.12", "python3.12", NO_RUNTIME)

    persist_runtime_counts(report_table, tally, no_runtime_key="(none)")

    assert stored_creates(report_table, "python3.12") == 2
    assert stored_creates(report_table, "(none)") == 1


def test_empty_tally_makes_no_updates(capsys):
    table = MagicMock()

    report = persist_runtime_counts(table, RuntimeTally())

    table.update_item.assert_not_called()
    assert report.ok
    assert report.attempted == 0
    assert "No CreateFunction calls found" in capsys.readouterr().out


def test_update_uses_atomic_add():
    table = MagicMock()

    persist_runtime_counts(table, make_tally("go1.x", "go1.x", "go1.x"))

    table.update_item.assert_called_once_with(
        Key={'Runtime': 'go1.x'},
        UpdateExpression="ADD #a :increment",
        ExpressionAttributeNames={'#a': 'Creates'},
        ExpressionAttributeValues={':increment': 3},
    )


def test_one_failed_update_does_not_block_the_rest(capsys):
    table = MagicMock()
    table.update_item.side_effect = [
        ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "Rate exceeded"}},
            "UpdateItem",
        ),
        None,
        None,
    ]

    report = persist_runtime_counts(table, make_tally("python3.8", "nodejs20.x", NO_RUNTIME))

    assert table.update_item.call_count == 3
    assert not report.ok
    assert report.failed == {"python3.8": "Rate exceeded"}
    assert report.updated == ["nodejs20.x", NO_RUNTIME]
    assert "DynamoDB update failed for runtime 'python3.8'" in capsys.readouterr().err
