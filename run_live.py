# cloudtrail-runtime-report/run_live.py
import json
import boto3
from botocore.exceptions import ClientError

# Import the report runner and settings
from lambdas.runtime_report.app import build_clients, run_report
from lambdas.runtime_report.db_writer import PARTITION_KEY
from lambdas.runtime_report.models import get_settings


def setup_report_table():
    """Checks for and creates the runtime report DynamoDB table if it doesn't exist."""
    settings = get_settings()
    dynamodb = boto3.resource('dynamodb', region_name=settings.aws_region)

    table_name = settings.report_table_name
    try:
        dynamodb.meta.client.describe_table(TableName=table_name)
        print(f"DynamoDB table '{table_name}' already exists.")
    except ClientError as e:
        if e.response['Error']['Code'] == 'ResourceNotFoundException':
            print(f"DynamoDB table '{table_name}' not found. Creating it now...")
            dynamodb.create_table(
                TableName=table_name,
                KeySchema=[{'AttributeName': PARTITION_KEY, 'KeyType': 'HASH'}],
                AttributeDefinitions=[{'AttributeName': PARTITION_KEY, 'AttributeType': 'S'}],
                BillingMode='PAY_PER_REQUEST'
            )
            dynamodb.Table(table_name).wait_until_exists()
            print(f"Table '{table_name}' created successfully.")
        else: raise e


def run_live():
    """Runs the runtime report once using your live AWS credentials."""
    print("--- Starting LIVE Run of the CloudTrail runtime report ---")

    try:
        setup_report_table()
    except Exception as e:
        print(f"Could not complete setup. Aborting run. Error: {e}")
        return

    settings = get_settings()
    try:
        s3_client, table = build_clients(settings)
        report = run_report(settings, s3_client, table)

        print("\n--- Final Report: ---")
        print(json.dumps(report.to_dict(), indent=2))

        if report.ok:
            print(f"\n Success! The counts have been added to the '{settings.report_table_name}' table in DynamoDB.")
        else:
            print(f"\n Some runtime counts could not be saved: {report.persisted.failed}")
    except Exception as e:
        print(f"\n An unexpected error occurred during the run: {e}")


if __name__ == "__main__":
    run_live()
