# cloudtrail_runtime_report/lambdas/runtime_report/s3_lister.py
from typing import Iterator, Optional

from botocore.exceptions import BotoCoreError, ClientError


class ListingError(RuntimeError):
    """Raised when the object listing cannot be completed. Fatal to the run."""
    pass


def list_log_keys(s3_client, bucket: str, prefix: str) -> Iterator[str]:
    """
    Lazily yields every object key under a prefix, following the ListObjects
    marker from page to page until S3 reports no further pages.

    Args:
        s3_client: A boto3 S3 client.
        bucket: The bucket holding the CloudTrail logs.
        prefix: The key prefix to scope the listing to.

    Yields:
        Object keys, in the order S3 returns them.

    Raises:
        ListingError: If any page request fails or pagination stops advancing.
    """
    marker: Optional[str] = None
    page_number = 0

    while True:
        request = {"Bucket": bucket, "Prefix": prefix}
        if marker:
            request["Marker"] = marker

        try:
            response = s3_client.list_objects(**request)
        except (ClientError, BotoCoreError) as e:
            raise ListingError(f"Listing s3://{bucket}/{prefix} failed on page {page_number + 1}: {e}") from e

        page_number += 1
        contents = response.get("Contents", [])
        for s3_object in contents:
            yield s3_object["Key"]

        next_marker = response.get("NextMarker")
        # NextMarker is only returned when a delimiter is used; otherwise resume after the last key
        if not next_marker and response.get("IsTruncated") and contents:
            next_marker = contents[-1]["Key"]

        if not next_marker:
            break
        if next_marker == marker:
            raise ListingError(f"Listing s3://{bucket}/{prefix} did not advance past marker '{marker}'")
        marker = next_marker
