# cloudtrail_runtime_report/lambdas/runtime_report/key_prefix.py
from datetime import date, timedelta
from typing import Optional

from .models import AppSettings

KEY_PREFIX_TEMPLATE = "logs/AWSLogs/{account_id}/CloudTrail/{region}/{day.year}/{day.month:02d}/{day.day:02d}"


def determine_search_date(settings: AppSettings, today: Optional[date] = None) -> Optional[date]:
    """
    Returns the day to scan when an offset is configured, or None when the
    fallback date should be used instead.
    """
    if settings.day_offset is None:
        return None
    today = today or date.today()
    return today - timedelta(days=settings.day_offset)


def determine_key_prefix(settings: AppSettings, today: Optional[date] = None) -> str:
    """
    Builds the S3 key prefix of the CloudTrail folder for a single day.

    Args:
        settings: Application settings holding the offset and trail location.
        today: The reference date; defaults to the local date.

    Returns:
        A prefix such as 'logs/AWSLogs/<account>/CloudTrail/<region>/2018/05/29'.
    """
    search_date = determine_search_date(settings, today) or settings.fallback_date

    prefix = KEY_PREFIX_TEMPLATE.format(
        account_id=settings.trail_account_id,
        region=settings.trail_region,
        day=search_date,
    )
    print(f"S3 Key Prefix: {prefix}")
    return prefix
