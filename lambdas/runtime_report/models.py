# cloudtrail_runtime_report/lambdas/runtime_report/models.py
"""
Settings and plain-dataclass models for the CloudTrail runtime report.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from functools import lru_cache
from typing import Dict, List, Optional, Union

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Manages env vars using Pydantic BaseSettings, reading a .env file when present.
    Built once at startup and handed to every component that needs it.
    """
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        env_ignore_empty=True,
        extra='ignore',
        populate_by_name=True,
    )

    aws_region: str = Field("us-east-1", alias='AWS_REGION')
    log_bucket: str = Field("normj-east-1-trail", alias='LOG_BUCKET')
    report_table_name: str = Field("CloudTrailRuntimeReport", alias='REPORT_TABLE_NAME')

    # Where CloudTrail delivers its logs inside the bucket
    trail_account_id: str = Field("626492997873", alias='TRAIL_ACCOUNT_ID')
    trail_region: str = Field("us-east-1", alias='TRAIL_REGION')

    # Days back from today; AWS Batch array jobs set AWS_BATCH_JOB_ARRAY_INDEX
    day_offset: Optional[int] = Field(
        None,
        ge=0,
        validation_alias=AliasChoices('JOB_ARRAY_INDEX', 'AWS_BATCH_JOB_ARRAY_INDEX'),
    )
    fallback_date: date = Field(date(2018, 5, 29), alias='FALLBACK_DATE')

    # DynamoDB keys cannot be null, so calls without a runtime are stored under this key
    no_runtime_key: str = Field("(none)", min_length=1, alias='NO_RUNTIME_KEY')

    max_workers: int = Field(1, ge=1, alias='MAX_WORKERS')
    connect_timeout: float = Field(10.0, gt=0, alias='CONNECT_TIMEOUT_SECONDS')
    read_timeout: float = Field(60.0, gt=0, alias='READ_TIMEOUT_SECONDS')
    run_deadline_seconds: Optional[float] = Field(None, gt=0, alias='RUN_DEADLINE_SECONDS')


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Returns the process-wide settings, loading them on first use."""
    return AppSettings()


class NoRuntime(Enum):
    """
    Marks a matching CreateFunction call whose request carried no runtime
    (container image functions, for example). Never equal to any string.
    """
    UNSPECIFIED = "unspecified"

    def __str__(self) -> str:
        return "<no runtime>"


NO_RUNTIME = NoRuntime.UNSPECIFIED

RuntimeId = Union[str, NoRuntime]


# Data models
@dataclass
class ExtractionResult:
    """
    Outcome of processing one log object: either the runtimes observed in it,
    or the reason it could not be read. A failed object contributes nothing.
    """
    key: str
    runtimes: List[RuntimeId] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def success(cls, key: str, runtimes: List[RuntimeId]) -> "ExtractionResult":
        return cls(key=key, runtimes=list(runtimes))

    @classmethod
    def failure(cls, key: str, error: str) -> "ExtractionResult":
        return cls(key=key, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        """Allows `if result:` to mean the object was processed successfully."""
        return self.ok


@dataclass
class PersistReport:
    """What happened when the tally was added to the report table."""
    updated: List[RuntimeId] = field(default_factory=list)
    failed: Dict[RuntimeId, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def attempted(self) -> int:
        return len(self.updated) + len(self.failed)
