# cloudtrail_runtime_report/lambdas/runtime_report/aggregator.py
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .models import ExtractionResult, RuntimeId


class RunDeadlineExceeded(RuntimeError):
    """Raised when the scan runs past the configured run deadline."""
    pass


class RuntimeTally:
    """
    Counts CreateFunction calls per runtime. An entry only exists once its
    runtime has been seen, so every stored count is at least 1.
    """

    def __init__(self):
        self._counts: Dict[RuntimeId, int] = {}

    def record(self, runtime: RuntimeId) -> None:
        self._counts[runtime] = self._counts.get(runtime, 0) + 1

    def items(self) -> Iterator[Tuple[RuntimeId, int]]:
        return iter(self._counts.items())

    def total(self) -> int:
        return sum(self._counts.values())

    def as_dict(self) -> Dict[RuntimeId, int]:
        return dict(self._counts)

    def __getitem__(self, runtime: RuntimeId) -> int:
        return self._counts[runtime]

    def __contains__(self, runtime: object) -> bool:
        return runtime in self._counts

    def __len__(self) -> int:
        return len(self._counts)

    def __repr__(self) -> str:
        return f"RuntimeTally({self._counts!r})"


@dataclass
class ScanSummary:
    """Aggregated outcome of a scan: the tally plus the objects that failed."""
    tally: RuntimeTally = field(default_factory=RuntimeTally)
    objects_processed: int = 0
    failures: List[ExtractionResult] = field(default_factory=list)

    def add(self, result: ExtractionResult) -> None:
        self.objects_processed += 1
        if not result:
            self.failures.append(result)
            return
        for runtime in result.runtimes:
            self.tally.record(runtime)


def _seconds_left(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise RunDeadlineExceeded("Run deadline exceeded while scanning log objects.")
    return remaining


def scan_objects(
    keys: Iterable[str],
    extract: Callable[[str], ExtractionResult],
    max_workers: int = 1,
    deadline: Optional[float] = None,
) -> ScanSummary:
    """
    Runs `extract` over every key and aggregates the results.

    Keys are pulled from `keys` in the calling thread, so pagination stays
    sequential. With more than one worker the extractions run on a bounded
    thread pool, but every tally update still happens here, in one thread.
    Returns only once all submitted extractions have finished.

    Args:
        keys: Object keys, typically the lazy listing generator.
        extract: Processes a single key into an ExtractionResult.
        max_workers: Size of the extraction pool; 1 means strictly sequential.
        deadline: A time.monotonic() instant after which the scan is aborted.

    Raises:
        RunDeadlineExceeded: If the deadline passes before the scan completes.
    """
    summary = ScanSummary()

    if max_workers <= 1:
        for key in keys:
            _seconds_left(deadline)
            summary.add(extract(key))
        _seconds_left(deadline)
        return summary

    # Keep enough work queued for every worker without listing far ahead
    max_in_flight = max_workers * 2
    pool = ThreadPoolExecutor(max_workers=max_workers)
    pending = set()
    try:
        for key in keys:
            _seconds_left(deadline)
            pending.add(pool.submit(extract, key))
            if len(pending) >= max_in_flight:
                pending = _collect(pending, summary, deadline)

        while pending:
            pending = _collect(pending, summary, deadline)
    except BaseException:
        # Abort promptly; extractions already running finish in the background
        pool.shutdown(wait=False, cancel_futures=True)
        raise
    pool.shutdown(wait=True)
    return summary


def _collect(pending: set, summary: ScanSummary, deadline: Optional[float]) -> set:
    """Waits for at least one extraction to finish and folds finished ones into the summary."""
    done, still_pending = wait(pending, timeout=_seconds_left(deadline), return_when=FIRST_COMPLETED)
    if not done:
        raise RunDeadlineExceeded("Run deadline exceeded while waiting for log objects to finish.")
    for future in done:
        summary.add(future.result())
    return still_pending
