"""
Orchestration module for the Program Enricher pipeline.

This module drives URL resolution, fetching and extraction for each record.
Network-bound tasks run strictly sequentially on a single-worker queue that
enforces a minimum interval between consecutive tasks (the politeness
delay). A failure while scraping one record is logged and downgraded to an
all-absent ScrapedRecord; the batch never aborts on a single failure.
"""

import time
from functools import partial
from typing import Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from program_enricher.extract import extract_fields
from program_enricher.fetch import ContentFetcher
from program_enricher.models import InternalRecord, ScrapedRecord, UrlMapping, utc_timestamp
from program_enricher.resolve import ConfigurationError, URLResolver
from program_enricher.utils import get_logger


# Module logger
logger = get_logger("orchestrate")

DEFAULT_RECORD_DELAY = 1.0  # seconds
DEFAULT_BULK_DELAY = 2.5  # seconds

T = TypeVar("T")


class RateLimitedQueue(Generic[T]):
    """
    Single-worker task queue with a minimum interval between tasks.

    Tasks run in submission order when run() is called. Before each task
    after the first, the worker waits until `min_interval` seconds have
    passed since the previous task finished. No wait follows the last task.
    """

    def __init__(
        self,
        min_interval: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        self.min_interval = min_interval
        self._sleep = sleep
        self._clock = clock
        self._tasks: List[Callable[[], T]] = []

    def __len__(self) -> int:
        return len(self._tasks)

    def submit(self, task: Callable[[], T]) -> None:
        self._tasks.append(task)

    def run(self) -> List[T]:
        """
        Execute all queued tasks and return their results in order.

        The queue is empty afterwards.
        """
        tasks, self._tasks = self._tasks, []
        results: List[T] = []
        last_finished: Optional[float] = None

        for task in tasks:
            if last_finished is not None and self.min_interval > 0:
                remaining = self.min_interval - (self._clock() - last_finished)
                if remaining > 0:
                    logger.debug(f"Waiting {remaining:.2f}s before next request...")
                    self._sleep(remaining)

            results.append(task())
            last_finished = self._clock()

        return results


def scrape_program(
    institution: str,
    program: str,
    url: str,
    fetcher: ContentFetcher
) -> ScrapedRecord:
    """
    Fetch and extract one program page.

    Args:
        institution: Institution name as it appears in the roster.
        program: Program name as it appears in the roster.
        url: Program page URL.
        fetcher: Content fetcher shared by the batch.

    Returns:
        ScrapedRecord; all optional attributes are None if the page could
        not be fetched or processing failed.
    """
    logger.info(f"Scraping: {institution} - {url}")

    try:
        html = fetcher.fetch(url)
        if not html:
            logger.warning(f"No content retrieved for {institution}")
            return ScrapedRecord.empty(institution, program, url)

        fields = extract_fields(institution, html)
    except Exception as e:
        logger.error(f"Scrape failed for {institution}: {e}")
        return ScrapedRecord.empty(institution, program, url)

    record = ScrapedRecord(
        institution_name=institution,
        program_name=program,
        source_url=url,
        scraped_at=utc_timestamp(),
        degree_type=fields.degree_type,
        program_duration=fields.program_duration,
        cost_per_credit_hour=fields.cost_per_credit_hour,
        total_tuition=fields.total_tuition,
        delivery_mode=fields.delivery_mode,
        curriculum_highlights=fields.curriculum_highlights,
        accreditation=fields.accreditation,
    )

    logger.info(
        f"Scraped {institution}: degree={record.degree_type}, duration={record.program_duration}, "
        f"per_credit={record.cost_per_credit_hour}, tuition={record.total_tuition}, "
        f"delivery={record.delivery_mode}"
    )
    return record


def scrape_for_records(
    internal_records: Sequence[InternalRecord],
    resolver: URLResolver,
    fetcher: ContentFetcher,
    delay_seconds: float = DEFAULT_RECORD_DELAY,
    sleep: Callable[[float], None] = time.sleep
) -> Dict[int, ScrapedRecord]:
    """
    Per-record mode: scrape the mapped page of each roster record.

    Records without a URL mapping are skipped without any request or delay.

    Args:
        internal_records: Roster records in original order.
        resolver: URL resolver for the run.
        fetcher: Content fetcher shared by the batch.
        delay_seconds: Politeness delay between consecutive requests.
        sleep: Sleep function (injectable for tests).

    Returns:
        Scraped records keyed by the zero-based roster index of the record
        they were scraped for. Unmapped records have no entry.
    """
    queue: RateLimitedQueue[ScrapedRecord] = RateLimitedQueue(delay_seconds, sleep=sleep)
    scraped_indexes: List[int] = []

    for index, record in enumerate(internal_records):
        position = f"[{index + 1}/{len(internal_records)}]"
        url = resolver.resolve(record.institution, record.program)
        if url is None:
            logger.info(
                f"{position} No URL mapping for "
                f"{record.institution} - {record.program}, skipping scrape"
            )
            continue

        logger.debug(f"{position} Queued {record.institution}: {url}")
        queue.submit(partial(scrape_program, record.institution, record.program, url, fetcher))
        scraped_indexes.append(index)

    logger.info(f"Scraping {len(queue)} of {len(internal_records)} roster record(s)")
    return dict(zip(scraped_indexes, queue.run()))


def scrape_all_mappings(
    mappings: Sequence[UrlMapping],
    fetcher: ContentFetcher,
    delay_seconds: float = DEFAULT_BULK_DELAY,
    sleep: Callable[[float], None] = time.sleep
) -> List[ScrapedRecord]:
    """
    Bulk mode: scrape every entry of the URL mapping table.

    Args:
        mappings: URL mapping table.
        fetcher: Content fetcher shared by the batch.
        delay_seconds: Politeness delay between consecutive requests.
        sleep: Sleep function (injectable for tests).

    Returns:
        One ScrapedRecord per mapping entry, in table order.

    Raises:
        ConfigurationError: If the mapping table is empty.
    """
    if not mappings:
        raise ConfigurationError("No URL mappings found")

    logger.info(f"Processing {len(mappings)} mapped competitor program(s)...")

    queue: RateLimitedQueue[ScrapedRecord] = RateLimitedQueue(delay_seconds, sleep=sleep)
    for mapping in mappings:
        queue.submit(partial(
            scrape_program, mapping.institution, mapping.program_name, mapping.url, fetcher
        ))

    results = queue.run()
    logger.info(f"Completed scraping {len(results)} program(s)")
    return results
