"""
Tests for the orchestrate module.

Tests cover:
- Minimum interval between queued tasks
- Per-record failure isolation
- Per-record and bulk scraping modes
"""

from unittest.mock import Mock

import pytest

from program_enricher.models import InternalRecord, UrlMapping
from program_enricher.orchestrate import (
    RateLimitedQueue,
    scrape_all_mappings,
    scrape_for_records,
    scrape_program,
)
from program_enricher.resolve import ConfigurationError


PAGE = (
    "<html><body><p>Master of Education, 2 years, online program. "
    "Tuition is $1,200 per credit hour.</p></body></html>"
)


def make_internal(institution: str, program: str = "Education Policy") -> InternalRecord:
    return InternalRecord(
        program=program,
        cip_codes_used="13.0401",
        institution=institution,
        app_percentile="",
        admissibility_percentile="",
        win_percentile="",
        overall_percentile="",
    )


class FakeClock:
    """Clock that advances only when sleep is called."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class TestRateLimitedQueue:
    """Tests for the single-worker queue."""

    def test_results_in_submission_order(self):
        """Test that tasks run in the order they were submitted."""
        queue = RateLimitedQueue(0)
        for value in (1, 2, 3):
            queue.submit(lambda value=value: value)

        assert queue.run() == [1, 2, 3]
        assert len(queue) == 0

    def test_waits_between_tasks_only(self):
        """Test that n tasks produce n - 1 waits."""
        clock = FakeClock()
        queue = RateLimitedQueue(1.0, sleep=clock.sleep, clock=clock)
        for _ in range(3):
            queue.submit(lambda: None)

        queue.run()

        assert clock.sleeps == [1.0, 1.0]

    def test_elapsed_task_time_counts_toward_interval(self):
        """Test that only the remaining interval is waited."""
        sleep = Mock()
        # first task finishes at 0.0, the wait check happens at 0.4
        clock = Mock(side_effect=[0.0, 0.4, 0.4])
        queue = RateLimitedQueue(1.0, sleep=sleep, clock=clock)
        queue.submit(lambda: None)
        queue.submit(lambda: None)

        queue.run()

        sleep.assert_called_once()
        assert sleep.call_args[0][0] == pytest.approx(0.6)

    def test_single_task_never_waits(self):
        """Test that a lone task does not trigger a delay."""
        sleep = Mock()
        queue = RateLimitedQueue(5.0, sleep=sleep)
        queue.submit(lambda: "done")

        assert queue.run() == ["done"]
        sleep.assert_not_called()


class TestScrapeProgram:
    """Tests for scraping a single program page."""

    def test_extracts_fields(self):
        """Test that fetched markup is turned into a scraped record."""
        fetcher = Mock()
        fetcher.fetch.return_value = PAGE

        record = scrape_program("Example University", "Education Policy", "https://example.edu/p", fetcher)

        fetcher.fetch.assert_called_once_with("https://example.edu/p")
        assert record.institution_name == "Example University"
        assert record.source_url == "https://example.edu/p"
        assert record.delivery_mode == "Online"
        assert record.cost_per_credit_hour == "$1,200"
        assert record.scraped_at

    def test_empty_content_gives_empty_record(self):
        """Test that a failed fetch yields an all-absent record."""
        fetcher = Mock()
        fetcher.fetch.return_value = ""

        record = scrape_program("Example University", "Education Policy", "https://example.edu/p", fetcher)

        assert not record.has_attributes()
        assert record.scraped_at

    def test_exception_is_isolated(self):
        """Test that an unexpected error does not propagate."""
        fetcher = Mock()
        fetcher.fetch.side_effect = RuntimeError("boom")

        record = scrape_program("Example University", "Education Policy", "https://example.edu/p", fetcher)

        assert not record.has_attributes()
        assert record.source_url == "https://example.edu/p"


class TestScrapeForRecords:
    """Tests for per-record mode."""

    def test_only_mapped_records_are_fetched(self):
        """Test that unmapped records cause no request and no delay."""
        resolver = Mock()
        resolver.resolve.side_effect = lambda institution, program: (
            "https://example.edu/a" if institution == "Mapped University" else None
        )
        fetcher = Mock()
        fetcher.fetch.return_value = PAGE
        sleep = Mock()

        results = scrape_for_records(
            [make_internal("Unmapped College"), make_internal("Mapped University")],
            resolver, fetcher, delay_seconds=1.0, sleep=sleep
        )

        assert list(results) == [1]
        assert results[1].institution_name == "Mapped University"
        fetcher.fetch.assert_called_once_with("https://example.edu/a")
        sleep.assert_not_called()

    def test_failure_does_not_stop_batch(self):
        """Test that later records are processed after an earlier failure."""
        resolver = Mock()
        resolver.resolve.side_effect = lambda institution, program: f"https://example.edu/{institution}"
        fetcher = Mock()
        fetcher.fetch.side_effect = [RuntimeError("boom"), PAGE]

        results = scrape_for_records(
            [make_internal("first"), make_internal("second")],
            resolver, fetcher, delay_seconds=0, sleep=Mock()
        )

        assert [results[i].institution_name for i in (0, 1)] == ["first", "second"]
        assert not results[0].has_attributes()
        assert results[1].has_attributes()


class TestScrapeAllMappings:
    """Tests for bulk mode."""

    def test_scrapes_every_mapping(self):
        """Test one record per mapping entry, in table order."""
        mappings = [
            UrlMapping("Alpha University", "Education Policy", "https://example.edu/a"),
            UrlMapping("Beta University", "Higher Education", "https://example.edu/b"),
        ]
        fetcher = Mock()
        fetcher.fetch.return_value = PAGE

        results = scrape_all_mappings(mappings, fetcher, delay_seconds=0, sleep=Mock())

        assert [r.institution_name for r in results] == ["Alpha University", "Beta University"]
        assert [r.program_name for r in results] == ["Education Policy", "Higher Education"]

    def test_empty_mappings_raise(self):
        """Test that bulk mode refuses an empty mapping table."""
        with pytest.raises(ConfigurationError, match="No URL mappings found"):
            scrape_all_mappings([], Mock(), delay_seconds=0, sleep=Mock())
