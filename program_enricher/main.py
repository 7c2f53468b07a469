#!/usr/bin/env python3
"""
Main orchestration module for the Program Enricher pipeline.

This module coordinates the complete pipeline:
resolve → fetch → extract → merge → persist

Callers use enrich(), which returns the merged dataset with a summary or
raises EnrichmentError naming the stage that failed. The command line entry
point reads the roster CSV, runs enrich() and maps the outcome to an exit
code.
"""

import csv
import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from program_enricher.fetch import ContentFetcher
from program_enricher.merge import merge_by_index, merge_records
from program_enricher.models import InternalRecord, MergedRecord, ScrapedRecord, utc_timestamp
from program_enricher.orchestrate import scrape_all_mappings, scrape_for_records
from program_enricher.output import OutputPaths, OutputWriter, WriteError
from program_enricher.resolve import URLResolver
from program_enricher.utils import (
    ENRICH_MODE_BULK,
    EnricherSettings,
    get_logger,
    setup_logging,
)


# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1

# Failure stages reported to callers
STAGE_CSV_READING = "csv-reading"
STAGE_OUTPUT = "output"
STAGE_UNKNOWN = "unknown"


class EnrichmentError(Exception):
    """
    Run-level failure of the enrichment pipeline.

    Attributes:
        stage: Failing stage: "csv-reading", "output" or "unknown".
        message: Human-readable description.
    """

    def __init__(self, stage: str, message: str):
        super().__init__(f"[{stage}] {message}")
        self.stage = stage
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "step": self.stage}


@dataclass
class EnrichmentSummary:
    """Counts and artifact locations for one run."""
    total_records: int
    records_with_scraped_data: int
    records_without_scraped_data: int
    generated_at: str
    output_paths: Optional[OutputPaths] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRecords": self.total_records,
            "recordsWithScrapedData": self.records_with_scraped_data,
            "recordsWithoutScrapedData": self.records_without_scraped_data,
            "generatedAt": self.generated_at,
            "outputFiles": {
                "json": str(self.output_paths.json_path) if self.output_paths else None,
                "csv": str(self.output_paths.csv_path) if self.output_paths else None,
            },
        }


@dataclass
class EnrichmentResult:
    """Merged dataset plus its summary."""
    merged: List[MergedRecord]
    summary: EnrichmentSummary
    scraped: List[ScrapedRecord] = field(default_factory=list)


def build_summary(merged: Sequence[MergedRecord], output_paths: Optional[OutputPaths] = None) -> EnrichmentSummary:
    with_data = sum(1 for record in merged if record.has_scraped_data)
    return EnrichmentSummary(
        total_records=len(merged),
        records_with_scraped_data=with_data,
        records_without_scraped_data=len(merged) - with_data,
        generated_at=utc_timestamp(),
        output_paths=output_paths,
    )


def enrich(
    internal_records: Sequence[InternalRecord],
    settings: Optional[EnricherSettings] = None,
    *,
    resolver: Optional[URLResolver] = None,
    fetcher: Optional[ContentFetcher] = None,
    writer: Optional[OutputWriter] = None,
    sleep: Callable[[float], None] = time.sleep
) -> EnrichmentResult:
    """
    Enrich roster records with scraped attributes and persist the result.

    Args:
        internal_records: Roster records in original order.
        settings: Run settings; defaults to EnricherSettings().
        resolver: URL resolver; built from settings when omitted.
        fetcher: Content fetcher; built from settings and closed after the
                 batch when omitted. A supplied fetcher is left open.
        writer: Output writer; built from settings when omitted.
        sleep: Sleep function used for politeness delays.

    Returns:
        EnrichmentResult with exactly one merged record per roster record.

    Raises:
        EnrichmentError: With stage "csv-reading" when there are no roster
            records, "output" when the artifacts cannot be written, and
            "unknown" for any other failure.
    """
    logger = get_logger("main")
    settings = settings or EnricherSettings()

    if not internal_records:
        raise EnrichmentError(STAGE_CSV_READING, "No competitors found in internal roster.")

    resolver = resolver or URLResolver(settings.url_mapping_path)
    writer = writer or OutputWriter.from_settings(settings)
    owns_fetcher = fetcher is None

    try:
        logger.info(f"[Stage 1/3] Scraping program pages ({settings.mode} mode)...")
        if owns_fetcher:
            fetcher = ContentFetcher.from_settings(settings)
        scraped_by_index: Optional[Dict[int, ScrapedRecord]] = None
        try:
            if settings.mode == ENRICH_MODE_BULK:
                scraped = scrape_all_mappings(
                    resolver.load(), fetcher, settings.bulk_delay_seconds, sleep=sleep
                )
            else:
                scraped_by_index = scrape_for_records(
                    internal_records, resolver, fetcher, settings.record_delay_seconds, sleep=sleep
                )
                scraped = [scraped_by_index[index] for index in sorted(scraped_by_index)]
        finally:
            if owns_fetcher:
                fetcher.close()

        logger.info("[Stage 2/3] Merging scraped data into roster...")
        if scraped_by_index is None:
            merged = merge_records(internal_records, scraped)
        else:
            # Per-record results only ever belong to the record they were scraped for
            merged = merge_by_index(internal_records, scraped_by_index)

        logger.info("[Stage 3/3] Writing output files...")
        output_paths = writer.persist(merged)

    except WriteError as e:
        logger.error(f"Failed to write output files: {e}")
        raise EnrichmentError(STAGE_OUTPUT, str(e)) from e
    except Exception as e:
        logger.exception(f"Enrichment failed: {e}")
        raise EnrichmentError(STAGE_UNKNOWN, str(e) or type(e).__name__) from e

    summary = build_summary(merged, output_paths)
    logger.info(
        f"Processed {summary.total_records} competitor record(s), "
        f"{summary.records_with_scraped_data} enhanced with scraped data"
    )
    return EnrichmentResult(merged=merged, summary=summary, scraped=scraped)


def load_roster(roster_path: Union[str, Path]) -> List[InternalRecord]:
    """
    Read roster records from a CSV file with a header row.

    Rows without an institution are dropped.

    Args:
        roster_path: Path to the roster CSV.

    Returns:
        List of InternalRecord in file order.

    Raises:
        EnrichmentError: With stage "csv-reading" if the file cannot be read.
    """
    logger = get_logger("main")
    path = Path(roster_path)

    try:
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            rows = list(csv.DictReader(f))
    except (OSError, csv.Error) as e:
        raise EnrichmentError(STAGE_CSV_READING, f"Could not read roster {path}: {e}") from e

    records = [
        InternalRecord.from_row({(k or "").strip(): v for k, v in row.items()})
        for row in rows
    ]
    records = [record for record in records if record.institution]
    logger.info(f"Loaded {len(records)} roster record(s) from {path}")
    return records


def run_pipeline(settings: EnricherSettings) -> int:
    """
    Execute the pipeline for the configured roster.

    Args:
        settings: Run settings.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    logger = get_logger("main")

    logger.info("=" * 60)
    logger.info("Program Enricher Pipeline - Starting")
    logger.info("=" * 60)

    try:
        records = load_roster(settings.roster_path)
        result = enrich(records, settings)
    except EnrichmentError as e:
        logger.error(f"Pipeline failed at stage '{e.stage}': {e.message}")
        return EXIT_FAILURE

    summary = result.summary
    logger.info("=" * 60)
    logger.info("Program Enricher Pipeline - Complete")
    logger.info(
        f"Summary: {summary.total_records} total, "
        f"{summary.records_with_scraped_data} with scraped data, "
        f"{summary.records_without_scraped_data} without"
    )
    logger.info("=" * 60)

    return EXIT_SUCCESS


def main() -> int:
    """
    Main entry point for the Program Enricher pipeline.

    Sets up logging, resolves settings once and runs the pipeline.

    Returns:
        Exit code for the process.
    """
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    setup_logging(log_level)
    logger = get_logger("main")

    settings = EnricherSettings.from_env()

    try:
        return run_pipeline(settings)
    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
