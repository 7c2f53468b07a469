"""
Merge module for the Program Enricher pipeline.

Combines every roster record with at most one scraped record, either by
matching names (bulk mode) or by roster position (per-record mode). The output
always has exactly one merged record per roster record, in roster order.
"""

from dataclasses import asdict
from typing import List, Mapping, Optional, Sequence

from program_enricher.match import find_matching_scraped
from program_enricher.models import InternalRecord, MergedRecord, ScrapedRecord
from program_enricher.utils import get_logger


# Module logger
logger = get_logger("merge")


def merge_record(internal: InternalRecord, scraped: Optional[ScrapedRecord]) -> MergedRecord:
    """
    Build one merged record.

    Args:
        internal: Roster record; its fields are copied unchanged.
        scraped: Matching scraped record, or None.

    Returns:
        MergedRecord whose scraped fields are None when there is no match.
    """
    internal_fields = asdict(internal)

    if scraped is None:
        return MergedRecord(**internal_fields)

    return MergedRecord(
        **internal_fields,
        degree_type=scraped.degree_type or None,
        program_duration=scraped.program_duration or None,
        cost_per_credit_hour=scraped.cost_per_credit_hour or None,
        total_tuition=scraped.total_tuition or None,
        delivery_mode=scraped.delivery_mode or None,
        curriculum_highlights=scraped.curriculum_highlights or None,
        accreditation=scraped.accreditation or None,
        source_url=scraped.source_url or None,
        last_scraped=scraped.scraped_at or None,
    )


def merge_records(
    internal_records: Sequence[InternalRecord],
    scraped_records: Sequence[ScrapedRecord]
) -> List[MergedRecord]:
    """
    Merge scraped attributes into the roster.

    Args:
        internal_records: Roster records in original order.
        scraped_records: Scraped records from this run.

    Returns:
        One MergedRecord per roster record, in roster order.
    """
    logger.info(
        f"Merging {len(internal_records)} roster record(s) with "
        f"{len(scraped_records)} scraped record(s)"
    )

    merged: List[MergedRecord] = []
    matched = 0

    for index, internal in enumerate(internal_records, start=1):
        scraped = find_matching_scraped(internal, scraped_records)
        if scraped is not None:
            matched += 1
        else:
            logger.debug(f"No scraped data for {index}/{len(internal_records)}: {internal.institution}")
        merged.append(merge_record(internal, scraped))

    logger.info(f"Merge complete: {len(merged)} record(s), {matched} with scraped data")
    return merged


def merge_by_index(
    internal_records: Sequence[InternalRecord],
    scraped_by_index: Mapping[int, ScrapedRecord]
) -> List[MergedRecord]:
    """
    Merge scrape results that were produced for specific roster records.

    Each roster record only receives the scraped record keyed by its own
    zero-based index; records without an entry get no scraped fields.

    Args:
        internal_records: Roster records in original order.
        scraped_by_index: Scraped records keyed by roster index.

    Returns:
        One MergedRecord per roster record, in roster order.
    """
    logger.info(
        f"Merging {len(internal_records)} roster record(s) with "
        f"{len(scraped_by_index)} scraped record(s) by roster position"
    )

    merged = [
        merge_record(internal, scraped_by_index.get(index))
        for index, internal in enumerate(internal_records)
    ]

    logger.info(f"Merge complete: {len(merged)} record(s), {len(scraped_by_index)} with scraped data")
    return merged
