"""
Matching module for the Program Enricher pipeline.

This module associates a roster record with its scraped counterpart.
Candidates are accepted on normalized institution equality or containment
plus program compatibility; the first acceptable candidate wins (there is
no scored ranking).
"""

from typing import Iterable, Optional, Sequence

from program_enricher.models import InternalRecord, ScrapedRecord
from program_enricher.normalize import normalize_institution_name


# Specializations that make two differently worded program names compatible
SPECIALIZATION_KEYWORDS = (
    "education policy",
    "higher education",
)


def institutions_compatible(internal_name: str, scraped_name: str) -> bool:
    """
    Check whether two institution names refer to the same institution.

    Args:
        internal_name: Institution name from the roster.
        scraped_name: Institution name on the scraped record.

    Returns:
        True if the normalized names are equal or one contains the other.
    """
    internal = normalize_institution_name(internal_name)
    scraped = normalize_institution_name(scraped_name)

    if not internal or not scraped:
        return False

    return internal == scraped or internal in scraped or scraped in internal


def programs_compatible(
    internal_program: str,
    scraped_program: str,
    keywords: Sequence[str] = SPECIALIZATION_KEYWORDS
) -> bool:
    """
    Check whether two program names describe the same program.

    Args:
        internal_program: Program name from the roster.
        scraped_program: Program name on the scraped record.
        keywords: Specialization keywords that both names may share.

    Returns:
        True if both names mention the same specialization keyword or are
        equal after lowercasing.
    """
    internal = (internal_program or "").lower()
    scraped = (scraped_program or "").lower()

    if internal == scraped:
        return True

    return any(keyword in internal and keyword in scraped for keyword in keywords)


def find_matching_scraped(
    internal: InternalRecord,
    scraped_records: Iterable[ScrapedRecord]
) -> Optional[ScrapedRecord]:
    """
    Find the scraped record that belongs to a roster record.

    Args:
        internal: Roster record.
        scraped_records: Candidate scraped records, in priority order.

    Returns:
        The first compatible scraped record, or None.
    """
    for scraped in scraped_records:
        if not scraped.institution_name:
            continue
        if not institutions_compatible(internal.institution, scraped.institution_name):
            continue
        if programs_compatible(internal.program, scraped.program_name):
            return scraped

    return None
